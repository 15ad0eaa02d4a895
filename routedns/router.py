"""Router that sends queries to the resolver of the first matching route."""

from __future__ import annotations

from typing import List, Optional

import dns.message
import dns.rdataclass
import dns.rdatatype

from .message import logger
from .metrics import RouterMetrics
from .resolver import ClientInfo, Resolver
from .route import Route


def _question_text(question) -> str:
    return (
        f";{question.name}\t{dns.rdataclass.to_text(question.rdclass)}"
        f"\t{dns.rdatatype.to_text(question.rdtype)}"
    )


class Router(Resolver):
    """Evaluates routes in the order they were added and uses the first match."""

    def __init__(self, ident: str) -> None:
        self.ident = ident
        self.routes: List[Route] = []
        self.metrics = RouterMetrics(ident, 0)

    def add(self, *routes: Route) -> None:
        """Append routes; the default route should be added last."""
        self.routes.extend(routes)
        self.metrics.available.add(1)

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        if not q.question:
            raise ValueError("no question in query")
        question = q.question[0]
        log = logger(self.ident, q, ci)
        for route in self.routes:
            if not route.match(q, ci):
                continue
            name = str(route.resolver)
            log.debug("routing query to resolver route=%s resolver=%s", route, name)
            self.metrics.route.add(name, 1)
            try:
                return route.resolver.resolve(q, ci)
            except Exception:
                self.metrics.failure.add(name, 1)
                raise
        raise LookupError(f"no route for {_question_text(question)}")