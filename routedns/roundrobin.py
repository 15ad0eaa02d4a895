"""Resolver group that spreads queries evenly over its members."""

from __future__ import annotations

import threading
from typing import List, Optional

import dns.message

from .message import logger
from .metrics import RouterMetrics
from .resolver import ClientInfo, Resolver


class RoundRobin(Resolver):
    """Sends queries to each resolver in turn; failures are not retried."""

    def __init__(self, ident: str, *resolvers: Resolver) -> None:
        self.ident = ident
        self.resolvers: List[Resolver] = list(resolvers)
        self.metrics = RouterMetrics(ident, len(self.resolvers))
        self._lock = threading.Lock()
        self._current = 0

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        with self._lock:
            resolver = self.resolvers[self._current]
            self._current = (self._current + 1) % len(self.resolvers)
        logger(self.ident, q, ci).debug("forwarding query to resolver %s", resolver)
        self.metrics.route.add(str(resolver), 1)
        try:
            return resolver.resolve(q, ci)
        except Exception:
            self.metrics.failure.add(str(resolver), 1)
            raise