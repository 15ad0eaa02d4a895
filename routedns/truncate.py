"""Resolver that retries truncated responses with another resolver."""

from __future__ import annotations

from typing import Optional

import dns.flags
import dns.message

from .message import logger
from .resolver import ClientInfo, Resolver


class TruncateRetry(Resolver):
    """Resolves upstream and repeats truncated queries on the retry resolver."""

    def __init__(self, ident: str, resolver: Resolver, retry_resolver: Resolver) -> None:
        self.ident = ident
        self.resolver = resolver
        self.retry_resolver = retry_resolver

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        a = self.resolver.resolve(q, ci)
        if a is None:
            return None
        if a.flags & dns.flags.TC:
            logger(self.ident, q, ci).debug(
                "truncated response, forwarding to retry-resolver %s", self.retry_resolver
            )
            a = self.retry_resolver.resolve(q, ci)
        return a