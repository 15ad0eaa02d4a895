"""Resolvers that trim the records of upstream responses."""

from __future__ import annotations

from typing import Optional

import dns.message
import dns.rcode
import dns.rrset

from .message import logger, response_with_code
from .resolver import ClientInfo, Resolver


class ResponseCollapse(Resolver):
    """Keeps only answer records of the queried type and class, renamed to the query name."""

    def __init__(self, ident: str, resolver: Resolver, null_rcode: int = 0) -> None:
        self.ident = ident
        self.resolver = resolver
        self.null_rcode = null_rcode

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        a = self.resolver.resolve(q, ci)
        if a is None or a.rcode() != dns.rcode.NOERROR:
            return a
        question = q.question[0]
        matching = [
            rrset
            for rrset in a.answer
            if rrset.rdtype == question.rdtype and rrset.rdclass == question.rdclass
        ]
        log = logger(self.ident, q, ci)
        if not matching:
            log.debug("no answer left after collapse, returning response code %d", self.null_rcode)
            return response_with_code(q, self.null_rcode)
        merged = dns.rrset.RRset(question.name, question.rdclass, question.rdtype)
        for rrset in matching:
            for rd in rrset:
                merged.add(rd, rrset.ttl)
        a.answer = [merged]
        log.debug("collapsing response")
        return a


class ResponseMinimize(Resolver):
    """Strips authority and additional records, including the OPT record, from responses."""

    def __init__(self, ident: str, resolver: Resolver) -> None:
        self.ident = ident
        self.resolver = resolver

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        a = self.resolver.resolve(q, ci)
        if a is None:
            return None
        logger(self.ident, q, ci).debug("stripping response")
        a.authority = []
        a.additional = []
        a.use_edns(False)
        return a