"""Helpers for building and inspecting DNS messages."""

from __future__ import annotations

import copy
import logging
from typing import Iterable

import dns.flags
import dns.message
import dns.rcode
import dns.rdata
import dns.rdataclass
import dns.rdatatype
import dns.rrset

LOG = logging.getLogger("routedns")


class QueryTimeoutError(TimeoutError):
    """Raised when a query times out."""

    def __init__(self, query: dns.message.Message) -> None:
        self.query = query
        super().__init__(f"query for '{qname(query)}' timed out")


def qname(q: dns.message.Message) -> str:
    """Return the name of the first question, or an empty string."""
    if not q.question:
        return ""
    return str(q.question[0].name)


def qtype(q: dns.message.Message) -> str:
    """Return the text form of the first question's type, or an empty string."""
    if not q.question:
        return ""
    return dns.rdatatype.to_text(q.question[0].rdtype)


def rcode_name(r: dns.message.Message) -> str:
    """Return the name of the response code, or its number if unknown."""
    code = r.rcode()
    try:
        return dns.rcode.to_text(code)
    except ValueError:
        return str(int(code))


def response_with_code(q: dns.message.Message, rcode: int) -> dns.message.Message:
    """Build a reply to the query carrying the given response code."""
    a = dns.message.make_response(q)
    a.use_edns(False)
    a.set_rcode(rcode)
    return a


def nxdomain(q: dns.message.Message) -> dns.message.Message:
    return response_with_code(q, dns.rcode.NXDOMAIN)


def servfail(q: dns.message.Message) -> dns.message.Message:
    return response_with_code(q, dns.rcode.SERVFAIL)


def refused(q: dns.message.Message) -> dns.message.Message:
    return response_with_code(q, dns.rcode.REFUSED)


def ptr(q: dns.message.Message, names: Iterable[str]) -> dns.message.Message:
    """Answer a PTR query with the given names."""
    a = response_with_code(q, dns.rcode.NOERROR)
    if q.flags & dns.flags.RD:
        a.flags |= dns.flags.RA
    else:
        a.flags &= ~dns.flags.RA
    rrset = dns.rrset.RRset(q.question[0].name, dns.rdataclass.IN, dns.rdatatype.PTR)
    for name in names:
        target = name if name.endswith(".") else name + "."
        rd = dns.rdata.from_text(dns.rdataclass.IN, dns.rdatatype.PTR, target)
        rrset.add(rd, ttl=3600)
    a.answer = [rrset] if len(rrset) else []
    return a


def set_udp_size(q: dns.message.Message, size: int) -> dns.message.Message:
    """Return a copy of the query with the EDNS0 UDP size set; size 0 returns q."""
    if size == 0:
        return q
    c = copy.deepcopy(q)
    if c.edns >= 0:
        c.use_edns(c.edns, c.ednsflags, size, options=list(c.options))
    else:
        c.use_edns(0, payload=size)
    return c


def logger(ident: str, q: dns.message.Message, ci) -> logging.LoggerAdapter:
    """Return a logger carrying the request context."""
    return logging.LoggerAdapter(
        LOG,
        {
            "id": ident,
            "client": getattr(ci, "source_ip", None),
            "qtype": qtype(q),
            "qname": qname(q),
        },
    )