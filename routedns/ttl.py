"""Resolver that adjusts the TTLs of upstream responses."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

import dns.message
import dns.rdatatype
import dns.rrset

from .message import logger
from .resolver import ClientInfo, Resolver

MAX_TTL = 0xFFFFFFFF

TTLSelectFunc = Callable[["TTLModifier", dns.message.Message], bool]


@dataclass
class TTLModifierOptions:
    """Settings for a TTL modifier.

    select_func runs first and returns True if it changed anything; min_ttl
    and max_ttl are applied afterwards. A max_ttl of 0 means no limit.
    """

    select_func: Optional[TTLSelectFunc] = None
    min_ttl: int = 0
    max_ttl: int = 0


def _rrsets(a: dns.message.Message) -> Iterator[dns.rrset.RRset]:
    for section in (a.answer, a.authority, a.additional):
        for rrset in section:
            if rrset.rdtype == dns.rdatatype.OPT:
                continue
            yield rrset


def _set_all(rrsets: List[dns.rrset.RRset], value: int) -> bool:
    modified = False
    for rrset in rrsets:
        if rrset.ttl != value:
            modified = True
        rrset.ttl = value
    return modified


class TTLModifier(Resolver):
    """Resolves upstream, then applies TTL selection and limits to the response."""

    def __init__(
        self, ident: str, resolver: Resolver, opt: Optional[TTLModifierOptions] = None
    ) -> None:
        opt = opt if opt is not None else TTLModifierOptions()
        self.ident = ident
        self.resolver = resolver
        self.select_func = opt.select_func
        self.min_ttl = opt.min_ttl
        self.max_ttl = opt.max_ttl or MAX_TTL

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        a = self.resolver.resolve(q, ci)
        if a is None:
            return None
        modified = False
        if self.select_func is not None:
            modified = self.select_func(self, a)
        for rrset in _rrsets(a):
            if rrset.ttl < self.min_ttl:
                rrset.ttl = self.min_ttl
                modified = True
            if rrset.ttl > self.max_ttl:
                rrset.ttl = self.max_ttl
                modified = True
        if modified:
            logger(self.ident, q, ci).debug("modified response ttl")
        return a


def ttl_select_lowest(r: TTLModifier, a: dns.message.Message) -> bool:
    """Set every TTL to the lowest one in the response."""
    rrsets = list(_rrsets(a))
    if not rrsets:
        return False
    return _set_all(rrsets, min(rrset.ttl for rrset in rrsets))


def ttl_select_highest(r: TTLModifier, a: dns.message.Message) -> bool:
    """Set every TTL to the highest one in the response."""
    rrsets = list(_rrsets(a))
    if not rrsets:
        return False
    return _set_all(rrsets, max(rrset.ttl for rrset in rrsets))


def ttl_select_average(r: TTLModifier, a: dns.message.Message) -> bool:
    """Set every TTL to the average over all records (integer division)."""
    rrsets = list(_rrsets(a))
    count = sum(len(rrset) for rrset in rrsets)
    total = sum(rrset.ttl * len(rrset) for rrset in rrsets)
    return _set_all(rrsets, total // max(count, 1))


def ttl_select_first(r: TTLModifier, a: dns.message.Message) -> bool:
    """Set every TTL to that of the first record."""
    rrsets = list(_rrsets(a))
    if not rrsets:
        return False
    return _set_all(rrsets, rrsets[0].ttl)


def ttl_select_last(r: TTLModifier, a: dns.message.Message) -> bool:
    """Set every TTL to that of the last record."""
    rrsets = list(_rrsets(a))
    if not rrsets:
        return False
    return _set_all(rrsets, rrsets[-1].ttl)


def ttl_select_random(r: TTLModifier, a: dns.message.Message) -> bool:
    """Set every TTL to one random value in [min_ttl, max_ttl).

    Raises ValueError if max_ttl is not above min_ttl.
    """
    value = r.min_ttl + random.randrange(r.max_ttl - r.min_ttl)
    for rrset in _rrsets(a):
        rrset.ttl = value
    return True