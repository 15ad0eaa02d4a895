"""Resolver that adds or removes arbitrary EDNS0 options in queries."""

from __future__ import annotations

from typing import Callable, List, Optional

import dns.edns
import dns.message

from .resolver import ClientInfo, Resolver

EDNS0ModifierFunc = Callable[[dns.message.Message, ClientInfo], None]


def _set_options(q: dns.message.Message, options: List[dns.edns.Option]) -> None:
    q.use_edns(q.edns, q.ednsflags, q.payload, options=options)


class EDNS0Modifier(Resolver):
    """Applies an EDNS0 modifier function to queries before passing them on."""

    def __init__(
        self, ident: str, resolver: Resolver, modifier: Optional[EDNS0ModifierFunc] = None
    ) -> None:
        self.ident = ident
        self.resolver = resolver
        self.modifier = modifier

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        if not q.question:
            raise ValueError("no question in query")
        if self.modifier is not None:
            self.modifier(q, ci)
        return self.resolver.resolve(q, ci)


def edns0_modifier_delete(code: int) -> EDNS0ModifierFunc:
    """Return a modifier that removes every option with the given code."""

    def modify(q: dns.message.Message, ci: ClientInfo) -> None:
        if q.edns < 0:
            return
        _set_options(q, [o for o in q.options if int(o.otype) != code])

    return modify


def edns0_modifier_add(code: int, data: bytes) -> EDNS0ModifierFunc:
    """Return a modifier that sets an option with the given code and data."""
    delete = edns0_modifier_delete(code)

    def modify(q: dns.message.Message, ci: ClientInfo) -> None:
        delete(q, ci)
        if q.edns < 0:
            q.use_edns(0, payload=4096)
        _set_options(q, list(q.options) + [dns.edns.GenericOption(code, data)])

    return modify