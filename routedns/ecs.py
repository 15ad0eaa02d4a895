"""Resolver that adds, removes or anonymises EDNS0 Client Subnet options."""

from __future__ import annotations

import ipaddress
from typing import Callable, List, Optional, Tuple, Union

import dns.edns
import dns.message

from .message import logger
from .resolver import ClientInfo, Resolver

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
ECSModifierFunc = Callable[[str, dns.message.Message, ClientInfo], None]


def _set_options(q: dns.message.Message, options: List[dns.edns.Option]) -> None:
    q.use_edns(q.edns, q.ednsflags, q.payload, options=options)


def _masked(ip: Union[str, IPAddress], prefix4: int, prefix6: int) -> Tuple[int, int, IPAddress]:
    addr = ipaddress.ip_address(ip)
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped
    if addr.version == 4:
        family, prefix = 1, prefix4
    else:
        family, prefix = 2, prefix6
    network = ipaddress.ip_network((addr, prefix), strict=False)
    return family, prefix, network.network_address


class ECSModifier(Resolver):
    """Applies an ECS modifier function to queries before passing them on."""

    def __init__(
        self, ident: str, resolver: Resolver, modifier: Optional[ECSModifierFunc] = None
    ) -> None:
        self.ident = ident
        self.resolver = resolver
        self.modifier = modifier

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        if not q.question:
            raise ValueError("no question in query")
        if self.modifier is not None:
            self.modifier(self.ident, q, ci)
        return self.resolver.resolve(q, ci)


def ecs_modifier_delete(ident: str, q: dns.message.Message, ci: ClientInfo) -> None:
    """Remove all ECS options from the query."""
    if q.edns < 0:
        return
    kept = [o for o in q.options if not isinstance(o, dns.edns.ECSOption)]
    had_ecs = len(kept) != len(q.options)
    _set_options(q, kept)
    if had_ecs and ident:
        logger(ident, q, ci).debug("removing ecs option")


def ecs_modifier_add(
    addr: Optional[Union[str, IPAddress]], prefix4: int, prefix6: int
) -> ECSModifierFunc:
    """Return a modifier that replaces any ECS option with one for addr (or the client IP)."""

    def modify(ident: str, q: dns.message.Message, ci: ClientInfo) -> None:
        ecs_modifier_delete("", q, ci)
        source = addr if addr is not None else ci.source_ip
        if source is None:
            raise ValueError("no source address available for ecs option")
        _family, mask, network = _masked(source, prefix4, prefix6)
        if q.edns < 0:
            q.use_edns(0, payload=4096)
        option = dns.edns.ECSOption(str(network), mask, 0)
        _set_options(q, list(q.options) + [option])
        logger(ident, q, ci).debug("adding ecs option ecs=%s mask=%d", network, mask)

    return modify


def ecs_modifier_add_if_missing(
    addr: Optional[Union[str, IPAddress]], prefix4: int, prefix6: int
) -> ECSModifierFunc:
    """Return a modifier that adds an ECS option only if the query has none."""
    add = ecs_modifier_add(addr, prefix4, prefix6)

    def modify(ident: str, q: dns.message.Message, ci: ClientInfo) -> None:
        if q.edns >= 0:
            for option in q.options:
                if isinstance(option, dns.edns.ECSOption):
                    logger(ident, q, ci).debug(
                        "ecs option already present ecs=%s mask=%d",
                        option.address,
                        option.srclen,
                    )
                    return
        add(ident, q, ci)

    return modify


def ecs_modifier_privacy(prefix4: int, prefix6: int) -> ECSModifierFunc:
    """Return a modifier that truncates existing ECS addresses to the given prefixes."""

    def modify(ident: str, q: dns.message.Message, ci: ClientInfo) -> None:
        if q.edns < 0:
            return
        has_ecs = False
        before = after = None
        options = []
        for option in q.options:
            if isinstance(option, dns.edns.ECSOption):
                has_ecs = True
                if option.family in (1, 2):
                    before = ipaddress.ip_address(option.address)
                    _family, mask, after = _masked(before, prefix4, prefix6)
                    option = dns.edns.ECSOption(str(after), mask, option.scopelen)
            options.append(option)
        _set_options(q, options)
        if has_ecs:
            logger(ident, q, ci).debug(
                "modifying ecs privacy before-addr=%s after-addr=%s ip4prefix=%d ip6prefix=%d",
                before,
                after,
                prefix4,
                prefix6,
            )

    return modify