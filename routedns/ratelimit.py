"""Resolver that limits how many queries a client network may send per time window."""

from __future__ import annotations

import ipaddress
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

import dns.message

from .message import logger
from .metrics import VarInt, get_var_int
from .resolver import ClientInfo, Resolver

DEFAULT_WINDOW = 60
DEFAULT_PREFIX4 = 24
DEFAULT_PREFIX6 = 56


@dataclass
class RateLimiterOptions:
    """Settings for a rate limiter.

    requests is the number of queries allowed per window (in seconds). Zero
    values for window and the prefixes select the defaults of 60 seconds, /24
    and /56.
    """

    requests: int = 0
    window: int = 0
    prefix4: int = 0
    prefix6: int = 0
    limit_resolver: Optional[Resolver] = None


@dataclass
class _Metrics:
    query: VarInt
    exceed: VarInt
    drop: VarInt


class RateLimiter(Resolver):
    """Passes at most a fixed number of queries per client network and window upstream.

    Queries over the limit go to the limit resolver if one is set, otherwise
    they are dropped and None is returned.
    """

    def __init__(
        self, ident: str, resolver: Resolver, opt: Optional[RateLimiterOptions] = None
    ) -> None:
        opt = opt if opt is not None else RateLimiterOptions()
        self.ident = ident
        self.resolver = resolver
        self.requests = opt.requests
        self.window = opt.window or DEFAULT_WINDOW
        self.prefix4 = opt.prefix4 or DEFAULT_PREFIX4
        self.prefix6 = opt.prefix6 or DEFAULT_PREFIX6
        self.limit_resolver = opt.limit_resolver
        self.metrics = _Metrics(
            query=get_var_int("router", ident, "query"),
            exceed=get_var_int("router", ident, "exceed"),
            drop=get_var_int("router", ident, "drop"),
        )
        self._lock = threading.Lock()
        self._window_id = 0
        self._counters: Dict[str, int] = {}

    def _client_key(self, ip) -> str:
        if ip is None:
            return "<nil>"
        addr = ipaddress.ip_address(ip)
        if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
            addr = addr.ipv4_mapped
        prefix = self.prefix4 if addr.version == 4 else self.prefix6
        return str(ipaddress.ip_network((addr, prefix), strict=False).network_address)

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        log = logger(self.ident, q, ci)
        self.metrics.query.add(1)
        key = self._client_key(ci.source_ip)
        window_id = int(time.time()) // self.window

        with self._lock:
            if window_id != self._window_id:
                self._window_id = window_id
                self._counters = {}
            count = self._counters.get(key, 0)
            reject = count >= self.requests
            self._counters[key] = count + 1

        if reject:
            self.metrics.exceed.add(1)
            if self.limit_resolver is not None:
                log.debug(
                    "rate-limit exceeded, forwarding to limit-resolver %s", self.limit_resolver
                )
                return self.limit_resolver.resolve(q, ci)
            self.metrics.drop.add(1)
            log.debug("rate-limit reached, dropping")
            return None
        log.debug("forwarding query to resolver %s", self.resolver)
        return self.resolver.resolve(q, ci)