"""Core resolver and listener interfaces."""

from __future__ import annotations

import ipaddress
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

import dns.message

from .metrics import get_var_int, get_var_map

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass
class ClientInfo:
    """Information about the client making a request, usable for routing."""

    source_ip: Optional[IPAddress] = None
    doh_path: str = ""
    tls_server_name: str = ""
    listener: str = ""


class Resolver(ABC):
    """Something that answers DNS queries."""

    ident: str = ""

    @abstractmethod
    def resolve(
        self, q: dns.message.Message, ci: ClientInfo
    ) -> Optional[dns.message.Message]:
        """Resolve a query; return the answer, or None if it was dropped."""

    def __str__(self) -> str:
        return self.ident or type(self).__name__


class Listener(ABC):
    """A DNS listener that serves queries."""

    ident: str = ""

    @abstractmethod
    def start(self) -> None:
        """Start serving."""

    def __str__(self) -> str:
        return self.ident or type(self).__name__


class ListenerMetrics:
    """Counters exposed by listeners and clients."""

    def __init__(self, base: str, ident: str) -> None:
        self.query = get_var_int(base, ident, "query")
        self.response = get_var_map(base, ident, "response")
        self.drop = get_var_int(base, ident, "drop")
        self.err = get_var_map(base, ident, "error")
        self.max_queue_len = get_var_int(base, ident, "maxqueue")