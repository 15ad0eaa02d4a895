"""Validation of endpoints and hostnames, and default port handling."""

from __future__ import annotations

import ipaddress
import re
from typing import Tuple
from urllib.parse import urlsplit, urlunsplit

DOQ_PORT = "8853"
DOH_QUIC_PORT = "1443"
DOT_PORT = "853"
DTLS_PORT = DOT_PORT
DOH_PORT = "443"
PLAIN_DNS_PORT = "53"


def _split_host_port(hostport: str) -> Tuple[str, str]:
    i = hostport.rfind(":")
    if i < 0:
        raise ValueError(f"address {hostport}: missing port in address")
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"address {hostport}: missing ']' in address")
        if end + 1 == len(hostport):
            raise ValueError(f"address {hostport}: missing port in address")
        if end + 1 != i:
            if hostport[end + 1] == ":":
                raise ValueError(f"address {hostport}: too many colons in address")
            raise ValueError(f"address {hostport}: missing port in address")
        host = hostport[1:end]
        if "[" in hostport[1:] or "]" in hostport[end + 1:]:
            raise ValueError(f"address {hostport}: unexpected bracket in address")
    else:
        host = hostport[:i]
        if ":" in host:
            raise ValueError(f"address {hostport}: too many colons in address")
        if "[" in host or "]" in host:
            raise ValueError(f"address {hostport}: unexpected bracket in address")
    return host, hostport[i + 1:]


def _join_host_port(host: str, port: str) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def valid_endpoint(addr: str) -> None:
    """Raise ValueError unless addr is a valid <host>:<port> endpoint."""
    host, port = _split_host_port(addr)
    if not re.fullmatch(r"[0-9]+", port) or int(port) > 65535:
        raise ValueError(f"invalid port: {port!r}")
    try:
        ipaddress.ip_address(host)
        return
    except ValueError:
        pass
    valid_hostname(host)


def valid_hostname(name: str) -> None:
    """Raise ValueError unless name is a valid hostname."""
    if name == "":
        raise ValueError("hostname empty")
    if len(name) > 255:
        raise ValueError(f"invalid hostname {name!r}: too long")
    name = name[:-1] if name.endswith(".") else name
    labels = name.split(".")
    for label in labels:
        for c in label:
            if label.startswith("-") or label.endswith("-"):
                raise ValueError(
                    f"invalid hostname {name!r}: label can not start or end with -"
                )
            if not (c.isascii() and (c.isalnum() or c == "-")):
                raise ValueError(f"invalid hostname {name!r}: invalid character {c!r}")
    if any(not ("0" <= c <= "9") for c in labels[-1]):
        return
    raise ValueError(f"invalid hostname {name!r}: last label can not be all numeric")


def _url_port(host: str) -> str:
    colon = host.rfind(":")
    if colon < 0 or colon < host.rfind("]"):
        return ""
    port = host[colon + 1:]
    return port if port.isdigit() else ""


def address_with_default(addr: str, default_port: str) -> str:
    """Add default_port to an endpoint or URL unless it already has one."""
    endpoint, sep, rest = addr.partition("{")
    template = "{" + rest if sep else ""

    if "/" in endpoint:
        try:
            u = urlsplit(endpoint)
        except ValueError:
            return addr
        userinfo, at, host = u.netloc.rpartition("@")
        if _url_port(host) == "":
            host = _join_host_port(host, default_port)
        netloc = f"{userinfo}{at}{host}"
        return urlunsplit((u.scheme, netloc, u.path, u.query, u.fragment)) + template

    if ":" in endpoint:
        return addr
    return _join_host_port(endpoint, default_port)