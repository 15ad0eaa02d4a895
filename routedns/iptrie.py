"""Binary trie for checking whether an IP falls within any listed network."""

from __future__ import annotations

import ipaddress
from typing import Optional, Union

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class _Node:
    __slots__ = ("left", "right", "leaf")

    def __init__(self) -> None:
        self.left: Optional[_Node] = None
        self.right: Optional[_Node] = None
        self.leaf = False


def _bit(packed: bytes, n: int) -> int:
    return (packed[n // 8] >> (7 - n % 8)) & 1


def rule_string(ip: Union[str, IPAddress], mask_bits: int) -> str:
    """Return the CIDR string of the network of the given size containing ip."""
    addr = ipaddress.ip_address(ip)
    return str(ipaddress.ip_network((addr, mask_bits), strict=False))


class IPBlocklistTrie:
    """Stores networks and reports the shortest listed prefix covering an IP."""

    def __init__(self) -> None:
        self._root: Optional[_Node] = None

    def add(self, network: Union[str, IPNetwork]) -> None:
        net = ipaddress.ip_network(network, strict=False)
        if self._root is None:
            self._root = _Node()
        packed = net.network_address.packed
        p = self._root
        for i in range(net.prefixlen):
            if p.leaf:
                break
            if _bit(packed, i):
                if p.right is None:
                    p.right = _Node()
                p = p.right
            else:
                if p.left is None:
                    p.left = _Node()
                p = p.left
        p.left = None
        p.right = None
        p.leaf = True

    def has_ip(self, ip: Union[str, IPAddress]) -> Optional[str]:
        """Return the covering network as a string, or None if none covers ip."""
        if self._root is None:
            return None
        addr = ipaddress.ip_address(ip)
        if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
            addr = addr.ipv4_mapped
        packed = addr.packed
        size = len(packed) * 8
        p = self._root
        for i in range(size):
            if p.leaf:
                return rule_string(addr, i)
            p = p.right if _bit(packed, i) else p.left
            if p is None:
                return None
        return rule_string(addr, size)