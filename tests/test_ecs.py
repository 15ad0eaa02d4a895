import ipaddress

import dns.edns
import dns.message
import dns.rdatatype
import pytest

from routedns.ecs import (
    ECSModifier,
    ecs_modifier_add,
    ecs_modifier_add_if_missing,
    ecs_modifier_delete,
    ecs_modifier_privacy,
)
from routedns.resolver import ClientInfo, Resolver


class _Recorder(Resolver):
    def __init__(self):
        self.ident = "recorder"
        self.queries = []

    def resolve(self, q, ci):
        self.queries.append(q)
        return dns.message.make_response(q)


def _query():
    q = dns.message.make_query("example.com.", dns.rdatatype.A)
    q.use_edns(False)
    return q


def _ecs(q):
    return [o for o in q.options if isinstance(o, dns.edns.ECSOption)]


def test_add_sets_masked_ipv4_subnet():
    q = _query()
    ecs_modifier_add("192.0.2.77", 24, 56)("", q, ClientInfo())
    assert q.edns == 0
    assert q.payload == 4096
    opts = _ecs(q)
    assert len(opts) == 1
    assert opts[0].family == 1
    assert opts[0].srclen == 24
    assert opts[0].address == "192.0.2.0"


def test_add_falls_back_to_client_ipv6():
    q = _query()
    ci = ClientInfo(source_ip=ipaddress.ip_address("2001:db8:1:2:3::1"))
    ecs_modifier_add(None, 24, 56)("id", q, ci)
    opts = _ecs(q)
    assert len(opts) == 1
    assert opts[0].family == 2
    assert opts[0].srclen == 56
    address = ipaddress.ip_address(opts[0].address)
    assert address in ipaddress.ip_network("2001:db8:1:2:3::1/56", strict=False)
    assert ipaddress.ip_network(f"{opts[0].address}/56").prefixlen == 56


def test_add_without_any_address_raises():
    q = _query()
    with pytest.raises(ValueError):
        ecs_modifier_add(None, 24, 56)("", q, ClientInfo())


def test_add_replaces_existing_option():
    q = _query()
    q.use_edns(0, options=[dns.edns.ECSOption("203.0.113.9", 32)])
    ecs_modifier_add("192.0.2.77", 24, 56)("", q, ClientInfo())
    opts = _ecs(q)
    assert len(opts) == 1
    assert opts[0].srclen == 24
    assert ipaddress.ip_address(opts[0].address) in ipaddress.ip_network(
        "192.0.2.77/24", strict=False
    )


def test_add_if_missing_keeps_existing():
    q = _query()
    q.use_edns(0, options=[dns.edns.ECSOption("203.0.113.9", 32)])
    ecs_modifier_add_if_missing("192.0.2.77", 24, 56)("", q, ClientInfo())
    opts = _ecs(q)
    assert len(opts) == 1
    assert opts[0].address == "203.0.113.9"
    assert opts[0].srclen == 32


def test_add_if_missing_adds_when_absent():
    q = _query()
    ecs_modifier_add_if_missing("192.0.2.77", 24, 56)("", q, ClientInfo())
    opts = _ecs(q)
    assert len(opts) == 1
    assert opts[0].srclen == 24


def test_delete_keeps_other_options():
    q = _query()
    q.use_edns(
        0,
        options=[
            dns.edns.ECSOption("192.0.2.1", 32),
            dns.edns.GenericOption(65001, b"\x01"),
        ],
    )
    ecs_modifier_delete("id", q, ClientInfo())
    assert _ecs(q) == []
    assert len(q.options) == 1
    assert q.options[0].otype == 65001


def test_delete_without_edns_leaves_query():
    q = _query()
    ecs_modifier_delete("id", q, ClientInfo())
    assert q.edns == -1


def test_privacy_masks_ipv4():
    q = _query()
    q.use_edns(0, options=[dns.edns.ECSOption("198.51.100.200", 32)])
    ecs_modifier_privacy(24, 56)("id", q, ClientInfo())
    opts = _ecs(q)
    assert len(opts) == 1
    assert opts[0].srclen == 24
    assert opts[0].address == "198.51.100.0"


def test_privacy_masks_ipv6():
    q = _query()
    q.use_edns(0, options=[dns.edns.ECSOption("2001:db8:aaaa:bbbb::1", 128)])
    ecs_modifier_privacy(24, 48)("id", q, ClientInfo())
    opts = _ecs(q)
    assert opts[0].srclen == 48
    assert ipaddress.ip_network(f"{opts[0].address}/48").prefixlen == 48
    assert ipaddress.ip_address(opts[0].address) in ipaddress.ip_network(
        "2001:db8:aaaa:bbbb::1/48", strict=False
    )


def test_privacy_without_ecs_keeps_options():
    q = _query()
    q.use_edns(0, options=[dns.edns.GenericOption(65001, b"\x01")])
    ecs_modifier_privacy(24, 56)("id", q, ClientInfo())
    assert len(q.options) == 1
    assert q.options[0].data == b"\x01"


def test_modifier_requires_question():
    rec = _Recorder()
    with pytest.raises(ValueError):
        ECSModifier("ecs", rec, None).resolve(dns.message.Message(), ClientInfo())
    assert rec.queries == []


def test_modifier_forwards_modified_query():
    rec = _Recorder()
    r = ECSModifier("ecs", rec, ecs_modifier_add("192.0.2.77", 24, 56))
    q = _query()
    a = r.resolve(q, ClientInfo())
    assert rec.queries == [q]
    assert len(_ecs(rec.queries[0])) == 1
    assert a.id == q.id


def test_ecs_survives_wire_round_trip():
    q = _query()
    ecs_modifier_add("192.0.2.77", 24, 56)("", q, ClientInfo())
    original = _ecs(q)[0]
    parsed = dns.message.from_wire(q.to_wire())
    opts = _ecs(parsed)
    assert len(opts) == 1
    assert opts[0].srclen == original.srclen
    assert opts[0].address == original.address