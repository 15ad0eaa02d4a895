import dns.message
import dns.rrset
import pytest

from routedns.resolver import ClientInfo, Resolver
from routedns.ttl import (
    TTLModifier,
    TTLModifierOptions,
    ttl_select_average,
    ttl_select_first,
    ttl_select_highest,
    ttl_select_last,
    ttl_select_lowest,
    ttl_select_random,
)


class FixedResolver(Resolver):
    ident = "fixed"

    def __init__(self, build):
        self.build = build

    def resolve(self, q, ci):
        return self.build(q)


def _response(q):
    a = dns.message.make_response(q)
    a.answer.append(dns.rrset.from_text("example.com.", 100, "IN", "A", "192.0.2.1"))
    a.answer.append(dns.rrset.from_text("example.com.", 300, "IN", "AAAA", "2001:db8::1"))
    a.authority.append(dns.rrset.from_text("example.com.", 200, "IN", "NS", "ns.example.com."))
    return a


def _ttls(a):
    return [r.ttl for section in (a.answer, a.authority, a.additional) for r in section]


def _resolve(opt, build=_response):
    m = TTLModifier("ttl", FixedResolver(build), opt)
    q = dns.message.make_query("example.com.", "A")
    return m.resolve(q, ClientInfo())


def test_no_options_leaves_ttls():
    assert _ttls(_resolve(TTLModifierOptions())) == [100, 300, 200]


def test_min_and_max_clamp():
    a = _resolve(TTLModifierOptions(min_ttl=150, max_ttl=250))
    assert _ttls(a) == [150, 250, 200]


def test_select_lowest():
    assert _ttls(_resolve(TTLModifierOptions(select_func=ttl_select_lowest))) == [100] * 3


def test_select_highest():
    assert _ttls(_resolve(TTLModifierOptions(select_func=ttl_select_highest))) == [300] * 3


def test_select_first_and_last():
    assert _ttls(_resolve(TTLModifierOptions(select_func=ttl_select_first))) == [100] * 3
    assert _ttls(_resolve(TTLModifierOptions(select_func=ttl_select_last))) == [200] * 3


def test_select_average_counts_records():
    def build(q):
        a = dns.message.make_response(q)
        a.answer.append(
            dns.rrset.from_text("example.com.", 100, "IN", "A", "192.0.2.1", "192.0.2.2")
        )
        a.answer.append(dns.rrset.from_text("example.com.", 400, "IN", "AAAA", "2001:db8::1"))
        return a

    a = _resolve(TTLModifierOptions(select_func=ttl_select_average), build)
    assert _ttls(a) == [200, 200]


def test_select_random_within_bounds():
    a = _resolve(TTLModifierOptions(select_func=ttl_select_random, min_ttl=10, max_ttl=20))
    ttls = _ttls(a)
    assert len(set(ttls)) == 1
    assert 10 <= ttls[0] < 20


def test_select_random_invalid_range():
    with pytest.raises(ValueError):
        _resolve(TTLModifierOptions(select_func=ttl_select_random, min_ttl=20, max_ttl=20))


def test_select_result_still_limited():
    a = _resolve(TTLModifierOptions(select_func=ttl_select_highest, max_ttl=250))
    assert _ttls(a) == [250] * 3


def test_none_passed_through():
    assert _resolve(TTLModifierOptions(min_ttl=10), lambda q: None) is None


def test_upstream_error_propagates():
    def build(q):
        raise RuntimeError("upstream failed")

    with pytest.raises(RuntimeError, match="upstream failed"):
        _resolve(TTLModifierOptions(), build)