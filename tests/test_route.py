import dns.message
import dns.name
import dns.rdataclass
import dns.rdatatype
import dns.rrset
import pytest

from routedns.resolver import ClientInfo, Resolver
from routedns.route import (
    TimeOfDay,
    class_to_string,
    new_route,
    parse_time_of_day,
    string_to_class,
    string_to_type,
    strings_to_weekdays,
)


class CountingResolver(Resolver):
    def __init__(self):
        self.hits = 0

    def resolve(self, q, ci):
        self.hits += 1
        return q


def make_question(name, rdtype, rdclass=dns.rdataclass.IN):
    q = dns.message.Message()
    qname = dns.name.from_text(name, origin=None)
    q.question = [dns.rrset.RRset(qname, rdclass, rdtype)]
    return q


@pytest.mark.parametrize(
    "r_name,r_type,r_class,r_invert,q_name,q_type,q_class,match",
    [
        ("\\.google\\.com$", [], "", False, "bla.google.com", dns.rdatatype.A, dns.rdataclass.IN, True),
        ("\\.google\\.com$", [], "", False, "google.com", dns.rdatatype.A, dns.rdataclass.IN, False),
        ("google\\.com$", ["MX"], "", False, "google.com", dns.rdatatype.A, dns.rdataclass.IN, False),
        ("google\\.com$", ["MX", "A"], "", False, "google.com", dns.rdatatype.A, dns.rdataclass.IN, True),
        ("google\\.com$", ["MX"], "", False, "google.com", dns.rdatatype.MX, dns.rdataclass.IN, True),
        ("google\\.com$", ["MX"], "", True, "google.com", dns.rdatatype.MX, dns.rdataclass.IN, False),
        ("google\\.com$", ["A"], "INET", False, "google.com", dns.rdatatype.A, dns.rdataclass.ANY, False),
        ("google\\.com$", ["A"], "INET", False, "google.com", dns.rdatatype.A, dns.rdataclass.IN, True),
    ],
)
def test_route_match(r_name, r_type, r_class, r_invert, q_name, q_type, q_class, match):
    r = new_route(r_name, r_class, r_type, None, "", "", "", "", "", "", CountingResolver())
    r.invert(r_invert)
    q = make_question(q_name, q_type, q_class)
    assert r.match(q, ClientInfo()) is match


def test_route_requires_resolver():
    with pytest.raises(ValueError):
        new_route("", "", None, None, "", "", "", "", "", "", None)


def test_route_bad_regex():
    with pytest.raises(ValueError):
        new_route("(", "", None, None, "", "", "", "", "", "", CountingResolver())


def test_route_bad_source():
    with pytest.raises(ValueError):
        new_route("", "", None, None, "", "", "192.168.1.1", "", "", "", CountingResolver())


def test_route_time_window_always_open():
    r = new_route(
        "", "", None, ["mon", "tue", "wed", "thu", "fri", "sat", "sun"],
        "24:00", "0:00", "", "", "", "", CountingResolver(),
    )
    assert r.match(make_question("x.test.", dns.rdatatype.A), ClientInfo()) is True


def test_route_time_window_never_open():
    r = new_route("", "", None, None, "0:00", "", "", "", "", "", CountingResolver())
    assert r.match(make_question("x.test.", dns.rdatatype.A), ClientInfo()) is False


def test_route_listener_and_doh_path():
    r = new_route("", "", None, None, "", "", "", "^/dns$", "^lst$", "", CountingResolver())
    q = make_question("x.test.", dns.rdatatype.A)
    assert r.match(q, ClientInfo(doh_path="/dns", listener="lst")) is True
    assert r.match(q, ClientInfo(doh_path="/other", listener="lst")) is False


def test_route_string():
    default = new_route("", "", None, None, "", "", "", "", "", "", CountingResolver())
    assert default.is_default()
    assert str(default) == "(default)"
    r = new_route("\\.acme$", "", ["A", "MX"], None, "", "", "", "", "", "", CountingResolver())
    assert not r.is_default()
    assert str(r) == "(types=[A MX],name=\\.acme$)"


def test_string_to_type():
    assert string_to_type(["mx", "A"]) == [dns.rdatatype.MX, dns.rdatatype.A]
    assert string_to_type([]) == []
    with pytest.raises(ValueError):
        string_to_type(["NOPE"])


def test_class_conversions():
    assert string_to_class("") == 0
    assert string_to_class("inet") == 1
    assert string_to_class("ANY") == 255
    with pytest.raises(ValueError):
        string_to_class("bogus")
    assert class_to_string(3) == "CH"
    with pytest.raises(ValueError):
        class_to_string(2)


def test_weekdays():
    assert strings_to_weekdays(["mon", "sun"]) == [0, 6]
    with pytest.raises(ValueError):
        strings_to_weekdays(["monday"])


def test_time_of_day():
    assert parse_time_of_day("") is None
    assert parse_time_of_day("7:30") == TimeOfDay(7, 30)
    assert parse_time_of_day("8") == TimeOfDay(8, 0)
    with pytest.raises(ValueError):
        parse_time_of_day("x")
    t = TimeOfDay(10, 15)
    assert t.is_before(10, 15)
    assert not t.is_after(10, 15)
    assert t.is_after(9, 59)
    assert not t.is_before(9, 59)