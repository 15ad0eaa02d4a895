"""Routes that select a resolver based on properties of the query and the client."""

from __future__ import annotations

import datetime
import ipaddress
import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Sequence, Union

import dns.exception
import dns.message
import dns.rdatatype

from .resolver import ClientInfo, Resolver

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

_MATCH_ALL: Pattern[str] = re.compile("")

_WEEKDAYS = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}
_WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

_CLASSES = {"": 0, "IN": 1, "INET": 1, "CH": 3, "HS": 4, "NONE": 254, "ANY": 255}
_CLASS_NAMES = {1: "IN", 3: "CH", 4: "HS", 254: "NONE", 255: "ANY"}

_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class TimeOfDay:
    """A wall-clock time given as hour and minute."""

    hour: int
    minute: int = 0

    def is_before(self, hour: int, minute: int) -> bool:
        """True if this time is at or before hour:minute."""
        return self.hour < hour or (self.hour == hour and self.minute <= minute)

    def is_after(self, hour: int, minute: int) -> bool:
        """True if this time is strictly after hour:minute."""
        return self.hour > hour or (self.hour == hour and self.minute > minute)

    def __str__(self) -> str:
        return f"{self.hour:2d}:{self.minute:2d}"


def _to_int(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"invalid number {text!r}")
    return int(text)


def parse_time_of_day(t: str) -> Optional[TimeOfDay]:
    """Parse 'HH' or 'HH:MM'; an empty string yields None."""
    if t == "":
        return None
    hour_text, sep, minute_text = t.partition(":")
    hour = _to_int(hour_text)
    minute = _to_int(minute_text) if sep else 0
    return TimeOfDay(hour, minute)


def string_to_type(types: Sequence[str]) -> List[int]:
    """Convert type names such as 'A' or 'mx' to their numeric values."""
    result = []
    for typ in types:
        upper = typ.upper()
        try:
            if upper.startswith("TYPE"):
                raise dns.rdatatype.UnknownRdatatype
            result.append(int(dns.rdatatype.from_text(upper)))
        except dns.exception.DNSException:
            raise ValueError(f"unknown type '{list(types)}'") from None
    return result


def string_to_class(s: str) -> int:
    """Convert a class name such as 'INET' to its numeric value; '' is 0."""
    try:
        return _CLASSES[s.upper()]
    except KeyError:
        raise ValueError(f"unknown class '{s}'") from None


def class_to_string(cls: int) -> str:
    """Convert a numeric class to its name."""
    try:
        return _CLASS_NAMES[cls]
    except KeyError:
        raise ValueError(f"unknown class identifier {cls}") from None


def strings_to_weekdays(weekdays: Sequence[str]) -> List[int]:
    """Convert 'mon'..'sun' to weekday numbers, Monday being 0."""
    result = []
    for day in weekdays:
        try:
            result.append(_WEEKDAYS[day])
        except KeyError:
            raise ValueError(
                f"unrecognized weekday {day!r}, must be 'mon', 'tue', 'wed', "
                "'thu', 'fri', 'sat', 'sun'"
            ) from None
    return result


def _compile(expr: str) -> Pattern[str]:
    try:
        return re.compile(expr)
    except re.error as e:
        raise ValueError(f"invalid expression {expr!r}: {e}") from e


def _contains(network: IPNetwork, ip) -> bool:
    if ip is None:
        return False
    addr = ipaddress.ip_address(ip)
    if isinstance(addr, ipaddress.IPv6Address) and addr.ipv4_mapped is not None:
        addr = addr.ipv4_mapped
    return addr.version == network.version and addr in network


@dataclass(eq=False)
class Route:
    """Conditions a query must meet to be sent to a resolver."""

    resolver: Resolver
    types: List[int] = field(default_factory=list)
    cls: int = 0
    name: Pattern[str] = _MATCH_ALL
    source: Optional[IPNetwork] = None
    weekdays: List[int] = field(default_factory=list)
    before: Optional[TimeOfDay] = None
    after: Optional[TimeOfDay] = None
    doh_path: Pattern[str] = _MATCH_ALL
    listener_id: Pattern[str] = _MATCH_ALL
    tls_server_name: Pattern[str] = _MATCH_ALL
    inverted: bool = False

    def match(self, q: dns.message.Message, ci: ClientInfo) -> bool:
        """Return True if the query should take this route."""
        question = q.question[0]
        if not self._match_type(int(question.rdtype)):
            return self.inverted
        if self.cls != 0 and self.cls != int(question.rdclass):
            return self.inverted
        if not self.name.search(str(question.name)):
            return self.inverted
        if self.source is not None and not _contains(self.source, ci.source_ip):
            return self.inverted
        if not self.doh_path.search(ci.doh_path):
            return self.inverted
        if not self.listener_id.search(ci.listener):
            return self.inverted
        if not self.tls_server_name.search(ci.tls_server_name):
            return self.inverted
        if self.weekdays or self.before is not None or self.after is not None:
            now = datetime.datetime.now()
            if self.weekdays and now.weekday() not in self.weekdays:
                return self.inverted
            if self.before is not None and not self.before.is_after(now.hour, now.minute):
                return self.inverted
            if self.after is not None and not self.after.is_before(now.hour, now.minute):
                return self.inverted
        return not self.inverted

    def invert(self, value: bool) -> None:
        """Set whether the matching result is inverted."""
        self.inverted = value

    def is_default(self) -> bool:
        """True if the route has no class, type or name condition."""
        return self.cls == 0 and not self.types and self.name.pattern == ""

    def _match_type(self, typ: int) -> bool:
        return not self.types or typ in self.types

    def __str__(self) -> str:
        if self.is_default():
            return "(default)"
        fragments = []
        if self.types:
            names = " ".join(dns.rdatatype.to_text(t) for t in self.types)
            fragments.append(f"types=[{names}]")
        if self.name.pattern:
            fragments.append("name=" + self.name.pattern)
        if self.cls != 0:
            fragments.append("class=" + _CLASS_NAMES.get(self.cls, ""))
        if self.source is not None:
            fragments.append(f"source={self.source}")
        if self.doh_path.pattern:
            fragments.append("doh-path=" + self.doh_path.pattern)
        if self.listener_id.pattern:
            fragments.append("listener=" + self.listener_id.pattern)
        if self.tls_server_name.pattern:
            fragments.append("servername=" + self.tls_server_name.pattern)
        if self.weekdays:
            days = " ".join(_WEEKDAY_NAMES[d] for d in self.weekdays)
            fragments.append(f"weekdays=[{days}]")
        if self.after is not None:
            fragments.append(f"after={self.after}")
        if self.before is not None:
            fragments.append(f"before={self.before}")
        if self.inverted:
            fragments.append("invert=true")
        return "(" + ",".join(fragments) + ")"


def new_route(
    name: str,
    cls: str,
    types: Optional[Sequence[str]],
    weekdays: Optional[Sequence[str]],
    before: str,
    after: str,
    source: str,
    doh_path: str,
    listener_id: str,
    tls_server_name: str,
    resolver: Optional[Resolver],
) -> Route:
    """Build a route from its textual parameters; raises ValueError on bad input."""
    if resolver is None:
        raise ValueError("no resolver defined for route")
    parsed_types = string_to_type(types or [])
    parsed_weekdays = strings_to_weekdays(weekdays or [])
    parsed_before = parse_time_of_day(before)
    parsed_after = parse_time_of_day(after)
    parsed_class = string_to_class(cls)
    name_re = _compile(name)
    doh_re = _compile(doh_path)
    listener_re = _compile(listener_id)
    tls_re = _compile(tls_server_name)
    network: Optional[IPNetwork] = None
    if source != "":
        if "/" not in source:
            raise ValueError(f"invalid CIDR address: {source}")
        network = ipaddress.ip_network(source, strict=False)
    return Route(
        resolver=resolver,
        types=parsed_types,
        cls=parsed_class,
        name=name_re,
        source=network,
        weekdays=parsed_weekdays,
        before=parsed_before,
        after=parsed_after,
        doh_path=doh_re,
        listener_id=listener_re,
        tls_server_name=tls_re,
    )