"""Resolver that rewrites query names with regular expressions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

import dns.exception
import dns.message
import dns.name
import dns.rrset

from .message import logger
from .resolver import ClientInfo, Resolver

_EXPANSION = re.compile(r"\$(?:\$|\{([A-Za-z0-9_]+)\}|([A-Za-z0-9_]+))")


@dataclass(frozen=True)
class ReplaceOperation:
    """A regular expression and the replacement applied to names it matches.

    The replacement may refer to groups as $1, ${1}, $name or ${name}; $$ is a
    literal dollar sign.
    """

    from_: str
    to: str


def _group(m: "re.Match[str]", name: str) -> str:
    key = int(name) if name.isdigit() else name
    try:
        value = m.group(key)
    except IndexError:
        return ""
    return value or ""


def _expand(template: str, m: "re.Match[str]") -> str:
    def sub(t: "re.Match[str]") -> str:
        if t.group(0) == "$$":
            return "$"
        return _group(m, t.group(1) or t.group(2))

    return _EXPANSION.sub(sub, template)


def _replace_all(regex: Pattern[str], template: str, s: str) -> str:
    out = []
    last = 0
    prev_end = -1
    for m in regex.finditer(s):
        if m.start() == m.end() == prev_end:
            continue
        out.append(s[last:m.start()])
        out.append(_expand(template, m))
        last = prev_end = m.end()
    out.append(s[last:])
    return "".join(out)


class Replace(Resolver):
    """Rewrites the query name, forwards it, and restores the original name in the answer."""

    def __init__(self, ident: str, resolver: Resolver, *operations: ReplaceOperation) -> None:
        self.ident = ident
        self.resolver = resolver
        self._expressions: List[Tuple[Pattern[str], str]] = []
        for op in operations:
            try:
                regex = re.compile(op.from_)
            except re.error as e:
                raise ValueError(f"invalid expression {op.from_!r}: {e}") from e
            self._expressions.append((regex, op.to))

    def _apply(self, name: str) -> str:
        for regex, to in self._expressions:
            name = _replace_all(regex, to, name)
        return name

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        if not q.question:
            raise ValueError("no question in query")
        question = q.question[0]
        old_text = str(question.name)
        new_text = self._apply(old_text)
        log = logger(self.ident, q, ci)

        if new_text == old_text:
            log.debug("forwarding unmodified query to resolver")
            return self.resolver.resolve(q, ci)

        try:
            new_name = dns.name.from_text(new_text)
        except dns.exception.DNSException as e:
            raise ValueError(f"invalid replaced name {new_text!r}: {e}") from e
        old_name = question.name
        q.question = [dns.rrset.RRset(new_name, question.rdclass, question.rdtype)]

        log.debug("forwarding modified query new-qname=%s resolver=%s", new_text, self.resolver)
        a = self.resolver.resolve(q, ci)
        if a is None:
            return None

        if a.question:
            aq = a.question[0]
            a.question = [dns.rrset.RRset(old_name, aq.rdclass, aq.rdtype)] + list(a.question[1:])
        renamed = new_name.to_text()
        for rrset in a.answer:
            if rrset.name.to_text() == renamed:
                rrset.name = old_name
        return a