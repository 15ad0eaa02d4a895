"""Resolver that orders A/AAAA answers by how fast each address accepts a TCP connection."""

from __future__ import annotations

import queue
import socket
import threading
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import dns.message
import dns.rdatatype
import dns.rrset

from .message import logger
from .resolver import ClientInfo, Resolver

DEFAULT_PORT = 443
PROBE_TIMEOUT = 2.0


@dataclass
class FastestTCPOptions:
    """Settings for TCP probing.

    port 0 selects 443. With wait_all, every probe must finish and the records
    are sorted by response time; otherwise only the fastest is moved to the
    front. success_ttl_min raises the TTL of probed records.
    """

    port: int = 0
    wait_all: bool = False
    success_ttl_min: int = 0


@dataclass(eq=False)
class _Entry:
    rdata: object
    ttl: int


_Result = Tuple[_Entry, Optional[BaseException]]


class FastestTCP(Resolver):
    """Resolves upstream, then probes the answer IPs and puts the fastest first.

    Best combined with a cache, as every uncached query costs TCP probes.
    """

    def __init__(
        self, ident: str, resolver: Resolver, opt: Optional[FastestTCPOptions] = None
    ) -> None:
        opt = opt if opt is not None else FastestTCPOptions()
        self.ident = ident
        self.resolver = resolver
        self.opt = opt
        self.port = opt.port or DEFAULT_PORT

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        log = logger(self.ident, q, ci)
        a = self.resolver.resolve(q, ci)
        if a is None:
            return None
        qtype = q.question[0].rdtype
        if qtype not in (dns.rdatatype.A, dns.rdatatype.AAAA):
            return a

        positions = [i for i, rrset in enumerate(a.answer) if rrset.rdtype == qtype]
        entries = [_Entry(rd, a.answer[i].ttl) for i in positions for rd in a.answer[i]]
        if len(entries) < 2:
            return a

        try:
            if self.opt.wait_all:
                ordered = self._probe_all(log, entries)
            else:
                ordered = self._probe_fastest(log, entries)
        except OSError as e:
            log.debug("tcp probe failed port=%d: %s", self.port, e)
            return a

        remaining = iter(ordered)
        for i in positions:
            old = a.answer[i]
            new = dns.rrset.RRset(old.name, old.rdclass, old.rdtype)
            for _ in range(len(old)):
                entry = next(remaining)
                new.add(entry.rdata, max(entry.ttl, self.opt.success_ttl_min))
            a.answer[i] = new
        return a

    def _probe_fastest(self, log, entries: List[_Entry]) -> List[_Entry]:
        results = self._probe(log, entries)
        try:
            fastest, error = results.get(timeout=PROBE_TIMEOUT)
        except queue.Empty:
            raise TimeoutError("tcp probe timed out") from None
        if error is not None:
            raise error
        return [fastest] + [e for e in entries if e is not fastest]

    def _probe_all(self, log, entries: List[_Entry]) -> List[_Entry]:
        results = self._probe(log, entries)
        deadline = time.monotonic() + PROBE_TIMEOUT
        ordered = []
        for _ in entries:
            remaining = deadline - time.monotonic()
            try:
                entry, error = results.get(timeout=max(remaining, 0.0))
            except queue.Empty:
                raise TimeoutError("tcp probe timed out") from None
            if error is not None:
                raise error
            ordered.append(entry)
        return ordered

    def _probe(self, log, entries: List[_Entry]) -> "queue.Queue[_Result]":
        results: "queue.Queue[_Result]" = queue.Queue()

        def run(entry: _Entry) -> None:
            ip = str(entry.rdata.address)
            start = time.monotonic()
            log.debug("sending tcp probe ip=%s port=%d", ip, self.port)
            try:
                with socket.create_connection((ip, self.port), timeout=PROBE_TIMEOUT):
                    pass
            except OSError as e:
                results.put((entry, e))
                return
            log.debug(
                "tcp probe finished ip=%s response-time=%.3fs", ip, time.monotonic() - start
            )
            results.put((entry, None))

        for entry in entries:
            threading.Thread(target=run, args=(entry,), daemon=True).start()
        return results