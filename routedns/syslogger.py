"""Resolver that passes queries through and reports them to a syslog server."""

from __future__ import annotations

import datetime
import json
import os
import socket
import sys
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

import dns.message
import dns.rcode
import dns.rdataclass
import dns.rdatatype

from .message import LOG, logger, qname, qtype
from .resolver import ClientInfo, Resolver

_LOCAL_PATHS = ("/dev/log", "/var/run/syslog", "/var/run/log")
_MAX_PRIORITY = 191


@dataclass
class SyslogOptions:
    """Where and what to log.

    An empty address selects the local syslog daemon; otherwise network is
    "udp" (the default) or "tcp" and address is host:port.
    """

    network: str = ""
    address: str = ""
    priority: int = 0
    tag: str = ""
    log_request: bool = False
    log_response: bool = False
    verbose: bool = False


def _split_address(address: str) -> Tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"invalid syslog address {address!r}")
    return host.strip("[]"), int(port)


class _SyslogWriter:
    def __init__(self, network: str, address: str, priority: int, tag: str) -> None:
        if not 0 <= priority <= _MAX_PRIORITY:
            raise ValueError("log/syslog: invalid priority")
        self.priority = priority
        self.tag = tag or os.path.basename(sys.argv[0] or "routedns")
        self.hostname = socket.gethostname()
        self.local = address == ""
        self._lock = threading.Lock()
        if self.local:
            self.sock, self.stream = self._connect_local()
        else:
            self.sock, self.stream = self._connect_remote(network or "udp", address)

    @staticmethod
    def _connect_local() -> Tuple[socket.socket, bool]:
        family = getattr(socket, "AF_UNIX", None)
        if family is None:
            raise OSError("unix syslog delivery error")
        for path in _LOCAL_PATHS:
            for socktype in (socket.SOCK_DGRAM, socket.SOCK_STREAM):
                sock = socket.socket(family, socktype)
                try:
                    sock.connect(path)
                except OSError:
                    sock.close()
                    continue
                return sock, socktype == socket.SOCK_STREAM
        raise OSError("unix syslog delivery error")

    @staticmethod
    def _connect_remote(network: str, address: str) -> Tuple[socket.socket, bool]:
        host, port = _split_address(address)
        if network.startswith("udp"):
            info = socket.getaddrinfo(host, port, 0, socket.SOCK_DGRAM)[0]
            sock = socket.socket(info[0], socket.SOCK_DGRAM)
            try:
                sock.connect(info[4])
            except OSError:
                sock.close()
                raise
            return sock, False
        if network.startswith("tcp"):
            return socket.create_connection((host, port), timeout=5.0), True
        raise ValueError(f"unsupported syslog network {network!r}")

    def write(self, msg: str) -> None:
        now = datetime.datetime.now()
        stamp = f"{now:%b} {now.day:2d} {now:%H:%M:%S}"
        pid = os.getpid()
        if self.local:
            line = f"<{self.priority}>{stamp} {self.tag}[{pid}]: {msg}"
        else:
            line = f"<{self.priority}>{stamp} {self.hostname} {self.tag}[{pid}]: {msg}"
        if self.stream and not line.endswith("\n"):
            line += "\n"
        data = line.encode("utf-8")
        with self._lock:
            if self.stream:
                self.sock.sendall(data)
            else:
                self.sock.send(data)


def _record_text(rrset, rd) -> str:
    return (
        f"{rrset.name} {rrset.ttl} {dns.rdataclass.to_text(rrset.rdclass)} "
        f"{dns.rdatatype.to_text(rrset.rdtype)} {rd.to_text()}"
    )


class SyslogResolver(Resolver):
    """Forwards every query unmodified and sends its details to syslog."""

    def __init__(self, ident: str, resolver: Resolver, opt: Optional[SyslogOptions] = None) -> None:
        opt = opt if opt is not None else SyslogOptions()
        self.ident = ident
        self.resolver = resolver
        self.opt = opt
        self._writer: Optional[_SyslogWriter] = None
        try:
            self._writer = _SyslogWriter(opt.network, opt.address, opt.priority, opt.tag)
        except (OSError, ValueError) as e:
            LOG.error("failed to initialize syslog: %s", e)

    def _send(self, msg: str, q: dns.message.Message, ci: ClientInfo) -> None:
        if self._writer is None:
            logger(self.ident, q, ci).error("failed to send syslog: no syslog connection")
            return
        try:
            self._writer.write(msg)
        except OSError as e:
            logger(self.ident, q, ci).error("failed to send syslog: %s", e)

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        prefix = f"id={self.ident} qid={q.id}"
        if self.opt.log_request:
            client = str(ci.source_ip) if ci.source_ip is not None else "<nil>"
            self._send(
                f"{prefix} type=query client={client} qtype={qtype(q)} qname={qname(q)}", q, ci
            )

        a = self.resolver.resolve(q, ci)
        if a is None or not self.opt.log_response:
            return a

        if a.rcode() == dns.rcode.NOERROR:
            records: List[str] = []
            for rrset in a.answer:
                if not self.opt.verbose and rrset.rdtype != q.question[0].rdtype:
                    continue
                records.extend(_record_text(rrset, rd) for rd in rrset)
            for i, text in enumerate(records, start=1):
                quoted = json.dumps(text, ensure_ascii=False)
                self._send(
                    f"{prefix} type=answer answer-num={i}/{len(records)} "
                    f"qtype={qtype(q)} qname={qname(q)} answer={quoted}",
                    q,
                    ci,
                )
            if not records:
                self._send(
                    f"{prefix} type=answer qtype={qtype(q)} qname={qname(q)} rcode=NODATA", q, ci
                )
        else:
            try:
                rcode = dns.rcode.to_text(a.rcode())
            except ValueError:
                rcode = ""
            self._send(
                f"{prefix} type=answer qtype={qtype(q)} qname={qname(q)} rcode={rcode}", q, ci
            )
        return a