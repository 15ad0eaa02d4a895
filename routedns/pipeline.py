"""Pipelined DNS client that multiplexes many queries over one upstream connection."""

from __future__ import annotations

import abc
import copy
import socket
import struct
import threading
import queue
from typing import Dict, Optional, Union

import dns.message

from .message import LOG, QueryTimeoutError, qname, rcode_name
from .metrics import get_var_int, get_var_map

DEFAULT_QUERY_TIMEOUT = 2.0
IDLE_TIMEOUT = 10.0

_CLOSE = object()


class _Wakeup:
    """Token the reader puts on the queue to wake the writer of its connection."""


class DNSConnection:
    """A socket carrying DNS messages, length-prefixed on stream sockets."""

    def __init__(self, sock: socket.socket, stream: Optional[bool] = None) -> None:
        self.sock = sock
        self.stream = sock.type == socket.SOCK_STREAM if stream is None else stream

    def write_msg(self, msg: dns.message.Message) -> None:
        """Send one DNS message."""
        wire = msg.to_wire()
        if self.stream:
            self.sock.sendall(struct.pack("!H", len(wire)) + wire)
        else:
            self.sock.send(wire)

    def read_msg(self, timeout: Optional[float] = None) -> dns.message.Message:
        """Receive one DNS message; raises EOFError when the peer closed the connection."""
        self.sock.settimeout(timeout)
        if self.stream:
            (size,) = struct.unpack("!H", self._recv_exact(2))
            wire = self._recv_exact(size)
        else:
            wire = self.sock.recv(65535)
        return dns.message.from_wire(wire)

    def _recv_exact(self, size: int) -> bytes:
        data = bytearray()
        while len(data) < size:
            chunk = self.sock.recv(size - len(data))
            if not chunk:
                raise EOFError("connection closed by peer")
            data.extend(chunk)
        return bytes(data)

    def close(self) -> None:
        """Shut down and close the socket, waking any blocked reader."""
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self.sock.close()
        except OSError:
            pass

    def __enter__(self) -> "DNSConnection":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class DNSDialer(abc.ABC):
    """Opens connections to an upstream DNS server."""

    @abc.abstractmethod
    def dial(self, address: str) -> DNSConnection:
        """Return a new connection to address."""


def _question_text(question) -> str:
    return f";{question.name}\t{question.rdclass.to_text(question.rdclass)}\t{question.rdtype.to_text(question.rdtype)}"


class _Request:
    def __init__(self, q: dns.message.Message) -> None:
        self.q = q
        self.answer: Optional[dns.message.Message] = None
        self.error: Optional[BaseException] = None
        self.done = threading.Event()
        self.abandoned = False

    def mark_done(self, a: Optional[dns.message.Message], error: Optional[BaseException]) -> None:
        if a is not None:
            a.id = self.q.id
        self.answer = a
        self.error = error
        self.done.set()

    def result(self) -> Optional[dns.message.Message]:
        if self.error is not None:
            raise self.error
        a = self.answer
        if a is not None and a.question and self.q.question:
            q0, a0 = self.q.question[0], a.question[0]
            if a0.name != q0.name or a0.rdclass != q0.rdclass or a0.rdtype != q0.rdtype:
                raise ValueError(
                    f"expected answer for {_question_text(q0)}, got {_question_text(a0)}"
                )
        return a


class _InFlight:
    """Maps upstream query IDs back to the requests waiting for them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: Dict[int, _Request] = {}
        self._counter = 0
        self._max_len = 0

    def add(self, req: _Request) -> dns.message.Message:
        with self._lock:
            self._counter = (self._counter + 1) & 0xFFFF
            self._requests[self._counter] = req
            query = copy.deepcopy(req.q)
            query.id = self._counter
            self._max_len = max(self._max_len, len(self._requests))
            return query

    def pop(self, ident: int) -> Optional[_Request]:
        with self._lock:
            return self._requests.pop(ident, None)

    @property
    def max_queue_len(self) -> int:
        with self._lock:
            return self._max_len


class Pipeline:
    """Sends queries over a single connection opened on demand, matching answers by ID.

    The connection is re-opened after the server closes it or it stays idle.
    """

    def __init__(self, ident: str, addr: str, dialer: DNSDialer, timeout: float = 0.0) -> None:
        self.ident = ident
        self.addr = addr
        self.dialer = dialer
        self.timeout = timeout or DEFAULT_QUERY_TIMEOUT
        self._requests: "queue.Queue[Union[_Request, _Wakeup, object]]" = queue.Queue()
        self._inflight = _InFlight()
        self._closed = threading.Event()
        self._m_query = get_var_int("client", ident, "query")
        self._m_response = get_var_map("client", ident, "response")
        self._m_err = get_var_map("client", ident, "error")
        self._m_max_queue = get_var_int("client", ident, "maxqueue")
        self._thread = threading.Thread(target=self._run, name=f"pipeline-{ident}", daemon=True)
        self._thread.start()

    def resolve(self, q: dns.message.Message) -> Optional[dns.message.Message]:
        """Send a query and wait for its answer; raises QueryTimeoutError on timeout."""
        if self._closed.is_set():
            raise RuntimeError("pipeline is closed")
        req = _Request(q)
        self._requests.put(req)
        if not req.done.wait(self.timeout):
            req.abandoned = True
            self._m_err.add("querytimeout", 1)
            raise QueryTimeoutError(q)
        return req.result()

    def close(self) -> None:
        """Stop the pipeline and close its connection."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._requests.put(_CLOSE)

    def __enter__(self) -> "Pipeline":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _run(self) -> None:
        leftover = None
        while not self._closed.is_set():
            item = leftover if leftover is not None else self._requests.get()
            leftover = None
            if item is _CLOSE:
                break
            if isinstance(item, _Wakeup) or item.abandoned:
                continue
            LOG.debug("opening connection addr=%s", self.addr)
            try:
                conn = self.dialer.dial(self.addr)
            except Exception as e:  # reported to the request that triggered the dial
                self._m_err.add("open", 1)
                LOG.warning("failed to open connection addr=%s: %s", self.addr, e)
                item.mark_done(None, e)
                continue
            leftover = self._serve(conn, item)

    def _serve(self, conn: DNSConnection, first: _Request) -> Optional[_Request]:
        wakeup = _Wakeup()
        stopped = threading.Event()
        reader = threading.Thread(
            target=self._read_loop, args=(conn, stopped, wakeup), daemon=True
        )
        reader.start()
        item = first
        leftover = None
        try:
            while True:
                if item is None:
                    item = self._requests.get()
                if item is _CLOSE:
                    break
                if isinstance(item, _Wakeup):
                    if item is wakeup:
                        break
                    item = None
                    continue
                if stopped.is_set():
                    leftover = item
                    break
                if item.abandoned:
                    item = None
                    continue
                query = self._inflight.add(item)
                LOG.debug("sending query addr=%s qname=%s", self.addr, qname(query))
                self._m_query.add(1)
                try:
                    conn.write_msg(query)
                except Exception as e:  # fail the request and drop this connection
                    item.mark_done(None, e)
                    self._inflight.pop(query.id)
                    self._m_err.add("send_query", 1)
                    LOG.debug(
                        "failed sending query addr=%s qname=%s: %s", self.addr, qname(query), e
                    )
                    break
                item = None
        finally:
            conn.close()
            reader.join()
        return leftover

    def _read_loop(self, conn: DNSConnection, stopped: threading.Event, wakeup: _Wakeup) -> None:
        try:
            while True:
                try:
                    a = conn.read_msg(IDLE_TIMEOUT)
                except TimeoutError:
                    LOG.debug("connection terminated by idle timeout addr=%s", self.addr)
                    return
                except EOFError:
                    self._m_err.add("server_eof", 1)
                    LOG.debug("connection terminated by server addr=%s", self.addr)
                    return
                except OSError:
                    self._m_err.add("server_term", 1)
                    LOG.debug("connection terminated by server addr=%s", self.addr)
                    return
                except Exception as e:  # unreadable data, give up on this connection
                    self._m_err.add("read", 1)
                    LOG.warning("read failed addr=%s: %s", self.addr, e)
                    return
                req = self._inflight.pop(a.id)
                if req is None:
                    self._m_err.add("unexpected_a", 1)
                    LOG.warning(
                        "unexpected answer received, ignoring addr=%s qname=%s",
                        self.addr,
                        qname(a),
                    )
                    continue
                self._m_response.add(rcode_name(a), 1)
                req.mark_done(a, None)
                length = self._inflight.max_queue_len
                if length > self._m_max_queue.value():
                    self._m_max_queue.set(length)
        finally:
            stopped.set()
            self._requests.put(wakeup)