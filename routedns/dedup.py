"""Resolver that merges identical concurrent queries into one upstream request."""

from __future__ import annotations

import copy
import ipaddress
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import dns.edns
import dns.message

from .message import logger
from .resolver import ClientInfo, Resolver

_Key = Tuple[str, int, int, int, int]


@dataclass
class _Inflight:
    done: threading.Event = field(default_factory=threading.Event)
    answer: Optional[dns.message.Message] = None
    error: Optional[BaseException] = None


def _ecs_part(q: dns.message.Message) -> Tuple[int, int, int]:
    if q.edns < 0:
        return 0, 0, 0
    for option in q.options:
        if not isinstance(option, dns.edns.ECSOption):
            continue
        addr = ipaddress.ip_address(option.address)
        if option.family == 1 and addr.version == 4:
            return int(addr), 0, option.srclen
        if option.family == 2 and addr.version == 6:
            return 0, int(addr), option.srclen
        break
    return 0, 0, 0


def _key(q: dns.message.Message) -> _Key:
    question = q.question[0]
    v4, v6, mask = _ecs_part(q)
    return str(question.name), int(question.rdtype), v4, v6, mask


class RequestDedup(Resolver):
    """Holds duplicate queries until the first one returns and gives them all its answer."""

    def __init__(self, ident: str, resolver: Resolver) -> None:
        self.ident = ident
        self.resolver = resolver
        self._lock = threading.Lock()
        self._inflight: Dict[_Key, _Inflight] = {}

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        key = _key(q)
        with self._lock:
            request = self._inflight.get(key)
            leader = request is None
            if leader:
                request = _Inflight()
                self._inflight[key] = request

        log = logger(self.ident, q, ci)
        if not leader:
            log.debug("duplicated request, waiting for first answer")
            request.done.wait()
            if request.error is not None:
                raise request.error
            return copy.deepcopy(request.answer) if request.answer is not None else None

        log.debug("forwarding query to resolver %s", self.resolver)
        try:
            request.answer = self.resolver.resolve(q, ci)
        except BaseException as e:
            request.error = e
            raise
        finally:
            request.done.set()
            with self._lock:
                del self._inflight[key]
        if request.answer is None:
            return None
        return copy.deepcopy(request.answer)