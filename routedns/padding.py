"""EDNS0 padding of queries and responses on encrypted transports."""

from __future__ import annotations

from typing import List

import dns.edns
import dns.flags
import dns.message

QUERY_PADDING_BLOCK_SIZE = 128
RESPONSE_PADDING_BLOCK_SIZE = 468

_PADDING = dns.edns.OptionType.PADDING


def _padding(length: int) -> dns.edns.Option:
    return dns.edns.GenericOption(_PADDING, b"\x00" * length)


def _set_options(m: dns.message.Message, options: List[dns.edns.Option]) -> None:
    m.use_edns(m.edns, m.ednsflags, m.payload, options=options)


def _reset_padding(m: dns.message.Message) -> tuple:
    options = list(m.options)
    positions = [i for i, o in enumerate(options) if o.otype == _PADDING]
    for i in positions:
        options[i] = _padding(0)
    if not positions:
        options.append(_padding(0))
        positions = [len(options) - 1]
    _set_options(m, options)
    return options, positions[-1]


def pad_answer(q: dns.message.Message, a: dns.message.Message) -> None:
    """Pad the answer to a multiple of the response block size, within the query's UDP size."""
    if q.edns < 0:
        return
    if a.edns < 0:
        a.use_edns(0, ednsflags=q.ednsflags & dns.flags.DO, payload=q.payload)
    options, index = _reset_padding(a)
    length = len(a.to_wire())
    pad_len = RESPONSE_PADDING_BLOCK_SIZE - length % RESPONSE_PADDING_BLOCK_SIZE
    if length + pad_len > q.payload:
        pad_len = max(q.payload - length, 0)
    options[index] = _padding(pad_len)
    _set_options(a, options)


def pad_query(q: dns.message.Message) -> None:
    """Pad the query to a multiple of the query block size."""
    if q.edns < 0:
        return
    options, index = _reset_padding(q)
    length = len(q.to_wire())
    options[index] = _padding(QUERY_PADDING_BLOCK_SIZE - length % QUERY_PADDING_BLOCK_SIZE)
    _set_options(q, options)


def strip_padding(m: dns.message.Message) -> None:
    """Remove any padding options from the message."""
    if m.edns < 0:
        return
    _set_options(m, [o for o in m.options if o.otype != _PADDING])