"""Resolver that writes a log line for every query it passes on."""

from __future__ import annotations

import datetime
import enum
import json
import sys
import threading
from dataclasses import dataclass
from typing import IO, List, Optional, Tuple, Union

import dns.edns
import dns.message
import dns.rdataclass
import dns.rdatatype

from .resolver import ClientInfo, Resolver


class LogFormat(str, enum.Enum):
    """Output format of the query log."""

    TEXT = "text"
    JSON = "json"


@dataclass
class QueryLogResolverOptions:
    """Where to write the log (blank for standard output) and in which format."""

    output_file: str = ""
    output_format: Union[LogFormat, str] = LogFormat.TEXT


def _quote(value: str) -> str:
    if value == "" or any(
        c.isspace() or c in '="' or not c.isprintable() for c in value
    ):
        return json.dumps(value)
    return value


class QueryLogResolver(Resolver):
    """Logs each query's details and forwards it unchanged."""

    def __init__(
        self,
        ident: str,
        resolver: Resolver,
        opt: Optional[QueryLogResolverOptions] = None,
    ) -> None:
        opt = opt if opt is not None else QueryLogResolverOptions()
        fmt = opt.output_format or LogFormat.TEXT
        try:
            self._format = LogFormat(fmt)
        except ValueError:
            raise ValueError(f"invalid output format {str(fmt)!r}") from None
        self.ident = ident
        self.resolver = resolver
        self._lock = threading.Lock()
        self._owned = bool(opt.output_file)
        self._stream: IO[str] = (
            open(opt.output_file, "a", encoding="utf-8") if self._owned else sys.stdout
        )

    def resolve(self, q: dns.message.Message, ci: ClientInfo) -> Optional[dns.message.Message]:
        question = q.question[0]
        attrs: List[Tuple[str, str]] = [
            ("source-ip", str(ci.source_ip) if ci.source_ip is not None else "<nil>"),
            ("question-name", str(question.name)),
            ("question-class", dns.rdataclass.to_text(question.rdclass)),
            ("question-type", dns.rdatatype.to_text(question.rdtype)),
        ]
        if q.edns >= 0:
            for option in q.options:
                if isinstance(option, dns.edns.ECSOption):
                    attrs.append(("ecs-addr", str(option.address)))
        self._emit(attrs)
        return self.resolver.resolve(q, ci)

    def _emit(self, attrs: List[Tuple[str, str]]) -> None:
        now = datetime.datetime.now().astimezone().isoformat(timespec="milliseconds")
        record = [("time", now)] + attrs
        if self._format is LogFormat.JSON:
            line = json.dumps(dict(record))
        else:
            line = " ".join(f"{key}={_quote(value)}" for key, value in record)
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()

    def close(self) -> None:
        """Close the output file if this resolver opened one."""
        with self._lock:
            if self._owned and not self._stream.closed:
                self._stream.close()

    def __enter__(self) -> "QueryLogResolver":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()