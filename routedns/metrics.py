"""Process-wide named counters used to expose resolver statistics."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Union

_registry: Dict[str, Union["VarInt", "VarMap"]] = {}
_registry_lock = threading.Lock()


class VarInt:
    """A thread-safe integer counter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def add(self, delta: int) -> None:
        with self._lock:
            self._value += delta

    def set(self, value: int) -> None:
        with self._lock:
            self._value = value

    def value(self) -> int:
        with self._lock:
            return self._value


class VarMap:
    """A thread-safe mapping of string keys to integer counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: Dict[str, int] = {}

    def add(self, key: str, delta: int) -> None:
        with self._lock:
            self._values[key] = self._values.get(key, 0) + delta

    def get(self, key: str) -> Optional[int]:
        with self._lock:
            return self._values.get(key)

    def items(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._values)


def _full_name(base: str, ident: str, name: str) -> str:
    return f"routedns.{base}.{ident}.{name}"


def _get_or_create(fullname: str, kind: type):
    with _registry_lock:
        existing = _registry.get(fullname)
        if existing is None:
            existing = kind()
            _registry[fullname] = existing
        elif not isinstance(existing, kind):
            raise TypeError(f"variable {fullname!r} is not a {kind.__name__}")
        return existing


def get_var_int(base: str, ident: str, name: str) -> VarInt:
    """Return the integer counter registered under the given path, creating it if needed."""
    return _get_or_create(_full_name(base, ident, name), VarInt)


def get_var_map(base: str, ident: str, name: str) -> VarMap:
    """Return the map counter registered under the given path, creating it if needed."""
    return _get_or_create(_full_name(base, ident, name), VarMap)


class RouterMetrics:
    """Counters shared by routers and resolver groups."""

    def __init__(self, ident: str, available: int) -> None:
        self.available = get_var_int("router", ident, "available")
        self.available.set(available)
        self.route = get_var_map("router", ident, "route")
        self.failure = get_var_map("router", ident, "failure")


class FailRouterMetrics(RouterMetrics):
    """Router counters plus a failover count."""

    def __init__(self, ident: str, available: int) -> None:
        super().__init__(ident, available)
        self.failover = get_var_int("router", ident, "failover")