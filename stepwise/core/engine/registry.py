"""
Placeholder registry — the session's shared table of discovered values.

Values are written at most once per name. The first publisher wins;
a later publish of a different value is reported as a conflict and
leaves the original in place. Re-publishing the same value is a no-op.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from enum import StrEnum
from types import MappingProxyType

logger = logging.getLogger(__name__)


class _Pending:
    """Sentinel for a name that has no value yet."""

    _instance: _Pending | None = None

    def __new__(cls) -> _Pending:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "PENDING"

    def __bool__(self) -> bool:
        return False


PENDING = _Pending()


class PublishResult(StrEnum):
    OK = "ok"
    CONFLICT = "conflict"


class PlaceholderRegistry:
    """Thread-safe first-writer-wins name → value table."""

    def __init__(self, seeds: Mapping[str, str] | None = None):
        self._lock = threading.Lock()
        self._values: dict[str, str] = {}
        for name, value in (seeds or {}).items():
            self._values[name] = str(value)

    def resolve(self, name: str) -> str | _Pending:
        """Return the value for ``name``, or PENDING."""
        with self._lock:
            return self._values.get(name, PENDING)

    def publish(self, name: str, value: str) -> PublishResult:
        """Record ``value`` under ``name`` unless a different value exists."""
        value = str(value)
        with self._lock:
            existing = self._values.get(name)
            if existing is None:
                self._values[name] = value
                logger.debug("Published {%s} = %r", name, value)
                return PublishResult.OK
            if existing == value:
                return PublishResult.OK
        logger.warning(
            "Conflicting value for {%s}: kept %r, rejected %r", name, existing, value,
        )
        return PublishResult.CONFLICT

    def is_resolved(self, names: Iterable[str]) -> bool:
        with self._lock:
            return all(n in self._values for n in names)

    def missing(self, names: Iterable[str]) -> set[str]:
        with self._lock:
            return {n for n in names if n not in self._values}

    def values_for(self, names: Iterable[str]) -> dict[str, str]:
        """Resolved subset of ``names``."""
        with self._lock:
            return {n: self._values[n] for n in names if n in self._values}

    def snapshot(self) -> Mapping[str, str]:
        """Immutable copy of the current table."""
        with self._lock:
            return MappingProxyType(dict(self._values))

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
