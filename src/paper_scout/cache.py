"""In-memory TTL cache with lazy expiry.

Entries are only evicted when read after their age exceeds ``max_age``;
there is no background sweeper.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")

_DEFAULT_MAX_AGE_SECONDS = 3600.0


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    """A cached value and the clock reading at which it was stored."""

    value: T
    timestamp: float


class TTLCache(Generic[T]):
    """Map of string keys to values that expire ``max_age`` seconds after write.

    Attributes:
        name: Label used in log events.
        max_age: Maximum entry age in seconds (inclusive).
    """

    def __init__(
        self,
        name: str,
        max_age: float = _DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.max_age = max_age
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def set(self, key: str, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, timestamp=self._clock())

    def get(self, key: str) -> T | None:
        """Return the cached value, or ``None`` on miss or expiry.

        An expired entry is deleted as a side effect of the read.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.timestamp > self.max_age:
            del self._entries[key]
            logger.debug("ttl_cache_expired", cache=self.name, key=key)
            return None

        return entry.value

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
