"""Durable search-result cache with a last-resort stale read path.

Raw search result sets are JSON-encoded together with their write time
and stored in a string-keyed key/value store. Normal reads honour a
24-hour TTL; :meth:`PersistentSearchCache.get_stale` ignores the TTL and is
used only when every live provider has failed or is rate limited.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import diskcache
import structlog
from pydantic import ValidationError

from paper_scout.records import ResearchResult

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_TTL_SECONDS = 86400.0  # 24 hours
_DEFAULT_PREFIX = "pwc_search_"


def normalize_query(query: str) -> str:
    """Trim and lower-case a search query."""
    return query.strip().lower()


# ---------------------------------------------------------------------------
# Key/value storage
# ---------------------------------------------------------------------------


class KeyValueStore(Protocol):
    """Simple string-keyed persistent storage."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class DiskKeyValueStore:
    """``KeyValueStore`` backed by a ``diskcache.Cache`` directory.

    Attributes:
        directory: Directory path for the cache store.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self._cache: diskcache.Cache | None = None

    def _get_cache(self) -> diskcache.Cache:
        if self._cache is None:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._cache = diskcache.Cache(str(self.directory))
        return self._cache

    def get_item(self, key: str) -> str | None:
        value = self._get_cache().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        self._get_cache().set(key, value)

    def remove_item(self, key: str) -> None:
        self._get_cache().delete(key)

    def keys(self) -> list[str]:
        return [str(key) for key in self._get_cache().iterkeys()]

    def close(self) -> None:
        """Close the underlying diskcache store."""
        if self._cache is not None:
            self._cache.close()
            self._cache = None


# ---------------------------------------------------------------------------
# Search cache
# ---------------------------------------------------------------------------


class PersistentSearchCache:
    """Search result sets persisted per normalized query.

    Attributes:
        ttl_seconds: Maximum age honoured by :meth:`get`.
        prefix: Key prefix for every stored entry.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = _DEFAULT_TTL_SECONDS,
        prefix: str = _DEFAULT_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix
        self._clock = clock

    def cache_key(self, query: str, offset: int = 0) -> str:
        """Build the storage key for a query page.

        The first page is keyed by the normalized query alone; later pages
        append ``-<offset>``.
        """
        key = f"{self.prefix}{normalize_query(query)}"
        if offset:
            key = f"{key}-{offset}"
        return key

    def _read(self, query: str, offset: int) -> tuple[list[ResearchResult], float] | None:
        key = self.cache_key(query, offset)
        try:
            raw = self._store.get_item(key)
            if raw is None:
                return None
            payload: dict[str, Any] = json.loads(raw)
            results = [ResearchResult.model_validate(item) for item in payload["data"]]
            return results, float(payload["timestamp"])
        except (OSError, ValueError, KeyError, TypeError, ValidationError) as exc:
            logger.warning("search_cache_read_failed", key=key, error=str(exc))
            return None

    def get(self, query: str, offset: int = 0) -> list[ResearchResult] | None:
        """Return cached results younger than the TTL, else ``None``."""
        entry = self._read(query, offset)
        if entry is None:
            return None

        results, timestamp = entry
        age = self._clock() - timestamp
        if age >= self.ttl_seconds:
            logger.debug("search_cache_stale", query=normalize_query(query), age=round(age))
            return None

        logger.debug("search_cache_hit", query=normalize_query(query), count=len(results))
        return results

    def get_stale(self, query: str, offset: int = 0) -> list[ResearchResult] | None:
        """Return cached results regardless of age (last-resort read)."""
        entry = self._read(query, offset)
        if entry is None:
            return None
        logger.info(
            "search_cache_last_resort",
            query=normalize_query(query),
            count=len(entry[0]),
        )
        return entry[0]

    def set(self, query: str, results: list[ResearchResult], offset: int = 0) -> None:
        key = self.cache_key(query, offset)
        payload = {
            "data": [result.to_document() for result in results],
            "timestamp": self._clock(),
        }
        try:
            self._store.set_item(key, json.dumps(payload))
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("search_cache_write_failed", key=key, error=str(exc))

    def remove(self, query: str, offset: int = 0) -> None:
        self._store.remove_item(self.cache_key(query, offset))
