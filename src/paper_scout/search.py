"""Multi-source paper search with caching and bounded fan-out.

A search is served from the in-memory TTL cache, then the persistent
search cache, and otherwise fans out to the local store and both
providers. Sources are spread round-robin over a fixed number of slots;
each slot walks its sources sequentially, and every provider request goes
through the resilience wrapper and the shared request queue.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import structlog

from paper_scout.cache import TTLCache
from paper_scout.exceptions import AllSourcesExhaustedError, RateLimitExceededError
from paper_scout.logging import operation_logging_context
from paper_scout.merge import merge_and_deduplicate
from paper_scout.records import ResearchResult
from paper_scout.request_queue import Admission, RequestQueue
from paper_scout.resilience import ResilientCaller, empty_list, is_rate_limited
from paper_scout.search_cache import PersistentSearchCache, normalize_query
from paper_scout.store import PaperStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

LOCAL_STORE_SOURCE = "local_store"

_Fetcher = tuple[str, Callable[[], Awaitable[list[ResearchResult]]]]


class SearchSource(Protocol):
    name: str

    async def search(self, query: str, offset: int, limit: int) -> list[dict[str, Any]]: ...

    def transform(self, paper: dict[str, Any]) -> ResearchResult: ...


def distribute(items: list[Any], slots: int) -> list[list[Any]]:
    """Split ``items`` round-robin into at most ``slots`` non-empty groups."""
    groups = [items[index::slots] for index in range(max(slots, 1))]
    return [group for group in groups if group]


class SearchAggregator:
    """Aggregates local and provider search results for a query page.

    Attributes:
        batch_size: Page size requested from every source.
        concurrency_slots: Number of source groups searched concurrently.
    """

    def __init__(
        self,
        semantic_scholar: SearchSource,
        papers_with_code: SearchSource,
        store: PaperStore,
        queue: RequestQueue,
        resilience: ResilientCaller,
        search_cache: TTLCache[list[ResearchResult]],
        persistent_cache: PersistentSearchCache,
        batch_size: int = 5,
        concurrency_slots: int = 1,
        priority_source: str | None = None,
    ) -> None:
        self._providers = [semantic_scholar, papers_with_code]
        self._store = store
        self._queue = queue
        self._resilience = resilience
        self._search_cache = search_cache
        self._persistent_cache = persistent_cache
        self.batch_size = batch_size
        self.concurrency_slots = concurrency_slots
        self._priority_source = priority_source

    async def search(self, query: str, offset: int = 0) -> list[ResearchResult]:
        """Return merged, de-duplicated results for one page of ``query``.

        Raises:
            AllSourcesExhaustedError: If every provider is rate limited,
                nothing was found and no cached copy exists.
        """
        normalized = normalize_query(query)
        if not normalized:
            return []

        key = self._persistent_cache.cache_key(normalized, offset)
        cached = self._search_cache.get(key)
        if cached is not None:
            logger.debug("search_memory_cache_hit", query=normalized, offset=offset)
            return cached

        persisted = self._persistent_cache.get(normalized, offset)
        if persisted is not None:
            self._search_cache.set(key, persisted)
            return persisted

        with operation_logging_context("search", query=normalized, offset=offset) as log:
            rate_limited: set[str] = set()
            fetchers = self._fetchers(normalized, offset, rate_limited)
            groups = distribute(fetchers, self.concurrency_slots)
            log.info("search_fan_out", slots=len(groups))

            slot_results = await asyncio.gather(*(self._run_slot(group) for group in groups))
            result_sets = [results for slot in slot_results for results in slot]
            total = sum(len(results) for results in result_sets)

            provider_names = {provider.name for provider in self._providers}
            if total == 0 and provider_names <= rate_limited:
                stale = self._persistent_cache.get_stale(normalized, offset)
                if stale:
                    return stale
                raise AllSourcesExhaustedError(sorted(rate_limited))

            merged = merge_and_deduplicate(*result_sets)
            if merged:
                self._search_cache.set(key, merged)
                self._persistent_cache.set(normalized, merged, offset)

            log.info("search_complete", received=total, returned=len(merged))
            return merged

    def _fetchers(self, query: str, offset: int, rate_limited: set[str]) -> list[_Fetcher]:
        fetchers: list[_Fetcher] = [(LOCAL_STORE_SOURCE, lambda: self._search_store(query, offset))]
        for provider in self._providers:
            fetchers.append(
                (provider.name, self._provider_fetcher(provider, query, offset, rate_limited))
            )
        return fetchers

    @staticmethod
    async def _run_slot(group: list[_Fetcher]) -> list[list[ResearchResult]]:
        return [await fetch() for _, fetch in group]

    async def _search_store(self, query: str, offset: int) -> list[ResearchResult]:
        try:
            return self._store.search(query, offset, self.batch_size)
        except Exception as exc:
            logger.warning("local_store_search_failed", query=query, error=str(exc))
            return []

    def _provider_fetcher(
        self,
        provider: SearchSource,
        query: str,
        offset: int,
        rate_limited: set[str],
    ) -> Callable[[], Awaitable[list[ResearchResult]]]:
        admission = (
            Admission.PRIORITY if provider.name == self._priority_source else Admission.NORMAL
        )

        async def fetch() -> list[ResearchResult]:
            try:
                raw = await self._resilience.call(
                    lambda: self._queue.add(
                        lambda: provider.search(query, offset, self.batch_size),
                        admission=admission,
                        source=provider.name,
                    ),
                    default=empty_list,
                    source=provider.name,
                )
                results = [provider.transform(paper) for paper in raw]
            except Exception as exc:
                if isinstance(exc, RateLimitExceededError) or is_rate_limited(exc):
                    rate_limited.add(provider.name)
                logger.warning(
                    "provider_search_failed",
                    source=provider.name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                return []

            logger.debug("provider_search_ok", source=provider.name, count=len(results))
            return results

        return fetch
