"""Background enrichment of resolved papers.

The pipeline runs five analysis tasks in a fixed order with a pause before
each, merges the results into the paper metadata, marks the paper as
analyzed, persists it and refreshes the cached detail entry. It never
raises: a failed task degrades to its fallback result, a failed persist
is logged.

Analyzer methods queue their own AI calls, so the pipeline calls them
directly and never wraps a task in another queue entry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from tenacity import AsyncRetrying, stop_after_attempt, wait_fixed

from paper_scout.cache import TTLCache
from paper_scout.enrichment import fallbacks
from paper_scout.enrichment.analyzer import PaperAnalyzer
from paper_scout.records import PaperDetail, ResearchResult
from paper_scout.store import PaperStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_TaskSpec = tuple[
    str,
    str,
    Callable[[ResearchResult], Awaitable[Any]],
    Callable[[ResearchResult], Any],
]


class EnrichmentHandle:
    """Tracks one scheduled enrichment run."""

    def __init__(self, paper_id: str, task: asyncio.Task[ResearchResult]) -> None:
        self.paper_id = paper_id
        self._task = task

    def done(self) -> bool:
        return self._task.done()

    async def wait(self) -> ResearchResult:
        """Wait for the run to finish and return the enriched paper."""
        return await asyncio.shield(self._task)

    def cancel(self) -> None:
        self._task.cancel()


class EnrichmentPipeline:
    """Sequential analysis tasks plus persistence.

    Attributes:
        inter_task_delay: Seconds slept before each task.
        persist_attempts: Attempts for the store write.
    """

    def __init__(
        self,
        analyzer: PaperAnalyzer,
        store: PaperStore,
        detail_cache: TTLCache[PaperDetail],
        inter_task_delay: float = 2.0,
        persist_attempts: int = 3,
        persist_retry_wait: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._analyzer = analyzer
        self._store = store
        self._detail_cache = detail_cache
        self.inter_task_delay = inter_task_delay
        self.persist_attempts = persist_attempts
        self._persist_retry_wait = persist_retry_wait
        self._sleep = sleep
        self._running: set[asyncio.Task[ResearchResult]] = set()

    def _tasks(self) -> list[_TaskSpec]:
        analyzer = self._analyzer
        return [
            ("insights", "insights", analyzer.generate_key_insights, fallbacks.fallback_insights),
            ("concepts", "concepts", analyzer.explain_key_concepts, fallbacks.static_concepts),
            (
                "difficulty",
                "difficulty",
                analyzer.assess_technical_difficulty,
                fallbacks.static_difficulty,
            ),
            (
                "codeSnippets",
                "code_snippets",
                analyzer.generate_code_snippets,
                fallbacks.fallback_code_snippets,
            ),
            (
                "implementationSteps",
                "implementation_steps",
                analyzer.generate_implementation_steps,
                fallbacks.fallback_implementation_steps,
            ),
        ]

    @property
    def running(self) -> int:
        return len(self._running)

    def schedule(self, paper: ResearchResult, cache_key: str | None = None) -> EnrichmentHandle:
        """Start enrichment in the background and return its handle."""
        task = asyncio.get_running_loop().create_task(self.run(paper, cache_key))
        self._running.add(task)
        task.add_done_callback(self._running.discard)
        logger.info("enrichment_scheduled", paper_id=paper.id)
        return EnrichmentHandle(paper.id, task)

    async def run(self, paper: ResearchResult, cache_key: str | None = None) -> ResearchResult:
        """Enrich ``paper`` and return the updated record."""
        log = logger.bind(paper_id=paper.id)
        results: dict[str, Any] = {}

        for name, field_name, task, fallback in self._tasks():
            if self.inter_task_delay:
                await self._sleep(self.inter_task_delay)
            try:
                results[field_name] = await task(paper)
                log.debug("enrichment_task_ok", task=name)
            except Exception as exc:
                log.warning("enrichment_task_failed", task=name, error=str(exc))
                results[field_name] = fallback(paper)

        metadata = paper.metadata.model_copy(
            update={
                **results,
                "analyzed": True,
                "analyzed_at": datetime.now(UTC).isoformat(),
            }
        )
        enriched = paper.model_copy(update={"metadata": metadata})

        await self._persist(enriched)
        self._refresh_cache(enriched, cache_key)
        log.info("enrichment_complete", tasks=len(results))
        return enriched

    async def _persist(self, paper: ResearchResult) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.persist_attempts),
            wait=wait_fixed(self._persist_retry_wait),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if not self._store.update_metadata(paper.id, paper.metadata):
                        self._store.insert(paper)
        except Exception as exc:
            logger.error(
                "enrichment_persist_failed",
                paper_id=paper.id,
                attempts=self.persist_attempts,
                error=str(exc),
            )

    def _refresh_cache(self, paper: ResearchResult, cache_key: str | None) -> None:
        if cache_key is None:
            return
        cached = self._detail_cache.get(cache_key)
        if cached is not None:
            self._detail_cache.set(cache_key, PaperDetail(paper=paper, analysis=cached.analysis))

    async def aclose(self) -> None:
        """Cancel and await outstanding enrichment runs."""
        for task in list(self._running):
            task.cancel()
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
