"""Research service facade wiring caches, queue, providers and enrichment."""

from __future__ import annotations

from types import TracebackType

import httpx
import structlog

from paper_scout.ai_client import AICompletionClient
from paper_scout.cache import TTLCache
from paper_scout.config import Settings
from paper_scout.enrichment import EnrichmentPipeline, PaperAnalyzer
from paper_scout.records import DetailResult, PaperDetail, ResearchResult
from paper_scout.request_queue import RequestQueue
from paper_scout.resilience import ResilientCaller
from paper_scout.resolver import PaperDetailResolver
from paper_scout.search import SearchAggregator
from paper_scout.search_cache import DiskKeyValueStore, PersistentSearchCache
from paper_scout.sources import PapersWithCodeSource, SemanticScholarSource
from paper_scout.store import Interaction, JsonPaperStore, PaperStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class ResearchService:
    """Entry point for paper search, detail lookup and implementation questions.

    Build one with :meth:`from_settings`; the instance owns its HTTP client,
    request queue and background enrichment tasks and must be closed with
    :meth:`aclose` (or used as an async context manager).
    """

    def __init__(
        self,
        aggregator: SearchAggregator,
        resolver: PaperDetailResolver,
        analyzer: PaperAnalyzer,
        store: PaperStore,
        queue: RequestQueue,
        pipeline: EnrichmentPipeline | None = None,
        http_client: httpx.AsyncClient | None = None,
        kv_store: DiskKeyValueStore | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.resolver = resolver
        self.analyzer = analyzer
        self.store = store
        self.queue = queue
        self.pipeline = pipeline
        self._http_client = http_client
        self._kv_store = kv_store

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> ResearchService:
        """Construct a fully wired service from resolved settings."""
        client = http_client or httpx.AsyncClient(
            headers={"User-Agent": "paper-scout research tool"},
            follow_redirects=True,
        )

        queue = RequestQueue(
            min_delay=settings.queue.min_delay,
            max_jitter=settings.queue.max_jitter,
            default_timeout=settings.queue.task_timeout,
        )
        resilience = ResilientCaller(
            pre_delay=settings.resilience.pre_delay,
            base_delay=settings.resilience.base_retry_delay,
            max_retries=settings.resilience.max_retries,
        )

        ss_settings = settings.semantic_scholar
        semantic_scholar = SemanticScholarSource(
            client,
            base_url=ss_settings.base_url,
            api_key=ss_settings.api_key.get_secret_value() if ss_settings.api_key else None,
            fields=ss_settings.fields,
            timeout=ss_settings.timeout,
        )
        papers_with_code = PapersWithCodeSource(
            client,
            base_url=settings.papers_with_code.base_url,
            timeout=settings.papers_with_code.timeout,
        )

        store = JsonPaperStore(settings.store.path)
        kv_store = DiskKeyValueStore(settings.cache.persistent_directory)
        persistent_cache = PersistentSearchCache(
            kv_store,
            ttl_seconds=settings.cache.persistent_ttl_seconds,
            prefix=settings.cache.key_prefix,
        )
        search_cache: TTLCache[list[ResearchResult]] = TTLCache(
            "search", max_age=settings.cache.search_ttl_seconds
        )
        detail_cache: TTLCache[PaperDetail] = TTLCache(
            "detail", max_age=settings.cache.detail_ttl_seconds
        )

        ai = AICompletionClient(
            queue,
            api_key=settings.ai.api_key,
            model=settings.ai.model,
            api_base=settings.ai.base_url,
            temperature=settings.ai.temperature,
            max_tokens=settings.ai.max_tokens,
            timeout=settings.ai.timeout,
            attempts=settings.ai.retries,
            system_prompt=settings.ai.system_prompt,
        )
        analyzer = PaperAnalyzer(ai, cache_ttl=settings.cache.analysis_ttl_seconds)

        pipeline = None
        if settings.enrichment.enabled:
            pipeline = EnrichmentPipeline(
                analyzer,
                store,
                detail_cache,
                inter_task_delay=settings.enrichment.inter_task_delay,
                persist_attempts=settings.enrichment.persist_attempts,
            )

        priority_source = settings.queue.priority_source
        aggregator = SearchAggregator(
            semantic_scholar,
            papers_with_code,
            store,
            queue,
            resilience,
            search_cache,
            persistent_cache,
            batch_size=settings.search.batch_size,
            concurrency_slots=settings.search.concurrency_slots,
            priority_source=priority_source,
        )
        resolver = PaperDetailResolver(
            semantic_scholar,
            papers_with_code,
            store,
            queue,
            resilience,
            detail_cache,
            pipeline=pipeline,
            priority_source=priority_source,
        )

        return cls(
            aggregator,
            resolver,
            analyzer,
            store,
            queue,
            pipeline=pipeline,
            http_client=client if http_client is None else None,
            kv_store=kv_store,
        )

    async def search(self, query: str, offset: int = 0) -> list[ResearchResult]:
        return await self.aggregator.search(query, offset)

    async def get_paper(self, paper_id: str) -> DetailResult:
        return await self.resolver.resolve(paper_id)

    async def ask_implementation_question(self, paper_id: str, question: str) -> str:
        """Answer an implementation question about a paper and record it.

        Raises:
            ValueError: If ``question`` is blank.
            PaperNotFoundError: If the paper cannot be resolved.
        """
        if not question.strip():
            raise ValueError("Question is required")

        detail = await self.resolver.resolve(paper_id)
        answer = await self.analyzer.answer_question(detail.paper, question)

        try:
            self.store.record_interaction(
                Interaction(paper_id=detail.paper.id, question=question, answer=answer)
            )
        except (OSError, ValueError) as exc:
            logger.warning("interaction_record_failed", paper_id=detail.paper.id, error=str(exc))
        return answer

    async def aclose(self) -> None:
        """Stop background work and release owned resources."""
        if self.pipeline is not None:
            await self.pipeline.aclose()
        await self.queue.aclose()
        if self._http_client is not None:
            await self._http_client.aclose()
        if self._kv_store is not None:
            self._kv_store.close()

    async def __aenter__(self) -> ResearchService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
