"""Paper detail lookup across the detail cache, providers and local store."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

import structlog

from paper_scout.cache import TTLCache
from paper_scout.enrichment.pipeline import EnrichmentPipeline
from paper_scout.exceptions import PaperNotFoundError
from paper_scout.logging import operation_logging_context
from paper_scout.records import DetailResult, PaperDetail, ResearchResult
from paper_scout.request_queue import Admission, RequestQueue
from paper_scout.resilience import ResilientCaller, empty_dict
from paper_scout.sources.ids import PAPERS_WITH_CODE_PREFIX, SEMANTIC_SCHOLAR_PREFIX
from paper_scout.store import PaperStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_HEX40_RE = re.compile(r"^[0-9a-f]{40}$", re.IGNORECASE)
_CORPUS_ID_PREFIX = "CorpusID:"


class IdKind(StrEnum):
    """Owner of a paper identifier."""

    SEMANTIC_SCHOLAR = "semantic_scholar"
    PAPERS_WITH_CODE = "pwc"
    UUID = "uuid"


@dataclass(frozen=True, slots=True)
class ClassifiedId:
    kind: IdKind
    id: str


def classify_paper_id(raw_id: str) -> ClassifiedId:
    """Determine which provider or store owns ``raw_id``.

    Checked in order: ``ss-`` prefix, ``pwc-`` prefix, UUID, 40-character
    hex, ``CorpusID:`` prefix. Anything else is assumed to be a Semantic
    Scholar id.
    """
    trimmed = raw_id.strip()
    if trimmed.startswith(SEMANTIC_SCHOLAR_PREFIX):
        return ClassifiedId(IdKind.SEMANTIC_SCHOLAR, trimmed[len(SEMANTIC_SCHOLAR_PREFIX) :])
    if trimmed.startswith(PAPERS_WITH_CODE_PREFIX):
        return ClassifiedId(IdKind.PAPERS_WITH_CODE, trimmed[len(PAPERS_WITH_CODE_PREFIX) :])
    if _UUID_RE.match(trimmed):
        return ClassifiedId(IdKind.UUID, trimmed)
    if _HEX40_RE.match(trimmed):
        return ClassifiedId(IdKind.SEMANTIC_SCHOLAR, trimmed)
    if trimmed.startswith(_CORPUS_ID_PREFIX):
        return ClassifiedId(IdKind.SEMANTIC_SCHOLAR, trimmed)
    return ClassifiedId(IdKind.SEMANTIC_SCHOLAR, trimmed)


def build_analysis(paper: ResearchResult) -> str:
    """Short plain-text summary of abstract, citations and code availability."""
    parts = [f"Analysis of {paper.title}:\n\n"]
    if paper.abstract:
        parts.append(f"Key findings from the abstract:\n{paper.abstract}\n\n")
    else:
        parts.append("No abstract available.\n\n")
    if paper.metadata.citations:
        parts.append(f"This paper has been cited {paper.metadata.citations} times.\n")
    if paper.code_url:
        parts.append(f"Implementation code is available at: {paper.code_url}")
    else:
        parts.append("No implementation code found.")
    return "".join(parts)


class DetailSource(Protocol):
    name: str

    async def detail(self, paper_id: str) -> dict[str, Any]: ...

    def transform(self, paper: dict[str, Any]) -> ResearchResult: ...


class PaperDetailResolver:
    """Resolves opaque paper ids and schedules enrichment of new papers."""

    def __init__(
        self,
        semantic_scholar: DetailSource,
        papers_with_code: DetailSource,
        store: PaperStore,
        queue: RequestQueue,
        resilience: ResilientCaller,
        detail_cache: TTLCache[PaperDetail],
        pipeline: EnrichmentPipeline | None = None,
        priority_source: str | None = None,
    ) -> None:
        self._providers: dict[IdKind, DetailSource] = {
            IdKind.SEMANTIC_SCHOLAR: semantic_scholar,
            IdKind.PAPERS_WITH_CODE: papers_with_code,
        }
        self._store = store
        self._queue = queue
        self._resilience = resilience
        self._detail_cache = detail_cache
        self._pipeline = pipeline
        self._priority_source = priority_source

    async def resolve(self, paper_id: str) -> DetailResult:
        """Return the paper and its analysis for ``paper_id``.

        Raises:
            ValueError: If ``paper_id`` is blank.
            PaperNotFoundError: If no source yields the paper.
        """
        if not paper_id or not paper_id.strip():
            raise ValueError("Paper ID is required")

        classified = classify_paper_id(paper_id)
        with operation_logging_context(
            "paper_detail", id_type=classified.kind.value, paper_id=classified.id
        ) as log:
            cached = self._detail_cache.get(classified.id)
            if cached is not None:
                log.debug("paper_detail_cache_hit")
                return DetailResult(paper=cached.paper, analysis=cached.analysis)

            paper = await self._lookup(paper_id.strip(), classified)
            if paper is None:
                raise PaperNotFoundError(paper_id, classified.kind.value, classified.id)

            analysis = build_analysis(paper)
            self._detail_cache.set(classified.id, PaperDetail(paper=paper, analysis=analysis))
            log.info(
                "paper_detail_resolved",
                title=paper.title,
                source=paper.metadata.source,
                has_abstract=bool(paper.abstract),
            )

            handle = None
            if not paper.metadata.analyzed and self._pipeline is not None:
                handle = self._pipeline.schedule(paper, classified.id)
            return DetailResult(paper=paper, analysis=analysis, enrichment=handle)

    async def _lookup(self, raw_id: str, classified: ClassifiedId) -> ResearchResult | None:
        provider = self._providers.get(classified.kind)
        if provider is not None:
            paper = await self._fetch_from_provider(provider, classified.id)
            if paper is not None:
                return paper

        paper = self._lookup_store(self._store.get, raw_id)
        if paper is not None:
            logger.debug("paper_found_in_store", paper_id=raw_id)
            return paper

        paper = self._lookup_store(self._store.find_by_semantic_scholar_id, classified.id)
        if paper is not None:
            logger.debug("paper_found_by_semantic_scholar_id", paper_id=classified.id)
        return paper

    def _lookup_store(
        self, lookup: Callable[[str], ResearchResult | None], paper_id: str
    ) -> ResearchResult | None:
        try:
            return lookup(paper_id)
        except Exception as exc:
            logger.warning(
                "local_store_lookup_failed",
                paper_id=paper_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

    async def _fetch_from_provider(
        self, provider: DetailSource, paper_id: str
    ) -> ResearchResult | None:
        admission = (
            Admission.PRIORITY if provider.name == self._priority_source else Admission.NORMAL
        )
        try:
            raw = await self._resilience.call(
                lambda: self._queue.add(
                    lambda: provider.detail(paper_id),
                    admission=admission,
                    source=provider.name,
                ),
                default=empty_dict,
                source=provider.name,
            )
        except Exception as exc:
            logger.warning(
                "provider_detail_failed",
                source=provider.name,
                paper_id=paper_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

        if not raw:
            return None
        return provider.transform(raw)
