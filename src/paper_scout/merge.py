"""Relevance scoring and de-duplication of multi-source result sets."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from paper_scout.records import PaperSource, ResearchResult
from paper_scout.sources.ids import derive_result_id

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def calculate_relevance_score(result: ResearchResult) -> float:
    """Score a record by metadata completeness.

    Presence bonuses: title 10, abstract 15, PDF 5, code 5, year/venue/
    authors 3 each, citations up to 10 (one point per hundred), and 2 for
    Semantic Scholar provenance. A missing abstract costs 10 and a missing
    year costs 5.
    """
    meta = result.metadata
    score = 0.0

    if result.title:
        score += 10
    if result.abstract:
        score += 15
    if result.pdf_url:
        score += 5
    if result.code_url:
        score += 5

    if meta.year:
        score += 3
    if meta.venue:
        score += 3
    if meta.authors:
        score += 3

    if meta.citations:
        score += min(meta.citations / 100, 10)

    if meta.source == PaperSource.SEMANTIC_SCHOLAR:
        score += 2

    if not result.abstract:
        score -= 10
    if not meta.year:
        score -= 5

    return score


def _dedup_key(result: ResearchResult) -> str:
    source = result.metadata.source.value if result.metadata.source else "unknown"
    return f"{result.id}-{source}"


def merge_and_deduplicate(*result_sets: Iterable[ResearchResult]) -> list[ResearchResult]:
    """Merge result sets, keeping the best-scored record per id and source.

    Records without an id are given a derived one before comparison.

    Returns:
        Unique records sorted by descending relevance score.
    """
    best: dict[str, tuple[float, ResearchResult]] = {}
    total = 0

    for result_set in result_sets:
        for result in result_set:
            total += 1
            if not result.id:
                result = result.model_copy(update={"id": derive_result_id(result)})
            key = _dedup_key(result)
            score = calculate_relevance_score(result)
            current = best.get(key)
            if current is None or score > current[0]:
                best[key] = (score, result)

    ranked = sorted(best.values(), key=lambda item: item[0], reverse=True)
    logger.debug("results_merged", received=total, unique=len(ranked))
    return [result for _, result in ranked]
