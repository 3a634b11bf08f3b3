"""Shared pytest fixtures for the paper-scout test suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from paper_scout.config import Settings
from paper_scout.records import (
    Author,
    CodeRepository,
    PaperMetadata,
    PaperSource,
    ResearchResult,
)

# ---------------------------------------------------------------------------
# Provider payloads
# ---------------------------------------------------------------------------

SS_PAPER_ID = "204e3073870fae3d05bcbc2f6a8e263d9b72e776"


@pytest.fixture()
def semantic_scholar_payload() -> dict[str, Any]:
    """A Graph API paper as returned by ``/paper/search`` and ``/paper/{id}``."""
    return {
        "paperId": SS_PAPER_ID,
        "title": "Attention Is All You Need",
        "abstract": (
            "The dominant sequence transduction models are based on complex recurrent "
            "or convolutional neural networks. We propose the Transformer, based solely "
            "on attention mechanisms."
        ),
        "url": "https://www.semanticscholar.org/paper/" + SS_PAPER_ID,
        "year": 2017,
        "venue": "NeurIPS",
        "citationCount": 90000,
        "authors": [
            {"authorId": "1", "name": "Ashish Vaswani"},
            {"authorId": "2", "name": "Noam Shazeer"},
        ],
    }


@pytest.fixture()
def papers_with_code_payload() -> dict[str, Any]:
    """A Papers with Code paper as returned by ``/papers/``."""
    return {
        "id": "attention-is-all-you-need",
        "title": "Attention Is All You Need",
        "abstract": "We propose a new simple network architecture, the Transformer.",
        "url_pdf": "https://arxiv.org/pdf/1706.03762v5.pdf",
        "published": "2017-06-12",
        "authors": ["Ashish Vaswani", "Noam Shazeer"],
        "conference": "NeurIPS 2017",
        "repository": {
            "url": "https://github.com/tensorflow/tensor2tensor",
            "stars": 14000,
            "framework": "tf",
            "programming_language": "Python",
        },
    }


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def make_result(
    result_id: str = "ss-abc",
    title: str = "Attention Is All You Need",
    abstract: str | None = "We propose the Transformer, based solely on attention.",
    source: PaperSource | None = PaperSource.SEMANTIC_SCHOLAR,
    **metadata: Any,
) -> ResearchResult:
    """Build a ResearchResult with sensible defaults for tests."""
    code_url = metadata.pop("code_url", None)
    pdf_url = metadata.pop("pdf_url", None)
    created_at = metadata.pop("created_at", None)
    return ResearchResult(
        id=result_id,
        title=title,
        abstract=abstract,
        code_url=code_url,
        pdf_url=pdf_url,
        created_at=created_at,
        metadata=PaperMetadata(source=source, **metadata),
    )


@pytest.fixture()
def sample_result() -> ResearchResult:
    return make_result(
        year=2017,
        venue="NeurIPS",
        citations=500,
        authors=[Author(name="Ashish Vaswani")],
        code_url="https://github.com/tensorflow/tensor2tensor",
        code_repository=CodeRepository(
            repository_url="https://github.com/tensorflow/tensor2tensor",
            stars=14000,
            framework="tf",
            language="Python",
        ),
    )


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@pytest.fixture()
def fast_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings with every delay disabled and all state under ``tmp_path``."""
    monkeypatch.chdir(tmp_path)
    return Settings(
        queue={"min_delay": 0.0, "max_jitter": 0.0, "task_timeout": 5.0},
        resilience={"pre_delay": 0.0, "base_retry_delay": 0.0, "max_retries": 1},
        enrichment={"inter_task_delay": 0.0, "persist_attempts": 2},
        cache={"persistent_directory": tmp_path / "search_cache"},
        store={"path": tmp_path / "research_results.json"},
    )


@pytest.fixture()
def result_factory() -> Any:
    """Return the :func:`make_result` builder."""
    return make_result
