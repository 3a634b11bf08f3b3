"""Canonical paper records shared by adapters, caches, store and enrichment."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from paper_scout.enrichment.pipeline import EnrichmentHandle

Importance = Literal["High", "Medium", "Low"]
DifficultyLevel = Literal["Beginner", "Intermediate", "Advanced"]
SkillLevel = Literal["Basic", "Intermediate", "Advanced"]


class PaperSource(StrEnum):
    """Provider that produced a record."""

    SEMANTIC_SCHOLAR = "semantic_scholar"
    PAPERS_WITH_CODE = "papers_with_code"


class _CamelModel(BaseModel):
    """Base for models persisted with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ---------------------------------------------------------------------------
# Metadata parts
# ---------------------------------------------------------------------------


class Author(BaseModel):
    """Paper author as reported by a provider."""

    name: str
    id: str | None = None


class CodeRepository(BaseModel):
    """Repository linked to a paper."""

    repository_url: str
    stars: int | None = None
    framework: str | None = None
    language: str | None = None


class Concept(BaseModel):
    """Key concept explained for a paper."""

    concept: str
    explanation: str
    importance: Importance


class TechnicalSkill(BaseModel):
    """Skill required to implement a paper."""

    skill: str
    level: SkillLevel


class DifficultyAssessment(_CamelModel):
    """Technical difficulty of implementing a paper."""

    level: DifficultyLevel
    explanation: str
    prerequisites: list[str] = Field(default_factory=list)
    estimated_time_to_implement: str = ""
    technical_skills: list[TechnicalSkill] = Field(default_factory=list)


class CodeSnippet(BaseModel):
    """Code reference or illustrative snippet for a paper."""

    title: str
    description: str
    code: str
    language: str


class PaperMetadata(_CamelModel):
    """Provider metadata plus enrichment results."""

    source: PaperSource | None = None
    semantic_scholar_id: str | None = None
    authors: list[Author] = Field(default_factory=list)
    year: int | None = None
    venue: str | None = None
    citations: int | None = None
    code_repository: CodeRepository | None = None
    insights: list[str] | None = None
    concepts: list[Concept] | None = None
    difficulty: DifficultyAssessment | None = None
    code_snippets: list[CodeSnippet] | None = None
    implementation_steps: list[str] | None = None
    analyzed: bool = False
    analyzed_at: str | None = None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class ResearchResult(BaseModel):
    """Canonical paper record.

    ``id`` carries a provenance prefix (``ss-``, ``pwc-``), a raw UUID for
    local-store records, or a derived slug. Once assigned it is the
    deduplication identity and is never rewritten.
    """

    id: str = ""
    title: str
    abstract: str | None = None
    pdf_url: str | None = None
    code_url: str | None = None
    metadata: PaperMetadata = Field(default_factory=PaperMetadata)
    query_id: str | None = None
    created_at: str | None = None

    def to_document(self) -> dict[str, object]:
        """Serialize with camelCase metadata keys for storage."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PaperDetail(BaseModel):
    """Detail lookup payload cached per classified id."""

    paper: ResearchResult
    analysis: str


@dataclass(slots=True)
class DetailResult:
    """Detail lookup returned to callers.

    ``enrichment`` is the handle of the background enrichment scheduled by
    this lookup, or ``None`` if the paper was already analyzed or served
    from cache.
    """

    paper: ResearchResult
    analysis: str
    enrichment: EnrichmentHandle | None = None
