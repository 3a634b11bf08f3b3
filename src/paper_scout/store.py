"""Local durable store for canonical paper records.

The core only needs a narrow contract: a title text search, lookups by
primary key and by embedded Semantic Scholar id, insert, metadata update
and an append-only log of implementation questions.
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, cast

import structlog
from pydantic import BaseModel, Field

from paper_scout.records import PaperMetadata, ResearchResult

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class Interaction(BaseModel):
    """A question asked about a paper and the answer given."""

    paper_id: str
    question: str
    answer: str
    created_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())


class PaperStore(Protocol):
    """Persistence contract consumed by search, resolver and enrichment."""

    def search(self, text: str, offset: int, limit: int) -> list[ResearchResult]: ...

    def get(self, paper_id: str) -> ResearchResult | None: ...

    def find_by_semantic_scholar_id(self, semantic_scholar_id: str) -> ResearchResult | None: ...

    def insert(self, result: ResearchResult) -> ResearchResult: ...

    def update_metadata(self, paper_id: str, metadata: PaperMetadata) -> bool: ...

    def record_interaction(self, interaction: Interaction) -> None: ...


class JsonPaperStore:
    """JSON-file backed paper store."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {"papers": {}, "interactions": []}
        payload = json.loads(self._path.read_text(encoding="utf-8"))
        payload.setdefault("papers", {})
        payload.setdefault("interactions", [])
        return cast("dict[str, Any]", payload)

    def _save(self, payload: dict[str, Any]) -> None:
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def _records(self) -> list[ResearchResult]:
        papers = self._load()["papers"]
        return [
            ResearchResult.model_validate(doc) for doc in papers.values() if isinstance(doc, dict)
        ]

    def search(self, text: str, offset: int, limit: int) -> list[ResearchResult]:
        """Return records whose title contains every word of ``text``.

        Matches are ordered newest first and sliced to
        ``[offset, offset + limit)``.
        """
        tokens = text.lower().split()
        if not tokens:
            return []

        matches = [
            record
            for record in self._records()
            if all(token in record.title.lower() for token in tokens)
        ]
        matches.sort(key=lambda record: record.created_at or "", reverse=True)
        return matches[offset : offset + limit]

    def get(self, paper_id: str) -> ResearchResult | None:
        doc = self._load()["papers"].get(paper_id)
        if not isinstance(doc, dict):
            return None
        return ResearchResult.model_validate(doc)

    def find_by_semantic_scholar_id(self, semantic_scholar_id: str) -> ResearchResult | None:
        for record in self._records():
            if record.metadata.semantic_scholar_id == semantic_scholar_id:
                return record
        return None

    def insert(self, result: ResearchResult) -> ResearchResult:
        """Persist a new record, assigning a UUID and creation time if absent."""
        updates: dict[str, Any] = {}
        if not result.id:
            updates["id"] = str(uuid.uuid4())
        if not result.created_at:
            updates["created_at"] = datetime.now(UTC).isoformat()
        stored = result.model_copy(update=updates) if updates else result

        payload = self._load()
        payload["papers"][stored.id] = stored.to_document()
        self._save(payload)
        logger.debug("paper_inserted", paper_id=stored.id)
        return stored

    def update_metadata(self, paper_id: str, metadata: PaperMetadata) -> bool:
        """Replace the metadata of an existing record.

        Returns:
            ``False`` if no record has ``paper_id``.
        """
        payload = self._load()
        doc = payload["papers"].get(paper_id)
        if not isinstance(doc, dict):
            return False
        doc["metadata"] = metadata.model_dump(mode="json", by_alias=True, exclude_none=True)
        self._save(payload)
        logger.debug("paper_metadata_updated", paper_id=paper_id)
        return True

    def record_interaction(self, interaction: Interaction) -> None:
        payload = self._load()
        payload["interactions"].append(interaction.model_dump())
        self._save(payload)

    def interactions(self, paper_id: str | None = None) -> list[Interaction]:
        items = [Interaction.model_validate(raw) for raw in self._load()["interactions"]]
        if paper_id is None:
            return items
        return [item for item in items if item.paper_id == paper_id]
