"""Academic graph index adapter (Semantic Scholar Graph API)."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from paper_scout.records import Author, PaperMetadata, PaperSource, ResearchResult
from paper_scout.sources.ids import SEMANTIC_SCHOLAR_PREFIX, slugify

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_BASE_URL = "https://api.semanticscholar.org/graph/v1"
_DEFAULT_FIELDS = "title,abstract,url,year,venue,citationCount,authors"


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None


def transform_semantic_scholar(paper: dict[str, Any]) -> ResearchResult:
    """Translate a Graph API paper payload into a ResearchResult."""
    paper_id = paper.get("paperId")
    authors = [
        Author(name=str(author["name"]), id=author.get("authorId"))
        for author in paper.get("authors") or []
        if isinstance(author, dict) and author.get("name")
    ]
    year = _as_int(paper.get("year"))
    venue = paper.get("venue") or None
    title = paper.get("title") or "Untitled"

    open_access = paper.get("openAccessPdf")
    pdf_url = open_access.get("url") if isinstance(open_access, dict) else None

    if paper_id:
        result_id = f"{SEMANTIC_SCHOLAR_PREFIX}{paper_id}"
    else:
        result_id = slugify(
            title,
            year,
            venue,
            "-".join(a.name for a in authors),
            PaperSource.SEMANTIC_SCHOLAR.value,
        )

    return ResearchResult(
        id=result_id,
        title=title,
        abstract=paper.get("abstract") or None,
        pdf_url=pdf_url or paper.get("url") or None,
        metadata=PaperMetadata(
            source=PaperSource.SEMANTIC_SCHOLAR,
            semantic_scholar_id=paper_id or None,
            authors=authors,
            year=year,
            venue=venue,
            citations=_as_int(paper.get("citationCount")),
        ),
    )


class SemanticScholarSource:
    """Search and detail calls against the academic graph index.

    Requests go out as-is; pacing and retries are applied by the caller
    through the request queue and resilience wrapper.
    """

    name = PaperSource.SEMANTIC_SCHOLAR.value

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = _DEFAULT_BASE_URL,
        api_key: str | None = None,
        fields: str = _DEFAULT_FIELDS,
        timeout: float = 10.0,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._fields = fields
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["x-api-key"] = self._api_key
        return headers

    async def search(self, query: str, offset: int, limit: int) -> list[dict[str, Any]]:
        response = await self._client.get(
            f"{self._base_url}/paper/search",
            params={
                "query": query,
                "offset": offset,
                "limit": limit,
                "fields": self._fields,
            },
            headers=self._headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()

        data = response.json().get("data", [])
        if not isinstance(data, list):
            logger.warning("semantic_scholar_unexpected_payload", query=query)
            return []
        return [item for item in data if isinstance(item, dict)]

    async def detail(self, paper_id: str) -> dict[str, Any]:
        response = await self._client.get(
            f"{self._base_url}/paper/{paper_id}",
            params={"fields": self._fields},
            headers=self._headers(),
            timeout=self._timeout,
        )
        response.raise_for_status()

        payload = response.json()
        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def transform(paper: dict[str, Any]) -> ResearchResult:
        return transform_semantic_scholar(paper)
