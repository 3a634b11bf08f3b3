"""Code-linked paper index adapter (Papers with Code API)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
import structlog

from paper_scout.records import (
    Author,
    CodeRepository,
    PaperMetadata,
    PaperSource,
    ResearchResult,
)
from paper_scout.sources.ids import PAPERS_WITH_CODE_PREFIX, slugify

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_BASE_URL = "https://paperswithcode.com/api/v1"


def _published_year(published: Any) -> int | None:
    if not isinstance(published, str) or not published:
        return None
    try:
        return datetime.fromisoformat(published.replace("Z", "+00:00")).year
    except ValueError:
        head = published[:4]
        return int(head) if head.isdigit() else None


def _authors(raw: Any) -> list[Author]:
    if isinstance(raw, str):
        return [Author(name=raw)] if raw.strip() else []
    if not isinstance(raw, list):
        return []

    authors: list[Author] = []
    for item in raw:
        if isinstance(item, str) and item.strip():
            authors.append(Author(name=item.strip()))
        elif isinstance(item, dict) and item.get("name"):
            authors.append(Author(name=str(item["name"])))
    return authors


def _repository(raw: Any) -> CodeRepository | None:
    if not isinstance(raw, dict) or not raw.get("url"):
        return None
    stars = raw.get("stars")
    return CodeRepository(
        repository_url=str(raw["url"]),
        stars=stars if isinstance(stars, int) else None,
        framework=raw.get("framework") or None,
        language=raw.get("programming_language") or raw.get("language") or None,
    )


def transform_papers_with_code(paper: dict[str, Any]) -> ResearchResult:
    """Translate a Papers with Code payload into a ResearchResult."""
    title = paper.get("title") or "Untitled"
    year = _published_year(paper.get("published"))
    venue = paper.get("conference") or paper.get("journal") or None
    authors = _authors(paper.get("authors"))
    repository = _repository(paper.get("repository"))

    native_id = paper.get("id") or paper.get("paper_id")
    if native_id:
        result_id = f"{PAPERS_WITH_CODE_PREFIX}{native_id}"
    else:
        result_id = slugify(
            title,
            year,
            venue,
            "-".join(a.name for a in authors),
            PaperSource.PAPERS_WITH_CODE.value,
        )

    code_url = repository.repository_url if repository else paper.get("repo_url")

    return ResearchResult(
        id=result_id,
        title=title,
        abstract=paper.get("abstract") or None,
        pdf_url=paper.get("url_pdf") or paper.get("paper_url") or paper.get("url") or None,
        code_url=code_url or None,
        metadata=PaperMetadata(
            source=PaperSource.PAPERS_WITH_CODE,
            authors=authors,
            year=year,
            venue=venue,
            code_repository=repository,
        ),
    )


class PapersWithCodeSource:
    """Paginated search and detail calls against the code-linked index."""

    name = PaperSource.PAPERS_WITH_CODE.value

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = _DEFAULT_BASE_URL,
        timeout: float = 20.0,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def search(self, query: str, offset: int, limit: int) -> list[dict[str, Any]]:
        """Search one page; ``offset`` is mapped to a 1-based page number."""
        page = offset // limit + 1
        response = await self._client.get(
            f"{self._base_url}/papers/",
            params={
                "q": query,
                "page": page,
                "items_per_page": limit,
                "sort_by": "relevance",
            },
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        response.raise_for_status()

        results = response.json().get("results", [])
        if not isinstance(results, list):
            logger.warning("papers_with_code_unexpected_payload", query=query)
            return []
        logger.debug("papers_with_code_search_ok", query=query, page=page, count=len(results))
        return [item for item in results if isinstance(item, dict)]

    async def detail(self, paper_id: str) -> dict[str, Any]:
        response = await self._client.get(
            f"{self._base_url}/papers/{paper_id}/",
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        response.raise_for_status()

        payload = response.json()
        return payload if isinstance(payload, dict) else {}

    @staticmethod
    def transform(paper: dict[str, Any]) -> ResearchResult:
        return transform_papers_with_code(paper)
