"""Identifier helpers shared by the source adapters and the merge engine."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from paper_scout.records import ResearchResult

SEMANTIC_SCHOLAR_PREFIX = "ss-"
PAPERS_WITH_CODE_PREFIX = "pwc-"

_MAX_SLUG_LENGTH = 100
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_DASH_RUN_RE = re.compile(r"-+")


def slugify(*parts: object) -> str:
    """Join truthy parts with ``-`` and reduce to a lower-case slug.

    Non-alphanumeric characters become ``-``, runs of ``-`` collapse to
    one, and the result is truncated to 100 characters.
    """
    base = "-".join(str(part) for part in parts if part)
    slug = _NON_ALNUM_RE.sub("-", base.lower())
    return _DASH_RUN_RE.sub("-", slug)[:_MAX_SLUG_LENGTH]


def derive_result_id(result: ResearchResult) -> str:
    """Derive a stable id for a record that arrived without one."""
    metadata = result.metadata
    if metadata.semantic_scholar_id:
        return f"{SEMANTIC_SCHOLAR_PREFIX}{metadata.semantic_scholar_id}"

    authors = "-".join(author.name for author in metadata.authors)
    return slugify(
        result.title,
        metadata.year,
        metadata.venue,
        authors,
        metadata.source.value if metadata.source else None,
    )
