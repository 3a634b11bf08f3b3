"""Provider adapters translating external paper indexes into ResearchResult."""

from __future__ import annotations

from paper_scout.sources.papers_with_code import PapersWithCodeSource
from paper_scout.sources.semantic_scholar import SemanticScholarSource

__all__ = ["PapersWithCodeSource", "SemanticScholarSource"]
