"""Paper enrichment: AI analysis tasks, fallbacks and the background pipeline."""

from paper_scout.enrichment.analyzer import PaperAnalyzer
from paper_scout.enrichment.pipeline import EnrichmentHandle, EnrichmentPipeline

__all__ = ["EnrichmentHandle", "EnrichmentPipeline", "PaperAnalyzer"]
