"""Unit tests for AI-backed analysis tasks and their fallbacks."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from paper_scout.ai_client import AICompletionClient
from paper_scout.enrichment.analyzer import (
    PaperAnalyzer,
    interpret_difficulty,
    interpret_insights,
    paper_context,
)
from paper_scout.exceptions import ConfigMissingError
from paper_scout.parsing import Failed, Heuristic, Structured
from paper_scout.records import ResearchResult

VALID_DIFFICULTY = {
    "level": "advanced",
    "explanation": "Requires a solid grasp of attention mechanisms and GPU training.",
    "prerequisites": ["Linear algebra", "PyTorch"],
    "estimatedTimeToImplement": "3-4 weeks",
    "technicalSkills": [{"skill": "Deep Learning", "level": "Advanced"}],
}


def _ai(*responses: Any) -> AsyncMock:
    ai = AsyncMock(spec=AICompletionClient)
    ai.complete.side_effect = list(responses)
    return ai


class TestPaperContext:
    def test_includes_available_fields(self, sample_result: ResearchResult) -> None:
        context = paper_context(sample_result)
        assert "Title: Attention Is All You Need" in context
        assert "Venue: NeurIPS" in context
        assert "Implementation available at: https://github.com/tensorflow/tensor2tensor" in context

    def test_missing_fields(self, result_factory: Any) -> None:
        context = paper_context(result_factory(abstract=None))
        assert "Abstract: No abstract available" in context
        assert context.endswith("No implementation available")


class TestInterpreters:
    def test_insights_from_structured_items(self) -> None:
        result = Structured(
            [{"category": "Results", "insight": "Beats RNNs", "impact": "Faster training"}]
        )
        assert interpret_insights(result) == ["[Results] Beats RNNs\n→ Faster training"]

    def test_insights_unwrap_envelope(self) -> None:
        assert interpret_insights(Structured({"insights": ["a", " ", "b"]})) == ["a", "b"]

    def test_insights_from_heuristic_lines(self) -> None:
        assert interpret_insights(Heuristic(lines=["x", "y"], raw="x\ny")) == ["x", "y"]

    def test_difficulty_rejects_short_explanation(self) -> None:
        data = {**VALID_DIFFICULTY, "explanation": "Too short"}
        assert interpret_difficulty(Structured(data)) is None

    def test_difficulty_rejects_missing_prerequisites(self) -> None:
        data = {**VALID_DIFFICULTY, "prerequisites": []}
        assert interpret_difficulty(Structured(data)) is None

    def test_difficulty_adds_default_skill(self) -> None:
        data = {**VALID_DIFFICULTY, "technicalSkills": []}
        assessment = interpret_difficulty(Structured(data))
        assert assessment is not None
        assert [s.skill for s in assessment.technical_skills] == ["Programming"]

    def test_difficulty_ignores_failures(self) -> None:
        assert interpret_difficulty(Failed("boom")) is None


class TestPaperAnalyzer:
    @pytest.mark.asyncio()
    async def test_valid_difficulty_is_normalised_and_cached(
        self, sample_result: ResearchResult
    ) -> None:
        ai = _ai(f"```json\n{json.dumps(VALID_DIFFICULTY)}\n```")
        analyzer = PaperAnalyzer(ai)

        first = await analyzer.assess_technical_difficulty(sample_result)
        second = await analyzer.assess_technical_difficulty(sample_result)

        assert first.level == "Advanced"
        assert first.estimated_time_to_implement == "3-4 weeks"
        assert second == first
        ai.complete.assert_awaited_once()
        assert f"difficulty-{sample_result.id}" in analyzer.difficulty_cache

    @pytest.mark.asyncio()
    async def test_ai_failure_uses_static_difficulty(self, result_factory: Any) -> None:
        ai = _ai(ConfigMissingError("no key"))
        analyzer = PaperAnalyzer(ai)

        assessment = await analyzer.assess_technical_difficulty(
            result_factory(title="Notes", abstract=None)
        )

        assert assessment.technical_skills
        assert len(analyzer.difficulty_cache) == 0

    @pytest.mark.asyncio()
    async def test_concepts_never_empty_for_title_only_paper(self, result_factory: Any) -> None:
        analyzer = PaperAnalyzer(_ai("I cannot help with that."))

        concepts = await analyzer.explain_key_concepts(
            result_factory(title="Untitled", abstract=None)
        )

        assert [c.concept for c in concepts] == ["Main Contribution"]

    @pytest.mark.asyncio()
    async def test_concepts_from_markdown(self, sample_result: ResearchResult) -> None:
        markdown = (
            "1. **Self-Attention**\n"
            "**Explanation**: Relates all positions.\n"
            "**Importance**: very high\n"
        )
        analyzer = PaperAnalyzer(_ai(markdown))

        concepts = await analyzer.explain_key_concepts(sample_result)

        assert len(concepts) == 1
        assert concepts[0].concept == "Self-Attention"
        assert concepts[0].importance == "High"

    @pytest.mark.asyncio()
    async def test_invalid_concepts_are_dropped(self, sample_result: ResearchResult) -> None:
        payload = [
            {"concept": "Attention", "explanation": "Weights inputs", "importance": "medium"},
            {"concept": "", "explanation": "missing name", "importance": "High"},
        ]
        analyzer = PaperAnalyzer(_ai(json.dumps(payload)))

        concepts = await analyzer.explain_key_concepts(sample_result)

        assert [(c.concept, c.importance) for c in concepts] == [("Attention", "Medium")]

    @pytest.mark.asyncio()
    async def test_insights_cache_expires(self, sample_result: ResearchResult) -> None:
        now = [0.0]
        ai = _ai('["first"]', '["second"]')
        analyzer = PaperAnalyzer(ai, cache_ttl=10.0, clock=lambda: now[0])

        assert await analyzer.generate_key_insights(sample_result) == ["first"]
        now[0] = 11.0
        assert await analyzer.generate_key_insights(sample_result) == ["second"]

    @pytest.mark.asyncio()
    async def test_code_snippets_fall_back_to_repository(
        self, sample_result: ResearchResult
    ) -> None:
        analyzer = PaperAnalyzer(_ai("not json"))

        snippets = await analyzer.generate_code_snippets(sample_result)

        assert [s.title for s in snippets] == ["Reference Implementation"]

    @pytest.mark.asyncio()
    async def test_implementation_steps_from_json(self, sample_result: ResearchResult) -> None:
        analyzer = PaperAnalyzer(_ai('["Load data", "Train model"]'))

        steps = await analyzer.generate_implementation_steps(sample_result)

        assert steps == ["Load data", "Train model"]

    @pytest.mark.asyncio()
    async def test_answer_question_falls_back(self, sample_result: ResearchResult) -> None:
        analyzer = PaperAnalyzer(_ai(RuntimeError("gateway down")))

        answer = await analyzer.answer_question(sample_result, "How do I batch inputs?")

        assert "Question: How do I batch inputs?" in answer

    @pytest.mark.asyncio()
    async def test_answer_question_returns_ai_text(self, sample_result: ResearchResult) -> None:
        analyzer = PaperAnalyzer(_ai("  Use padding masks.  "))

        assert await analyzer.answer_question(sample_result, "Batching?") == "Use padding masks."
