"""AI-backed analysis tasks with deterministic fallbacks.

Every public method returns a usable result: when the AI call fails or its
answer cannot be validated, the matching generator from
:mod:`paper_scout.enrichment.fallbacks` is used instead. Validated AI answers
for insights, concepts and difficulty are cached per paper.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog

from paper_scout.ai_client import AICompletionClient
from paper_scout.cache import TTLCache
from paper_scout.enrichment import fallbacks
from paper_scout.parsing import (
    Failed,
    Heuristic,
    ParseResult,
    Structured,
    parse_ai_response,
    parse_markdown_concepts,
    validate_difficulty_level,
    validate_importance,
    validate_skill_level,
)
from paper_scout.records import (
    CodeSnippet,
    Concept,
    DifficultyAssessment,
    ResearchResult,
    TechnicalSkill,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")

_MIN_EXPLANATION_LENGTH = 20

_INSIGHTS_PROMPT = """Analyze this research paper and provide 5-7 key insights
in the following JSON format:

[
    {{
        "category": "one of the categories listed below",
        "insight": "Clear, specific insight about the paper",
        "impact": "Brief explanation of why this insight is important"
    }}
]

Categories: Main Contribution, Methodology, Technical Innovation, Results,
Implementation, Future Work.

Focus on novel contributions, key methodological approaches, technical innovations,
significant results, practical implications and future research directions.

{context}"""

_CONCEPTS_PROMPT = """Analyze this research paper and provide exactly 5 key concepts
in the following JSON format:

[
    {{
        "concept": "concept name",
        "explanation": "clear explanation",
        "importance": "High/Medium/Low"
    }}
]

Focus on the main research contribution, core methodology, technical innovations,
practical applications and implementation considerations.

{context}"""

_DIFFICULTY_PROMPT = """Analyze this research paper and provide a technical difficulty
assessment in the following exact JSON format:
{{
    "level": "one of: Beginner, Intermediate, Advanced",
    "explanation": "detailed explanation of why this level was chosen",
    "prerequisites": ["list", "of", "required", "prerequisites"],
    "estimatedTimeToImplement": "rough estimate of the time to implement",
    "technicalSkills": [
        {{"skill": "name of skill", "level": "one of: Basic, Intermediate, Advanced"}}
    ]
}}

{context}"""

_SNIPPETS_PROMPT = """Provide up to 3 short illustrative code snippets for implementing
this research paper in the following JSON format:

[
    {{
        "title": "snippet title",
        "description": "what the snippet shows",
        "code": "the code",
        "language": "programming language"
    }}
]

{context}"""

_STEPS_PROMPT = """List 5-8 concrete implementation steps for this research paper
as a JSON array of strings.

{context}"""

_QUESTION_PROMPT = """Answer the following implementation question about this research paper.
Be concise and practical.

Question: {question}

{context}"""


def paper_context(paper: ResearchResult) -> str:
    """Render the paper fields an AI prompt needs."""
    meta = paper.metadata
    lines = [
        f"Title: {paper.title}",
        f"Abstract: {paper.abstract or 'No abstract available'}",
    ]
    if meta.venue:
        lines.append(f"Venue: {meta.venue}")
    if meta.year:
        lines.append(f"Year: {meta.year}")
    if paper.code_url:
        lines.append(f"Implementation available at: {paper.code_url}")
    else:
        lines.append("No implementation available")
    return "\n".join(lines)


def _as_list(value: Any, key: str) -> list[Any]:
    """Unwrap ``{key: [...]}`` envelopes some models return around arrays."""
    if isinstance(value, dict) and isinstance(value.get(key), list):
        return list(value[key])
    if isinstance(value, list):
        return value
    return []


def _nonblank(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


# ---------------------------------------------------------------------------
# Result interpretation
# ---------------------------------------------------------------------------


def interpret_insights(result: ParseResult) -> list[str]:
    if isinstance(result, Structured):
        insights: list[str] = []
        for item in _as_list(result.value, "insights"):
            if isinstance(item, dict):
                if all(_nonblank(item.get(k)) for k in ("category", "insight", "impact")):
                    insights.append(f"[{item['category']}] {item['insight']}\n→ {item['impact']}")
                elif _nonblank(item.get("insight")):
                    insights.append(str(item["insight"]).strip())
            elif _nonblank(item):
                insights.append(str(item).strip())
        return insights
    if isinstance(result, Heuristic):
        return result.lines
    if isinstance(result, Failed):
        return []
    raise TypeError(f"Unhandled parse result {result!r}")


def interpret_concepts(result: ParseResult) -> list[Concept]:
    raw: list[Any]
    if isinstance(result, Structured):
        raw = _as_list(result.value, "concepts")
    elif isinstance(result, Heuristic):
        raw = list(parse_markdown_concepts(result.raw))
    elif isinstance(result, Failed):
        raw = []
    else:
        raise TypeError(f"Unhandled parse result {result!r}")

    concepts: list[Concept] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        if not all(_nonblank(item.get(k)) for k in ("concept", "explanation", "importance")):
            logger.debug("invalid_concept_skipped", item=item)
            continue
        concepts.append(
            Concept(
                concept=item["concept"].strip(),
                explanation=item["explanation"].strip(),
                importance=validate_importance(item["importance"]),  # type: ignore[arg-type]
            )
        )
    return concepts


def interpret_difficulty(result: ParseResult) -> DifficultyAssessment | None:
    """Validate an AI difficulty assessment.

    The assessment is accepted only if the explanation is longer than 20
    characters and both prerequisites and a time estimate are present.
    """
    if isinstance(result, (Heuristic, Failed)):
        return None
    if not isinstance(result, Structured):
        raise TypeError(f"Unhandled parse result {result!r}")
    data = result.value
    if not isinstance(data, dict):
        return None

    explanation = str(data.get("explanation") or "").strip()
    estimate = str(
        data.get("estimatedTimeToImplement") or data.get("estimated_time_to_implement") or ""
    ).strip()
    raw_prereqs = data.get("prerequisites")
    prerequisites = (
        [p.strip() for p in raw_prereqs if _nonblank(p)] if isinstance(raw_prereqs, list) else []
    )
    raw_skills = data.get("technicalSkills") or data.get("technical_skills")
    skills = [
        TechnicalSkill(
            skill=skill["skill"].strip(),
            level=validate_skill_level(skill["level"]),  # type: ignore[arg-type]
        )
        for skill in (raw_skills if isinstance(raw_skills, list) else [])
        if isinstance(skill, dict)
        and _nonblank(skill.get("skill"))
        and isinstance(skill.get("level"), str)
    ]

    if len(explanation) <= _MIN_EXPLANATION_LENGTH or not prerequisites or not estimate:
        return None
    if not skills:
        skills.append(TechnicalSkill(skill="Programming", level="Intermediate"))

    return DifficultyAssessment(
        level=validate_difficulty_level(str(data.get("level") or "")),  # type: ignore[arg-type]
        explanation=explanation,
        prerequisites=prerequisites,
        estimated_time_to_implement=estimate,
        technical_skills=skills,
    )


def interpret_code_snippets(result: ParseResult) -> list[CodeSnippet]:
    if isinstance(result, (Heuristic, Failed)):
        return []
    if not isinstance(result, Structured):
        raise TypeError(f"Unhandled parse result {result!r}")
    return [
        CodeSnippet(
            title=item["title"].strip(),
            description=str(item.get("description") or "").strip(),
            code=item["code"],
            language=str(item.get("language") or "plaintext").strip(),
        )
        for item in _as_list(result.value, "snippets")
        if isinstance(item, dict) and _nonblank(item.get("title")) and _nonblank(item.get("code"))
    ]


def interpret_steps(result: ParseResult) -> list[str]:
    if isinstance(result, Structured):
        return [str(step).strip() for step in _as_list(result.value, "steps") if _nonblank(step)]
    if isinstance(result, Heuristic):
        return result.lines
    if isinstance(result, Failed):
        return []
    raise TypeError(f"Unhandled parse result {result!r}")


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------


class PaperAnalyzer:
    """Runs the individual enrichment tasks for a paper.

    Attributes:
        insights_cache: Validated insights keyed ``insights-<paper id>``.
        concepts_cache: Validated concepts keyed ``concepts-<paper id>``.
        difficulty_cache: Validated assessments keyed ``difficulty-<paper id>``.
    """

    def __init__(
        self,
        ai: AICompletionClient,
        cache_ttl: float = 3600.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._ai = ai
        cache_kwargs: dict[str, Any] = {"max_age": cache_ttl}
        if clock is not None:
            cache_kwargs["clock"] = clock
        self.insights_cache: TTLCache[list[str]] = TTLCache("insights", **cache_kwargs)
        self.concepts_cache: TTLCache[list[Concept]] = TTLCache("concepts", **cache_kwargs)
        self.difficulty_cache: TTLCache[DifficultyAssessment] = TTLCache(
            "difficulty", **cache_kwargs
        )

    async def _ask(self, task: str, paper: ResearchResult, prompt: str) -> ParseResult:
        try:
            text = await self._ai.complete(prompt)
        except Exception as exc:
            logger.warning(
                "analysis_ai_call_failed",
                task=task,
                paper_id=paper.id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return Failed(str(exc) or type(exc).__name__)
        return parse_ai_response(text)

    async def _cached_task(
        self,
        task: str,
        paper: ResearchResult,
        cache: TTLCache[T],
        prompt: str,
        interpret: Callable[[ParseResult], T | None],
        fallback: Callable[[ResearchResult], T],
    ) -> T:
        key = f"{task}-{paper.id}"
        cached = cache.get(key)
        if cached is not None:
            return cached

        value = interpret(await self._ask(task, paper, prompt))
        if value:
            cache.set(key, value)
            return value

        logger.info("analysis_fallback_used", task=task, paper_id=paper.id)
        return fallback(paper)

    async def generate_key_insights(self, paper: ResearchResult) -> list[str]:
        return await self._cached_task(
            "insights",
            paper,
            self.insights_cache,
            _INSIGHTS_PROMPT.format(context=paper_context(paper)),
            interpret_insights,
            fallbacks.fallback_insights,
        )

    async def explain_key_concepts(self, paper: ResearchResult) -> list[Concept]:
        """Explain key concepts; never returns an empty list."""
        return await self._cached_task(
            "concepts",
            paper,
            self.concepts_cache,
            _CONCEPTS_PROMPT.format(context=paper_context(paper)),
            interpret_concepts,
            fallbacks.static_concepts,
        )

    async def assess_technical_difficulty(self, paper: ResearchResult) -> DifficultyAssessment:
        return await self._cached_task(
            "difficulty",
            paper,
            self.difficulty_cache,
            _DIFFICULTY_PROMPT.format(context=paper_context(paper)),
            interpret_difficulty,
            fallbacks.static_difficulty,
        )

    async def generate_code_snippets(self, paper: ResearchResult) -> list[CodeSnippet]:
        result = await self._ask(
            "codeSnippets", paper, _SNIPPETS_PROMPT.format(context=paper_context(paper))
        )
        snippets = interpret_code_snippets(result)
        return snippets or fallbacks.fallback_code_snippets(paper)

    async def generate_implementation_steps(self, paper: ResearchResult) -> list[str]:
        result = await self._ask(
            "implementationSteps", paper, _STEPS_PROMPT.format(context=paper_context(paper))
        )
        steps = interpret_steps(result)
        return steps or fallbacks.fallback_implementation_steps(paper)

    async def answer_question(self, paper: ResearchResult, question: str) -> str:
        """Answer an implementation question, falling back to generic guidance."""
        prompt = _QUESTION_PROMPT.format(question=question, context=paper_context(paper))
        try:
            answer = await self._ai.complete(prompt)
        except Exception as exc:
            logger.warning("question_ai_call_failed", paper_id=paper.id, error=str(exc))
            return fallbacks.fallback_answer(paper, question)
        return answer.strip() or fallbacks.fallback_answer(paper, question)
