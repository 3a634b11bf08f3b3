"""Parsing of free-form AI responses into a three-way result.

:func:`parse_ai_response` never raises. Callers branch on the result type:

* :class:`Structured` carries a decoded JSON object or array.
* :class:`Heuristic` carries the non-empty lines of a non-JSON response.
* :class:`Failed` carries the reason nothing usable was found.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?|\n?```")
_JSON_LITERAL_RE = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_NUMBERING_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")

_MARKDOWN_HEADER_RE = re.compile(r"\d+\.\s+\*\*(Concept(?:\s+Name)?:|[^*]+)\*\*", re.IGNORECASE)
_MARKDOWN_NAME_RE = re.compile(r"([^*\n]+?)(?:\*\*|\n|$)")
_MARKDOWN_EXPLANATION_RE = re.compile(r"\*\*Explanation\*\*:\s*([^*\n]+?)(?:\n|$)", re.IGNORECASE)
_MARKDOWN_IMPORTANCE_RE = re.compile(r"\*\*Importance\*\*:\s*([^*\n]+?)(?:\n|$)", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class Structured:
    """Decoded JSON literal (a dict or a list)."""

    value: Any


@dataclass(frozen=True, slots=True)
class Heuristic:
    """Non-empty, de-numbered lines of a response that held no JSON."""

    lines: list[str] = field(default_factory=list)
    raw: str = ""


@dataclass(frozen=True, slots=True)
class Failed:
    reason: str


ParseResult = Structured | Heuristic | Failed


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text)


def extract_json_literal(text: str) -> Any | None:
    """Decode the first JSON object-or-array literal found in ``text``."""
    match = _JSON_LITERAL_RE.search(strip_code_fences(text))
    if not match:
        return None
    candidate = _CONTROL_CHARS_RE.sub(" ", match.group(0)).strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        return None


def split_lines(text: str) -> list[str]:
    """Split into trimmed non-empty lines with list numbering removed."""
    lines = []
    for line in strip_code_fences(text).splitlines():
        cleaned = _NUMBERING_RE.sub("", line).strip()
        if cleaned:
            lines.append(cleaned)
    return lines


def parse_ai_response(text: Any) -> ParseResult:
    """Classify an AI response as structured JSON, heuristic lines or a failure."""
    if isinstance(text, (dict, list)):
        return Structured(text)
    if not isinstance(text, str):
        return Failed(f"unsupported response type {type(text).__name__}")
    if not text.strip():
        return Failed("empty response")

    value = extract_json_literal(text)
    if isinstance(value, (dict, list)):
        return Structured(value)

    lines = split_lines(text)
    if lines:
        return Heuristic(lines=lines, raw=text)
    return Failed("no JSON literal or text lines")


def parse_markdown_concepts(markdown: str) -> list[dict[str, str]]:
    """Extract concepts from numbered markdown sections.

    Each section must look like ``1. **Name**`` (or ``1. **Concept Name:** Name``)
    followed by ``**Explanation**: ...`` and ``**Importance**: ...``;
    incomplete sections are skipped.
    """
    headers = list(_MARKDOWN_HEADER_RE.finditer(markdown))
    concepts: list[dict[str, str]] = []
    for index, header in enumerate(headers):
        end = headers[index + 1].start() if index + 1 < len(headers) else len(markdown)
        section = markdown[header.end() : end]

        name = header.group(1).strip()
        if name.endswith(":"):
            inline = _MARKDOWN_NAME_RE.search(section)
            name = inline.group(1).strip() if inline else ""

        explanation = _MARKDOWN_EXPLANATION_RE.search(section)
        importance = _MARKDOWN_IMPORTANCE_RE.search(section)
        if name and explanation and importance:
            concepts.append(
                {
                    "concept": name,
                    "explanation": explanation.group(1).strip(),
                    "importance": importance.group(1).strip(),
                }
            )
    return concepts


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_importance(value: str) -> str:
    normalized = value.lower().strip()
    if "high" in normalized:
        return "High"
    if "med" in normalized:
        return "Medium"
    return "Low"


def validate_difficulty_level(value: str) -> str:
    normalized = value.lower().strip()
    if "begin" in normalized:
        return "Beginner"
    if "adv" in normalized:
        return "Advanced"
    return "Intermediate"


def validate_skill_level(value: str) -> str:
    normalized = value.lower().strip()
    if "basic" in normalized or "begin" in normalized:
        return "Basic"
    if "adv" in normalized:
        return "Advanced"
    return "Intermediate"
