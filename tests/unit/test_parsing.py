"""Unit tests for AI response parsing and value normalisation."""

from __future__ import annotations

import pytest

from paper_scout.parsing import (
    Failed,
    Heuristic,
    Structured,
    extract_json_literal,
    parse_ai_response,
    parse_markdown_concepts,
    split_lines,
    strip_code_fences,
    validate_difficulty_level,
    validate_importance,
    validate_skill_level,
)


class TestParseAiResponse:
    def test_fenced_json_array(self) -> None:
        text = '```json\n[{"concept": "Attention", "importance": "High"}]\n```'
        result = parse_ai_response(text)
        assert result == Structured([{"concept": "Attention", "importance": "High"}])

    def test_json_embedded_in_prose(self) -> None:
        text = 'Sure! Here is the assessment: {"level": "Advanced"} Hope it helps.'
        assert parse_ai_response(text) == Structured({"level": "Advanced"})

    def test_control_characters_are_tolerated(self) -> None:
        text = '{"explanation":\t"multi\nline"}'
        result = parse_ai_response(text)
        assert isinstance(result, Structured)
        assert result.value == {"explanation": "multi line"}

    def test_plain_lines_become_heuristic(self) -> None:
        text = "1. First insight\n2) Second insight\n\n- Third insight"
        result = parse_ai_response(text)
        assert isinstance(result, Heuristic)
        assert result.lines == ["First insight", "Second insight", "Third insight"]
        assert result.raw == text

    def test_invalid_json_falls_back_to_lines(self) -> None:
        result = parse_ai_response("{not json at all}")
        assert isinstance(result, Heuristic)
        assert result.lines == ["{not json at all}"]

    @pytest.mark.parametrize("text", ["", "   \n\t", None, 42])
    def test_unusable_input_fails(self, text: object) -> None:
        assert isinstance(parse_ai_response(text), Failed)

    def test_already_decoded_value_is_structured(self) -> None:
        assert parse_ai_response({"a": 1}) == Structured({"a": 1})


class TestHelpers:
    def test_strip_code_fences(self) -> None:
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_extract_json_literal_without_literal(self) -> None:
        assert extract_json_literal("no braces here") is None

    def test_split_lines_drops_numbering_and_blanks(self) -> None:
        assert split_lines("  3. Step three  \n\n* bullet") == ["Step three", "bullet"]


class TestMarkdownConcepts:
    def test_named_headers(self) -> None:
        markdown = (
            "1. **Self-Attention**\n"
            "**Explanation**: Relates every position to every other position.\n"
            "**Importance**: High\n"
            "2. **Positional Encoding**\n"
            "**Explanation**: Injects order information.\n"
            "**Importance**: Medium\n"
        )
        assert parse_markdown_concepts(markdown) == [
            {
                "concept": "Self-Attention",
                "explanation": "Relates every position to every other position.",
                "importance": "High",
            },
            {
                "concept": "Positional Encoding",
                "explanation": "Injects order information.",
                "importance": "Medium",
            },
        ]

    def test_concept_name_label(self) -> None:
        markdown = (
            "1. **Concept Name:** Multi-Head Attention\n"
            "   **Explanation**: Runs several attention functions in parallel.\n"
            "   **Importance**: High"
        )
        concepts = parse_markdown_concepts(markdown)
        assert [c["concept"] for c in concepts] == ["Multi-Head Attention"]

    def test_incomplete_sections_are_skipped(self) -> None:
        markdown = (
            "1. **Complete**\n**Explanation**: Has both.\n**Importance**: Low\n"
            "2. **Missing Importance**\n**Explanation**: Only this.\n"
        )
        assert [c["concept"] for c in parse_markdown_concepts(markdown)] == ["Complete"]

    def test_no_sections(self) -> None:
        assert parse_markdown_concepts("just some text") == []


class TestValidators:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("HIGH", "High"), ("very high", "High"), ("Med", "Medium"), ("medium", "Medium"),
         ("low", "Low"), ("unknown", "Low")],
    )
    def test_importance(self, raw: str, expected: str) -> None:
        assert validate_importance(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("beginner", "Beginner"), ("Advanced", "Advanced"), ("expert", "Intermediate"),
         ("", "Intermediate")],
    )
    def test_difficulty_level(self, raw: str, expected: str) -> None:
        assert validate_difficulty_level(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("basic", "Basic"), ("Beginner", "Basic"), ("advanced", "Advanced"),
         ("moderate", "Intermediate")],
    )
    def test_skill_level(self, raw: str, expected: str) -> None:
        assert validate_skill_level(raw) == expected
