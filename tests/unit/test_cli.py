"""Unit tests for paper_scout.cli - version, help and commands."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import structlog
from typer.testing import CliRunner

from paper_scout import __version__
from paper_scout.cli import app
from paper_scout.exceptions import AllSourcesExhaustedError, PaperNotFoundError
from paper_scout.records import DetailResult

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

runner = CliRunner()


@pytest.fixture(autouse=True)
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.chdir(tmp_path)
    yield
    # commands configure logging against the runner's captured stderr
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture()
def service() -> MagicMock:
    mock = MagicMock()
    mock.__aenter__.return_value = mock
    mock.__aexit__.return_value = None
    mock.search = AsyncMock(return_value=[])
    mock.get_paper = AsyncMock()
    mock.ask_implementation_question = AsyncMock(return_value="Use masking.")
    return mock


@pytest.fixture()
def from_settings(service: MagicMock) -> Any:
    with patch("paper_scout.cli.ResearchService.from_settings", return_value=service) as factory:
        yield factory


class TestVersionAndHelp:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("search", "paper", "ask"):
            assert command in result.output


class TestSearchCommand:
    def test_prints_table(
        self, service: MagicMock, from_settings: Any, result_factory: Any
    ) -> None:
        service.search.return_value = [result_factory(result_id="ss-1", title="Graph Nets")]

        result = runner.invoke(app, ["search", "graph nets", "--offset", "5"])

        assert result.exit_code == 0
        assert "Graph Nets" in result.output
        service.search.assert_awaited_once_with("graph nets", 5)

    def test_json_output(self, service: MagicMock, from_settings: Any, result_factory: Any) -> None:
        service.search.return_value = [result_factory(result_id="ss-1", title="Graph Nets")]

        result = runner.invoke(app, ["search", "graph", "--json"])

        assert result.exit_code == 0
        assert '"id": "ss-1"' in result.output

    def test_no_results(self, from_settings: Any) -> None:
        result = runner.invoke(app, ["search", "nothing"])
        assert result.exit_code == 0
        assert "No results found" in result.output

    def test_exhausted_sources_exit_nonzero(self, service: MagicMock, from_settings: Any) -> None:
        service.search.side_effect = AllSourcesExhaustedError(["semantic_scholar"])

        result = runner.invoke(app, ["search", "graph"])

        assert result.exit_code == 1
        assert "AllSourcesExhaustedError" in result.output

    def test_invalid_config_exits(self, tmp_path: Path) -> None:
        config = tmp_path / "bad.yaml"
        config.write_text("search:\n  batch_size: 0\n")

        result = runner.invoke(app, ["search", "graph", "--config", str(config)])

        assert result.exit_code == 1
        assert "Configuration Error" in result.output


class TestPaperCommand:
    def test_shows_analysis(
        self, service: MagicMock, from_settings: Any, result_factory: Any
    ) -> None:
        paper = result_factory(title="Graph Nets")
        service.get_paper.return_value = DetailResult(paper=paper, analysis="Analysis of X")

        result = runner.invoke(app, ["paper", "ss-abc"])

        assert result.exit_code == 0
        assert "Analysis of X" in result.output
        service.get_paper.assert_awaited_once_with("ss-abc")

    def test_wait_prints_enrichment(
        self, service: MagicMock, from_settings: Any, result_factory: Any
    ) -> None:
        paper = result_factory(title="Graph Nets")
        enriched = result_factory(title="Graph Nets", analyzed=True, insights=["key idea"])
        handle = MagicMock()
        handle.wait = AsyncMock(return_value=enriched)
        service.get_paper.return_value = DetailResult(
            paper=paper, analysis="Analysis", enrichment=handle
        )

        result = runner.invoke(app, ["paper", "ss-abc", "--wait"])

        assert result.exit_code == 0
        assert "key idea" in result.output
        handle.wait.assert_awaited_once()

    def test_wait_without_scheduled_enrichment(
        self, service: MagicMock, from_settings: Any, result_factory: Any
    ) -> None:
        service.get_paper.return_value = DetailResult(paper=result_factory(), analysis="A")

        result = runner.invoke(app, ["paper", "ss-abc", "-w"])

        assert result.exit_code == 0
        assert "already analyzed" in result.output

    def test_not_found(self, service: MagicMock, from_settings: Any) -> None:
        service.get_paper.side_effect = PaperNotFoundError("pwc-9", "pwc", "9")

        result = runner.invoke(app, ["paper", "pwc-9"])

        assert result.exit_code == 1
        assert "Paper not found" in result.output


class TestAskCommand:
    def test_prints_answer(self, service: MagicMock, from_settings: Any) -> None:
        result = runner.invoke(app, ["ask", "ss-abc", "How to batch?"])

        assert result.exit_code == 0
        assert "Use masking." in result.output
        service.ask_implementation_question.assert_awaited_once_with("ss-abc", "How to batch?")
        settings = from_settings.call_args.args[0]
        assert settings.enrichment.enabled is False

    def test_blank_question(self, service: MagicMock, from_settings: Any) -> None:
        service.ask_implementation_question.side_effect = ValueError("Question is required")

        result = runner.invoke(app, ["ask", "ss-abc", " "])

        assert result.exit_code == 1
        assert "Question is required" in result.output
