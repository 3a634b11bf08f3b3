"""Typer CLI entry point for paper-scout."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import structlog
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from paper_scout import __version__
from paper_scout.config import Settings, format_validation_error
from paper_scout.exceptions import PaperScoutError
from paper_scout.logging import configure_logging
from paper_scout.records import DetailResult, ResearchResult
from paper_scout.service import ResearchService

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="paper-scout",
    help="Search research papers across providers and enrich them with AI analysis.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings(
    config_path: Path | None = None,
    **overrides: Any,
) -> Settings:
    """Load settings with error handling and user-friendly messages."""
    from pydantic import ValidationError

    try:
        settings = Settings.load(config_path=config_path, **overrides)
    except ValidationError as exc:
        err_console.print(
            Panel(
                format_validation_error(exc),
                title="Configuration Error",
                border_style="red",
            )
        )
        raise typer.Exit(code=1) from exc

    configure_logging(
        level=settings.logging.level,
        fmt=settings.logging.format,
        log_file=settings.logging.file,
    )
    return settings


def _display_results(query: str, results: list[ResearchResult]) -> None:
    table = Table(title=f"Results for '{query}'", show_lines=True)
    table.add_column("ID", style="cyan", overflow="fold")
    table.add_column("Title", style="white")
    table.add_column("Year", justify="right", width=6)
    table.add_column("Source", style="dim")
    table.add_column("Code", style="green")

    for result in results:
        meta = result.metadata
        table.add_row(
            result.id,
            result.title,
            str(meta.year or ""),
            meta.source.value if meta.source else "local",
            "yes" if result.code_url else "",
        )

    console.print(table)


def _display_detail(detail: DetailResult) -> None:
    console.print(
        Panel(
            detail.analysis,
            title=detail.paper.title,
            border_style="blue",
        )
    )


def _display_error(exc: Exception) -> None:
    err_console.print(
        Panel(
            f"[red bold]{type(exc).__name__}[/red bold]\n\n{exc}",
            title="Error",
            border_style="red",
        )
    )


# ---------------------------------------------------------------------------
# Version callback
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]paper-scout[/bold] {__version__}")
        raise typer.Exit


@app.callback()
def common(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """paper-scout global options."""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Search query.")],
    offset: Annotated[
        int,
        typer.Option("--offset", "-o", min=0, help="Result offset for paging."),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print results as JSON."),
    ] = False,
) -> None:
    """Search papers across the local store and both providers."""
    settings = _load_settings(config)

    async def _run() -> list[ResearchResult]:
        async with ResearchService.from_settings(settings) as service:
            return await service.search(query, offset)

    try:
        results = asyncio.run(_run())
    except PaperScoutError as exc:
        _display_error(exc)
        raise typer.Exit(code=1) from exc

    if as_json:
        console.print_json(json.dumps([result.to_document() for result in results]))
    elif results:
        _display_results(query, results)
    else:
        console.print("[yellow]No results found.[/yellow]")


@app.command()
def paper(
    paper_id: Annotated[str, typer.Argument(help="Paper id (ss-, pwc-, UUID, hex, CorpusID:).")],
    wait: Annotated[
        bool,
        typer.Option("--wait", "-w", help="Wait for enrichment and print its results."),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
) -> None:
    """Show a paper's analysis, optionally waiting for enrichment."""
    settings = _load_settings(config)

    async def _run() -> tuple[DetailResult, ResearchResult | None]:
        async with ResearchService.from_settings(settings) as service:
            detail = await service.get_paper(paper_id)
            enriched = None
            if wait and detail.enrichment is not None:
                enriched = await detail.enrichment.wait()
            return detail, enriched

    try:
        detail, enriched = asyncio.run(_run())
    except (PaperScoutError, ValueError) as exc:
        _display_error(exc)
        raise typer.Exit(code=1) from exc

    _display_detail(detail)
    if enriched is not None:
        metadata = enriched.metadata.model_dump(mode="json", by_alias=True, exclude_none=True)
        console.print_json(json.dumps(metadata))
    elif wait:
        console.print("[dim]Paper already analyzed; no enrichment scheduled.[/dim]")


@app.command()
def ask(
    paper_id: Annotated[str, typer.Argument(help="Paper id.")],
    question: Annotated[str, typer.Argument(help="Implementation question.")],
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
) -> None:
    """Ask an implementation question about a paper."""
    settings = _load_settings(config, enrichment={"enabled": False})

    async def _run() -> str:
        async with ResearchService.from_settings(settings) as service:
            return await service.ask_implementation_question(paper_id, question)

    try:
        answer = asyncio.run(_run())
    except (PaperScoutError, ValueError) as exc:
        _display_error(exc)
        raise typer.Exit(code=1) from exc

    console.print(Panel(answer, title="Answer", border_style="green"))


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
