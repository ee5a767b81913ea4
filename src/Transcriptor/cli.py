"""
Transcriptor command line interface.

Commands:
- ``process`` (default): sweep orphans, then fetch every video listed in the
  input file and link the transcripts into the project
- ``data``: show library statistics
- ``clean DATE``: delete transcripts acquired before ``YYYY-MM-DD``
- ``verify``: run the integrity sweep on its own
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

import typer

from .config.credentials import load_api_key
from .config.loader import load_config, parse_cli_overrides
from .context import AppContext, build_app_context, open_orchestrator
from .errors import TranscriptorError
from .identifiers import parse_input_file
from .logging_utils import setup_logging
from .orchestrator import BatchAbortedError, BatchSummary
from .statistics import compute_statistics
from .timestamps import convert_date_to_prefix

__all__ = ["app", "main"]

app = typer.Typer(help="Download YouTube transcripts into a local, crash-safe library")


def _context(ctx: typer.Context) -> AppContext:
    return ctx.obj


def _echo_summary(summary: BatchSummary) -> None:
    for failure in summary.failures():
        typer.echo(f"✗ {failure.failure_line()}", err=True)
    typer.echo(summary.render())


async def _run_batch(app_ctx: AppContext, api_key: str, identifiers: List[str]) -> BatchSummary:
    async with open_orchestrator(app_ctx, api_key) as orchestrator:
        return await orchestrator.process_batch(identifiers)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Config file path (YAML/JSON)"
    ),
    overrides: List[str] = typer.Option(
        [], "--set", help="Override a setting, e.g. --set retry.max_attempts=5"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show errors"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Download YouTube transcripts listed in youtube.md."""
    if quiet and verbose:
        typer.echo("✗ Error: --quiet and --verbose cannot be used together", err=True)
        raise typer.Exit(2)

    try:
        config = load_config(path=config_path, cli_overrides=parse_cli_overrides(overrides))
    except TranscriptorError as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(2)

    level = "ERROR" if quiet else "DEBUG" if verbose else config.logging.level
    setup_logging(level, config.logging.json_log_file)
    ctx.obj = build_app_context(config)

    if ctx.invoked_subcommand is None:
        process(ctx, input_file=None)


@app.command()
def process(
    ctx: typer.Context,
    input_file: Optional[Path] = typer.Option(
        None, "--input", "-i", help="File listing YouTube URLs (default: youtube.md)"
    ),
) -> None:
    """Fetch transcripts for every URL in the input file."""
    app_ctx = _context(ctx)
    path = input_file or app_ctx.config.storage.input_file

    try:
        api_key = load_api_key()
        identifiers = parse_input_file(path)
    except TranscriptorError as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    if not identifiers:
        typer.echo(f"No YouTube URLs found in {path}")
        return

    try:
        summary = asyncio.run(_run_batch(app_ctx, api_key, identifiers))
    except BatchAbortedError as e:
        _echo_summary(e.summary)
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)
    except TranscriptorError as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    _echo_summary(summary)
    if summary.failed:
        raise typer.Exit(1)


@app.command()
def data(ctx: typer.Context) -> None:
    """Show how many transcripts are stored and how much space they use."""
    app_ctx = _context(ctx)
    try:
        stats = compute_statistics(app_ctx.store.load_metadata(), app_ctx.artifacts)
    except TranscriptorError as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    if not stats.total:
        typer.echo("No transcripts stored yet")
        return
    for line in stats.render():
        typer.echo(line)


@app.command()
def clean(
    ctx: typer.Context,
    date: str = typer.Argument(..., help="Delete transcripts acquired before this date (YYYY-MM-DD)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete transcripts, links and registry entries older than DATE."""
    app_ctx = _context(ctx)
    try:
        convert_date_to_prefix(date)
    except ValueError:
        typer.echo(f"✗ Error: invalid date {date!r}; expected YYYY-MM-DD", err=True)
        raise typer.Exit(2)

    try:
        candidates = app_ctx.retention.candidates(date)
        if not candidates:
            typer.echo(f"No transcripts acquired before {date}")
            return
        if not yes and not typer.confirm(f"Delete {len(candidates)} transcript(s)?"):
            typer.echo("Aborted")
            return
        report = app_ctx.retention.remove_before(date)
    except TranscriptorError as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"✓ Removed {len(report.removed)} transcript(s)")
    if report.failed:
        for error in report.errors:
            typer.echo(f"✗ {error}", err=True)
        raise typer.Exit(1)


@app.command()
def verify(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Report orphans without removing them"),
) -> None:
    """Remove registry entries whose transcript file is missing."""
    app_ctx = _context(ctx)
    try:
        report = app_ctx.sweep.validate_integrity(dry_run=dry_run)
    except TranscriptorError as e:
        typer.echo(f"✗ Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(report.message or "")
    for error in report.errors:
        typer.echo(f"✗ {error}", err=True)
