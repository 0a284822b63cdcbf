#!/usr/bin/env python3
"""
Command-line interface for run-stream.

Provides commands to inspect, export and replay agent run output.
"""

from __future__ import annotations

import asyncio
import traceback
from pathlib import Path

import typer

from run_stream.cli.logger import CLILogger
from run_stream.config import settings
from run_stream.exceptions import RunStreamError
from run_stream.schemas.runs import RunMetrics
from run_stream.services.cache import InMemoryOutputCache
from run_stream.services.decoder import decode_lines
from run_stream.services.export import describe_event, to_jsonl, to_markdown
from run_stream.services.record import RunRecord
from run_stream.services.replay import ReplayLoader
from run_stream.storage.local import LocalRunStorage

app = typer.Typer(
    name='run-stream',
    help='Inspect, export and replay agent run output',
    add_completion=False,
)


def _choice(*choices: str):
    """Build a typer callback that accepts only the given values."""

    def validate(value: str) -> str:
        if value not in choices:
            raise typer.BadParameter(f'Must be one of: {", ".join(choices)}')
        return value

    return validate


def _read_output_file(path: Path) -> str:
    try:
        return path.read_text(encoding='utf-8')
    except FileNotFoundError:
        typer.secho(f'Error: File not found: {path}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


async def _decode_file(path: Path, logger: CLILogger) -> RunRecord:
    chunk = decode_lines(_read_output_file(path))
    for failure in chunk.failures:
        await logger.warning(failure.describe())
    return RunRecord.from_events(None, 'complete', chunk.events, chunk.lines)


@app.command()
def show(
    file: Path = typer.Argument(..., help='Raw JSONL output file'),
    all_events: bool = typer.Option(False, '--all', '-a', help='Also list events hidden from display'),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Decode a raw output file and list its displayable events."""
    asyncio.run(_show_async(file, all_events, verbose))


@app.command()
def export(
    file: Path = typer.Argument(..., help='Raw JSONL output file'),
    format: str = typer.Option(
        'markdown', '--format', '-f', help='Export format: jsonl or markdown', callback=_choice('jsonl', 'markdown')
    ),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Export a raw output file as JSONL or Markdown."""
    asyncio.run(_export_async(file, format, verbose))


@app.command()
def metrics(
    file: Path = typer.Argument(..., help='Raw JSONL output file'),
    format: str = typer.Option(
        'text', '--format', '-f', help='Output format: text or json', callback=_choice('text', 'json')
    ),
) -> None:
    """Print duration, token, cost and message totals of a raw output file."""
    run_metrics = RunMetrics.from_jsonl(_read_output_file(file))

    if format == 'json':
        typer.echo(run_metrics.model_dump_json(indent=2))
        return

    duration = f'{run_metrics.duration_ms / 1000:.2f}s' if run_metrics.duration_ms is not None else 'n/a'
    cost = f'${run_metrics.cost_usd:.4f} USD' if run_metrics.cost_usd is not None else 'n/a'
    typer.echo(f'Messages: {run_metrics.message_count or 0}')
    typer.echo(f'Duration: {duration}')
    typer.echo(f'Total Tokens: {run_metrics.total_tokens or 0}')
    typer.echo(f'Cost: {cost}')


@app.command()
def replay(
    run_id: int = typer.Argument(..., help='Run ID to replay'),
    runs_dir: Path | None = typer.Option(None, '--runs-dir', help='Run store directory (default: RUNS_DIR)'),
    projects_dir: Path | None = typer.Option(
        None, '--projects-dir', help='Session transcript directory (default: PROJECTS_DIR)'
    ),
    format: str = typer.Option(
        'markdown', '--format', '-f', help='Export format: jsonl or markdown', callback=_choice('jsonl', 'markdown')
    ),
    verbose: bool = typer.Option(False, '--verbose', '-v', help='Verbose output'),
) -> None:
    """Replay a stored run and print it."""
    asyncio.run(_replay_async(run_id, runs_dir, projects_dir, format, verbose))


async def _show_async(file: Path, all_events: bool, verbose: bool) -> None:
    """Async implementation of show command."""
    logger = CLILogger(verbose=verbose)
    record = await _decode_file(file, logger)
    visibility = record.visibility()

    shown = 0
    for index, event in enumerate(record.messages):
        displayable = visibility.is_displayable(event, index)
        if displayable:
            shown += 1
        elif not all_events:
            continue
        marker = ' ' if displayable else '-'
        typer.echo(f'{marker} [{index}] {describe_event(event)}')

    typer.echo()
    typer.secho('Summary:', bold=True)
    typer.echo(f'  Events: {len(record.messages)} ({shown} displayable)')
    typer.echo(f'  Total Tokens: {record.total_tokens}')

    pending = record.ledger.pending()
    if pending:
        typer.echo(f'  Pending tool calls: {len(pending)}')
        for invocation in pending:
            typer.echo(f'    - {invocation.name} ({invocation.tool_use_id})')

    orphaned = record.ledger.orphaned()
    if orphaned:
        typer.secho(f'  Orphaned tool results: {len(orphaned)}', fg=typer.colors.YELLOW)
        for outcome in orphaned:
            typer.echo(f'    - {outcome.tool_use_id} at event {outcome.event_index}')


async def _export_async(file: Path, format: str, verbose: bool) -> None:
    """Async implementation of export command."""
    logger = CLILogger(verbose=verbose)
    record = await _decode_file(file, logger)
    if format == 'jsonl':
        typer.echo(to_jsonl(record))
    else:
        typer.echo(to_markdown(record.messages), nl=False)


async def _replay_async(
    run_id: int,
    runs_dir: Path | None,
    projects_dir: Path | None,
    format: str,
    verbose: bool,
) -> None:
    """Async implementation of replay command."""
    logger = CLILogger(verbose=verbose)

    try:
        storage = LocalRunStorage(
            runs_dir=runs_dir or settings.RUNS_DIR,
            projects_dir=projects_dir or settings.PROJECTS_DIR,
        )
        loader = ReplayLoader(storage, InMemoryOutputCache(), logger)

        run = await storage.get_run(run_id)
        await logger.info(f'Replaying run {run_id} ({run.agent_name}, status {run.status})')
        record = await loader.load(run)

        if format == 'jsonl':
            typer.echo(to_jsonl(record))
        else:
            run_metrics = RunMetrics.from_jsonl(to_jsonl(record))
            typer.echo(to_markdown(record.messages, header=run, metrics=run_metrics), nl=False)

    except (RunStreamError, FileNotFoundError, ValueError) as e:
        typer.secho(f'Error: {e}', fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    except Exception as e:
        await logger.error(f'Failed to replay run: {e}')
        if verbose:
            traceback.print_exc()
        raise typer.Exit(1)


def main() -> None:
    """Entry point for CLI."""
    app()


if __name__ == '__main__':
    main()
