"""
Harvest commands: one manual run and failure log inspection.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from leiharvest.core.config import AppConfig
from leiharvest.core.orchestrator import RunSummary

console = Console()
err_console = Console(stderr=True)


def load_config(config_path: Path | None, log_level: str | None = None) -> AppConfig:
    """Load configuration and set up logging, exiting on errors."""
    from leiharvest.core.config import ConfigError, load_app_config
    from leiharvest.core.logging import setup_logging

    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    setup_logging(
        level=log_level or config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )
    return config


def run_harvest(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: configs/app.yaml)",
    ),
    input_path: Optional[Path] = typer.Option(
        None,
        "--input",
        "-i",
        help="Identifier CSV (default: input.path from config)",
    ),
    chunk_size: Optional[int] = typer.Option(
        None,
        "--chunk-size",
        min=1,
        help="Identifiers per output flush",
    ),
    skip_limit: Optional[int] = typer.Option(
        None,
        "--skip-limit",
        min=0,
        help="Skipped identifiers tolerated before the run aborts",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Override the configured log level",
    ),
) -> None:
    """Fetch every identifier once and append the results.

    Examples:
        leiharvest run
        leiharvest run --input data/input/sample.csv --skip-limit 10
    """
    from leiharvest.core.orchestrator import run_once
    from leiharvest.persistence import SourceError, count_identifiers, read_identifiers

    config = load_config(config_path, log_level)

    job_overrides = {}
    if chunk_size is not None:
        job_overrides["chunk_size"] = chunk_size
    if skip_limit is not None:
        job_overrides["skip_limit"] = skip_limit
    if job_overrides:
        config.job = config.job.model_copy(update=job_overrides)

    config.ensure_directories()

    source = input_path or config.input.path
    try:
        total = count_identifiers(source, column=config.input.column, delimiter=config.input.delimiter)
        identifiers = read_identifiers(
            source,
            column=config.input.column,
            delimiter=config.input.delimiter,
        )
    except SourceError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print()
    console.print(f"[bold]Harvesting {total} LEI(s) from:[/bold] {source}")
    console.print(f"[dim]Registry: {config.api.base_url}[/dim]")
    console.print()

    try:
        summary = asyncio.run(run_once(config, identifiers))
    except SourceError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    console.print()
    show_summary(summary, config)

    if summary.aborted:
        err_console.print("[red]Run aborted: skip limit exceeded[/red]")
        raise typer.Exit(1)


def show_summary(summary: RunSummary, config: AppConfig) -> None:
    """Show summary table of a run."""
    table = Table(title=f"Run {summary.run_id}")

    table.add_column("Status", style="cyan")
    table.add_column("Processed", justify="right")
    table.add_column("Written", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Failed LEIs", justify="right", style="red")
    table.add_column("Failed URLs", justify="right", style="red")
    table.add_column("Duration", justify="right")

    status_style = {"COMPLETED": "green", "STOPPED": "yellow"}.get(summary.status, "red")
    duration = f"{summary.duration_seconds:.1f}s" if summary.duration_seconds else "-"

    table.add_row(
        f"[{status_style}]{summary.status}[/{status_style}]",
        str(summary.processed),
        str(summary.written),
        str(summary.skipped),
        str(summary.identifier_failures),
        str(summary.url_failures),
        duration,
    )

    console.print(table)
    console.print(f"[dim]Records: {config.output.lei_records}[/dim]")
    console.print(f"[dim]Relationships: {config.output.relationship_records}[/dim]")


def show_failures(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to app.yaml (default: configs/app.yaml)",
    ),
    limit: int = typer.Option(
        10,
        "--limit",
        "-n",
        min=0,
        help="Most recent entries to list per log",
    ),
) -> None:
    """Summarise the identifier and URL failure logs."""
    from leiharvest.core.tracking import read_identifier_failures, read_url_failures

    config = load_config(config_path)

    failed_ids = list(read_identifier_failures(config.output.failed_records))
    failed_urls = list(read_url_failures(config.output.failed_urls))

    if not failed_ids and not failed_urls:
        console.print("[green]No failures recorded.[/green]")
        return

    console.print()
    console.print(f"[bold]Failed LEIs:[/bold] {len(failed_ids)}  ({config.output.failed_records})")
    console.print(f"[bold]Failed URLs:[/bold] {len(failed_urls)}  ({config.output.failed_urls})")
    console.print()

    reasons = Counter(record.reason for record in [*failed_ids, *failed_urls])
    reason_table = Table(title="Top Reasons", show_header=True, header_style="bold magenta")
    reason_table.add_column("Reason", style="cyan")
    reason_table.add_column("Count", justify="right")
    for reason, count in reasons.most_common(5):
        reason_table.add_row(escape(reason) if reason else "[dim]-[/dim]", str(count))
    console.print(reason_table)

    if limit and failed_ids:
        id_table = Table(title="Recent Failed LEIs", show_header=True, header_style="bold magenta")
        id_table.add_column("LEI", style="cyan")
        id_table.add_column("Reason")
        for record in failed_ids[-limit:]:
            id_table.add_row(escape(record.subject), escape(record.reason))
        console.print(id_table)

    if limit and failed_urls:
        url_table = Table(title="Recent Failed URLs", show_header=True, header_style="bold magenta")
        url_table.add_column("When", style="dim")
        url_table.add_column("URL", style="cyan")
        url_table.add_column("Reason")
        for record in failed_urls[-limit:]:
            url_table.add_row(
                record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                escape(record.subject),
                escape(record.reason),
            )
        console.print(url_table)
