"""
Schedule commands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .harvest import load_config, show_summary

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Run the harvest on a cron schedule",
    no_args_is_help=True,
)

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to app.yaml (default: configs/app.yaml)",
)


@app.command("start")
def start_scheduler(config_path: Optional[Path] = CONFIG_OPTION) -> None:
    """Start the scheduler service.

    Runs as a foreground process. Use Ctrl+C to stop.
    """
    from leiharvest.core.scheduler import SchedulerService

    config = load_config(config_path)
    if not config.scheduler.enabled:
        err_console.print("[yellow]Scheduler is disabled (scheduler.enabled: false)[/yellow]")
        raise typer.Exit(1)

    config.ensure_directories()

    console.print("[bold]Starting scheduler service...[/bold]")
    console.print(f"[dim]cron '{config.scheduler.cron}' ({config.scheduler.timezone})[/dim]")
    console.print("[dim]Press Ctrl+C to stop[/dim]")
    console.print()

    try:
        asyncio.run(SchedulerService(config.scheduler, config_path).start())
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped[/yellow]")


@app.command("next")
def show_next_runs(
    config_path: Optional[Path] = CONFIG_OPTION,
    count: int = typer.Option(
        5,
        "--count",
        "-n",
        min=1,
        max=50,
        help="Number of fire times to show",
    ),
) -> None:
    """Show the next fire times of the configured schedule."""
    from leiharvest.core.scheduler import SchedulerService

    config = load_config(config_path)
    service = SchedulerService(config.scheduler, config_path)

    try:
        fire_times = service.next_fire_times(count)
    except (ValueError, LookupError) as e:
        err_console.print(f"[red]Invalid schedule:[/red] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Next runs: {config.scheduler.cron}", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Fire time", style="cyan")

    for index, fire_time in enumerate(fire_times, start=1):
        table.add_row(str(index), fire_time.strftime("%Y-%m-%d %H:%M %Z"))

    console.print(table)
    if not config.scheduler.enabled:
        console.print("[yellow]Scheduler is disabled; these runs will not happen[/yellow]")
    if config.scheduler.jitter_minutes:
        console.print(f"[dim]Each run may start up to {config.scheduler.jitter_minutes} minutes later[/dim]")


@app.command("run-now")
def run_now(config_path: Optional[Path] = CONFIG_OPTION) -> None:
    """Trigger one scheduled run immediately."""
    from leiharvest.core.scheduler import SchedulerService

    config = load_config(config_path)
    config.ensure_directories()

    console.print("[bold]Triggering scheduled run[/bold]")
    summary = asyncio.run(SchedulerService(config.scheduler, config_path).trigger_now())

    if summary is None:
        console.print("[yellow]Another run is in progress; nothing triggered[/yellow]")
        return

    console.print()
    show_summary(summary, config)
    if summary.aborted:
        err_console.print("[red]Run aborted: skip limit exceeded[/red]")
        raise typer.Exit(1)
