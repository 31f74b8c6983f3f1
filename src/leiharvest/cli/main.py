"""
leiharvest CLI - Main entry point.

A rate-limited harvester for LEI registry records and their
relationships, with manual and scheduled runs.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from leiharvest import __app_name__, __version__

# Load environment variables from .env (if present)
load_dotenv()

install_rich_traceback(show_locals=False, width=120)

if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name=__app_name__,
    help="Rate-limited harvester for LEI registry records",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """leiharvest - LEI record and relationship harvester."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import harvest, schedule  # noqa: E402

app.command("run")(harvest.run_harvest)
app.command("failures")(harvest.show_failures)
app.add_typer(schedule.app, name="schedule", help="Run the harvest on a cron schedule")


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    config_path: Path = typer.Option(
        Path("configs/app.yaml"),
        "--config",
        "-c",
        help="Where to write the configuration file",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Initialize leiharvest configuration and directories.

    Writes a default app.yaml and creates the input, output and log
    directories it names.
    """
    from leiharvest.core.config import (
        ConfigError,
        load_app_config,
        validate_config_file,
        write_default_config,
    )

    written = write_default_config(config_path, force=force)

    errors = validate_config_file(config_path)
    if errors:
        err_console.print(f"[red]Invalid configuration in {config_path}:[/red]")
        for error in errors:
            err_console.print(f"  - {error}", markup=False)
        err_console.print("[dim]Fix the file or rerun with --force to replace it[/dim]")
        raise typer.Exit(1)

    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    config.ensure_directories()

    status = "Created" if written else "Kept existing"
    console.print()
    console.print(Panel.fit(
        "[bold green]OK - leiharvest initialized[/bold green]\n\n"
        f"{status}:\n"
        f"  - [cyan]{config_path}[/cyan] - Application configuration\n\n"
        "Directories:\n"
        f"  - [cyan]{config.input.path.parent}/[/cyan] - Identifier input\n"
        f"  - [cyan]{config.output.lei_records.parent}/[/cyan] - Records and failure logs\n"
        "\n"
        "Next steps:\n"
        f"  1. Put LEIs in [yellow]{config.input.path}[/yellow] (header [yellow]{config.input.column}[/yellow])\n"
        "  2. Run once: [yellow]leiharvest run[/yellow]\n"
        "  3. Run on a schedule: [yellow]leiharvest schedule start[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
