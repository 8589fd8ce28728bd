"""adtsync CLI - upload a UI5 application into an ABAP BSP container."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from adtsync import __version__
from adtsync.core.config import UploaderConfig, load_config
from adtsync.core.exceptions import ConfigurationError
from adtsync.core.models import UploadReport
from adtsync.facade import Uploader

app = typer.Typer(
    name="adtsync",
    help="Synchronize local build artifacts into an ABAP BSP container",
    no_args_is_help=True,
)

console = Console()


def configure_logging(level: str) -> None:
    """Set structlog's minimum level (DEBUG, INFO, WARNING, ERROR)."""
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(numeric))


def _build_uploader(config: UploaderConfig) -> Uploader:
    return Uploader(config)


def _print_report(report: UploadReport) -> None:
    if report.sync_result is not None and report.sync_result.outcomes:
        table = Table(border_style="cyan")
        table.add_column("File", style="bold white")
        table.add_column("Result", justify="center")
        table.add_column("Details", style="dim")
        for outcome in report.sync_result.outcomes:
            if outcome.success:
                action = outcome.action.value if outcome.action else "ok"
                table.add_row(outcome.path, "[green]OK[/green]", action)
            else:
                table.add_row(outcome.path, "[red]FAILED[/red]", escape(outcome.error or ""))
        console.print(table)

    if report.success:
        transport = report.transport_no or "-"
        console.print(
            f"[green]Uploaded {len(report.artifacts)} file(s)[/green] "
            f"(transport: {transport})"
        )
    else:
        console.print(f"[red]Upload failed[/red] {escape(report.error_message or '')}")


@app.command()
def upload(
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML configuration file (default: ./adtsync.yaml)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Upload the configured resources."""
    try:
        upload_config = load_config(str(config) if config else None)
    except (ConfigurationError, FileNotFoundError) as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)

    configure_logging("DEBUG" if verbose else upload_config.log_level)

    report = asyncio.run(_build_uploader(upload_config).upload())
    _print_report(report)
    if not report.success:
        raise typer.Exit(code=1)


@app.command()
def version() -> None:
    """Show the adtsync version."""
    console.print(f"adtsync {__version__}")


if __name__ == "__main__":
    app()
