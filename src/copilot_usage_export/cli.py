"""CLI entry point for Copilot Usage Export.

Provides the ``copilot-usage-export`` command with subcommands for running
an export, sweeping old files, and managing configuration. Designed to be
invoked by a scheduler (cron, Task Scheduler); every run completes and
exits with 1 when a fetch fails or a report cannot be written. Failed
uploads are reported but leave the exit status at 0.

Typical usage::

    copilot-usage-export run
    copilot-usage-export run --report UserDetail --period 7 --no-upload
    copilot-usage-export run --dry-run
    copilot-usage-export sweep --retention-days 14
    copilot-usage-export config init
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console

from copilot_usage_export import __version__
from copilot_usage_export.config import (
    CONFIG_PATH,
    VALID_PERIODS,
    Config,
    load_config,
    write_config,
)
from copilot_usage_export.display import render_config_show, render_dry_run, render_run_summary
from copilot_usage_export.exporter import fetch_and_flatten, report_names, run_export
from copilot_usage_export.graph import GraphClient
from copilot_usage_export.log import configure_logging, log_success
from copilot_usage_export.models import RunSummary
from copilot_usage_export.retention import sweep
from copilot_usage_export.uploader import SharePointUploader

console = Console(stderr=True)
logger = logging.getLogger(__name__)


def _fail(message: str) -> NoReturn:
    """Print an error line and exit with status 1."""
    console.print(f"[red bold]Error:[/red bold] {message}")
    sys.exit(1)


def _apply_overrides(
    config: Config,
    *,
    reports: tuple[str, ...],
    period: str | None,
    output_dir: str | None,
    retention_days: int | None,
) -> None:
    """Apply command-line overrides on top of the loaded configuration.

    Args:
        config: Loaded configuration, updated in place.
        reports: Report type names from ``--report`` (empty keeps config).
        period: Period in days from ``--period``, as a string choice.
        output_dir: Export directory from ``--output-dir``.
        retention_days: Retention threshold from ``--retention-days``.
    """
    if reports:
        config.report_types = list(reports)
    if period is not None:
        config.period_days = int(period)
    if output_dir is not None:
        config.export_dir = Path(output_dir).expanduser()
    if retention_days is not None:
        config.retention_days = retention_days


def _graph_client(config: Config) -> GraphClient:
    """Build a GraphClient from configuration."""
    return GraphClient(
        config.tenant_id,
        config.client_id,
        config.client_secret,
        base_url=config.graph_base_url,
    )


async def _run(config: Config, *, upload: bool) -> RunSummary:
    """Open a Graph session and run the export inside it.

    The session is closed on every exit path, including fetch failures.

    Args:
        config: Effective configuration.
        upload: Upload exported files when SharePoint is configured.

    Returns:
        Completed run summary.
    """
    async with _graph_client(config) as graph:
        uploader = None
        if upload and config.upload_enabled:
            uploader = SharePointUploader(graph, config.site_id, config.library, config.folder)
        return await run_export(config, graph, uploader=uploader)


async def _dry_run(config: Config) -> dict[str, int]:
    """Fetch and flatten every report type without writing anything.

    Args:
        config: Effective configuration.

    Returns:
        Report type -> flattened row count.
    """
    counts: dict[str, int] = {}
    async with _graph_client(config) as graph:
        for report_type in report_names(config.report_types):
            rows = await fetch_and_flatten(graph, report_type, config.period_days)
            counts[report_type] = len(rows)
    return counts


@click.group()
@click.version_option(version=__version__, prog_name="copilot-usage-export")
def main() -> None:
    """Export Microsoft 365 Copilot usage reports to CSV.

    Fetches Copilot usage reports from Microsoft Graph, flattens them into
    CSV files, uploads the files to SharePoint, and prunes old exports.
    """


@main.command()
@click.option(
    "--report",
    "-r",
    "reports",
    multiple=True,
    help="Report type to export (repeatable). Default: all configured.",
)
@click.option(
    "--period",
    type=click.Choice([str(p) for p in VALID_PERIODS]),
    default=None,
    help="Lookback period in days (default: from config, 30).",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for CSV files (default: from config).",
)
@click.option(
    "--retention-days",
    type=click.IntRange(0),
    default=None,
    help="Delete exports older than N days, 0 to keep all (default: from config).",
)
@click.option(
    "--no-upload",
    is_flag=True,
    default=False,
    help="Keep files local; skip the SharePoint upload.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Fetch and flatten only; write, upload, and delete nothing.",
)
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    default=False,
    help="Print the run summary as JSON on stdout.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Log debug detail.",
)
def run(
    reports: tuple[str, ...],
    period: str | None,
    output_dir: str | None,
    retention_days: int | None,
    no_upload: bool,
    dry_run: bool,
    json_output: bool,
    verbose: bool,
) -> None:
    """Run an export.

    Fetches each report type, writes one CSV per type, uploads the files,
    and sweeps expired exports.

    Args:
        reports: Report types to export.
        period: Lookback period in days.
        output_dir: Export directory override.
        retention_days: Retention threshold override.
        no_upload: Skip upload.
        dry_run: Fetch and flatten only.
        json_output: Emit the summary as JSON.
        verbose: Enable debug logging.
    """
    config = load_config()
    _apply_overrides(
        config,
        reports=reports,
        period=period,
        output_dir=output_dir,
        retention_days=retention_days,
    )

    problems = config.validate()
    if problems:
        _fail(
            "\n".join(problems)
            + "\nSet COPILOT_EXPORT_* environment variables or edit "
            + str(CONFIG_PATH)
        )

    configure_logging(config.log_dir, level=config.log_level, verbose=verbose)

    if dry_run:
        try:
            counts = asyncio.run(_dry_run(config))
        except Exception as exc:
            _fail(str(exc))
        render_dry_run(counts)
        return

    try:
        summary = asyncio.run(_run(config, upload=not no_upload))
    except Exception as exc:
        logger.error("Export aborted: %s", exc)
        _fail(str(exc))

    if json_output:
        click.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        render_run_summary(summary)

    if not summary.succeeded:
        sys.exit(1)


@main.command("sweep")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory to sweep (default: from config).",
)
@click.option(
    "--retention-days",
    type=click.IntRange(0),
    default=None,
    help="Delete exports older than N days (default: from config).",
)
def sweep_cmd(output_dir: str | None, retention_days: int | None) -> None:
    """Delete local exports older than the retention threshold."""
    config = load_config()
    _apply_overrides(
        config,
        reports=(),
        period=None,
        output_dir=output_dir,
        retention_days=retention_days,
    )
    configure_logging(config.log_dir, level=config.log_level)

    if not config.retention_days:
        console.print("[dim]Retention disabled, nothing to sweep.[/dim]")
        return

    deleted = sweep(config.export_dir, config.retention_days)
    log_success(logger, "Deleted %d expired export(s) from %s", len(deleted), config.export_dir)


@main.group()
def config() -> None:
    """Manage configuration."""


@config.command()
def path() -> None:
    """Print the configuration file path."""
    click.echo(CONFIG_PATH)


@config.command("show")
def config_show() -> None:
    """Display effective configuration (secrets masked)."""
    render_config_show(load_config())


@config.command("init")
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing file.")
@click.option(
    "--include-secret",
    is_flag=True,
    default=False,
    help="Write the client secret from the environment into the file.",
)
def config_init(force: bool, include_secret: bool) -> None:
    """Write a starter configuration file.

    Values come from the current effective configuration, so any
    COPILOT_EXPORT_* environment variables are captured.
    """
    if CONFIG_PATH.exists() and not force:
        _fail(f"{CONFIG_PATH} already exists. Use --force to overwrite.")

    write_config(load_config(), CONFIG_PATH, include_secret=include_secret)
    console.print(f"[dim]Configuration written to {CONFIG_PATH}[/dim]")


if __name__ == "__main__":
    main()
