"""Terminal display -- Rich tables for run results and configuration.

Typical usage::

    from copilot_usage_export.display import render_run_summary

    render_run_summary(summary)
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from copilot_usage_export.config import Config
from copilot_usage_export.models import RunSummary

console = Console(stderr=True)


def _mask(secret: str) -> str:
    """Mask a secret, keeping the last four characters."""
    if not secret:
        return "[dim]not set[/dim]"
    if len(secret) <= 4:
        return "****"
    return "****" + secret[-4:]


def render_run_summary(summary: RunSummary) -> None:
    """Render the outcome of an export run.

    One row per report type with its status, row count, and file name,
    followed by upload and retention totals.

    Args:
        summary: Completed run summary.
    """
    table = Table(show_header=True, padding=(0, 1))
    table.add_column("Report", style="bold")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    table.add_column("File", style="dim")

    for exported in summary.exported:
        status = "[green]exported[/green]"
        if exported.path.name in summary.uploaded:
            status += ", uploaded"
        elif exported.path.name in summary.upload_failed:
            status += ", [red]upload failed[/red]"
        table.add_row(
            exported.report_type,
            status,
            f"{exported.row_count:,}",
            exported.path.name,
        )
    for report_type in summary.skipped:
        table.add_row(report_type, "[yellow]no data[/yellow]", "\u2014", "")
    for report_type, error in summary.failed.items():
        table.add_row(report_type, "[red]failed[/red]", "\u2014", error)

    console.print(table)

    totals = Table(show_header=False, box=None, padding=(0, 2))
    totals.add_column("key", style="dim")
    totals.add_column("value")
    totals.add_row("Rows", f"{summary.total_rows:,}")
    totals.add_row("Uploaded", f"{len(summary.uploaded)} / {len(summary.exported)}")
    totals.add_row("Deleted", str(len(summary.deleted)))
    console.print(totals)


def render_dry_run(row_counts: dict[str, int]) -> None:
    """Render flattened row counts from a dry run.

    Args:
        row_counts: Report type -> flattened row count.
    """
    table = Table(show_header=True, padding=(0, 1), title="Dry run (nothing written)")
    table.add_column("Report", style="bold")
    table.add_column("Rows", justify="right")

    for report_type, rows in row_counts.items():
        table.add_row(report_type, f"{rows:,}" if rows else "[yellow]0[/yellow]")

    console.print(table)


def render_config_show(config: Config) -> None:
    """Render the effective configuration with secrets masked.

    Args:
        config: Loaded application configuration.
    """
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("key", style="dim")
    table.add_column("value")

    table.add_row("Tenant ID", config.tenant_id or "[dim]not set[/dim]")
    table.add_row("Client ID", config.client_id or "[dim]not set[/dim]")
    table.add_row("Client secret", _mask(config.client_secret))
    table.add_row("Graph URL", config.graph_base_url)
    table.add_row("Reports", ", ".join(config.report_types))
    table.add_row("Period", f"D{config.period_days}")
    table.add_row("Export dir", str(config.export_dir))
    table.add_row(
        "Retention",
        f"{config.retention_days} days" if config.retention_days else "disabled",
    )
    if config.upload_enabled:
        target = f"{config.library}/{config.folder}" if config.folder else config.library
        table.add_row("Upload", f"site {config.site_id} → {target}")
    else:
        table.add_row("Upload", "[dim]disabled[/dim]")
    table.add_row("Log dir", str(config.log_dir))
    table.add_row("Log level", config.log_level)

    console.print(table)

    for problem in config.validate():
        console.print(f"[yellow]Warning:[/yellow] {problem}")
