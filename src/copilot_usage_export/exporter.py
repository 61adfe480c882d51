"""Export orchestrator -- the batch pipeline engine.

Runs one export: for each configured report type, fetch the raw report,
flatten it, and write a CSV; then upload the files written and sweep
expired exports. Report types are processed strictly one after another.

Failure policy:

* fetch errors are fatal and re-raised after logging;
* a report type with no data is skipped with a warning;
* a CSV that cannot be written is recorded in ``RunSummary.failed`` and
  the remaining report types still run;
* upload failures are recorded per file and never stop other uploads.

Typical usage::

    import asyncio
    from copilot_usage_export.config import load_config
    from copilot_usage_export.exporter import run_export
    from copilot_usage_export.graph import GraphClient

    async def main(config):
        async with GraphClient(...) as graph:
            return await run_export(config, graph)

    summary = asyncio.run(main(load_config()))
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from copilot_usage_export.config import Config
from copilot_usage_export.csv_export import export_filename, serialize
from copilot_usage_export.flatten import flatten
from copilot_usage_export.graph import ReportFetcher
from copilot_usage_export.log import log_success
from copilot_usage_export.models import ExportedFile, RunSummary
from copilot_usage_export.retention import sweep
from copilot_usage_export.types import FlatRow, ReportKind
from copilot_usage_export.uploader import FileUploader

logger = logging.getLogger(__name__)


def report_names(report_types: Iterable[str]) -> list[str]:
    """Canonical report type names in configured order, without duplicates.

    Names are compared after normalization, so ``userdetail`` and
    ``UserDetail`` count as the same report.
    """
    names: list[str] = []
    for report_type in report_types:
        name = ReportKind.canonical_name(report_type)
        if name in names:
            logger.warning("Report type %s configured more than once, exporting it once", name)
            continue
        names.append(name)
    return names


async def fetch_and_flatten(
    fetcher: ReportFetcher,
    report_type: str,
    period_days: int,
) -> list[FlatRow]:
    """Fetch one report type and flatten it.

    Args:
        fetcher: Report source.
        report_type: Report type name, in any casing.
        period_days: Lookback period in days.

    Returns:
        Flat rows. Empty when the report has no data.

    Raises:
        Exception: Whatever the fetcher raises, after logging it.
    """
    kind = ReportKind.for_report(report_type)
    report_type = ReportKind.canonical_name(report_type)
    logger.info("Fetching %s report (D%d)", report_type, period_days)
    try:
        records = await fetcher.fetch_report(report_type, period_days)
    except Exception:
        logger.error("Failed to fetch %s report", report_type)
        raise

    if not records:
        logger.warning("No data returned for %s", report_type)
        return []

    rows = flatten(records, kind)
    logger.info(
        "Flattened %d %s record(s) into %d row(s) using %s rules",
        len(records),
        report_type,
        len(rows),
        kind.value,
    )
    if not rows:
        logger.warning("No rows produced for %s", report_type)
    return rows


async def run_export(
    config: Config,
    fetcher: ReportFetcher,
    *,
    uploader: FileUploader | None = None,
    now: datetime | None = None,
) -> RunSummary:
    """Execute a full export run.

    Args:
        config: Loaded application configuration.
        fetcher: Report source (normally an open ``GraphClient``).
        uploader: Destination for exported files. None skips upload.
        now: Run timestamp shared by every file name. Defaults to now (UTC).

    Returns:
        RunSummary describing files written, skipped, failed, uploaded,
        and deleted.

    Raises:
        Exception: Any fetch error, which aborts the run.
    """
    run_time = now or datetime.now(UTC)
    summary = RunSummary(started_at=run_time)

    # --- Export each report type ---
    for report_type in report_names(config.report_types):
        rows = await fetch_and_flatten(fetcher, report_type, config.period_days)
        if not rows:
            summary.skipped.append(report_type)
            continue

        destination = config.export_dir / export_filename(report_type, run_time)
        try:
            exported = serialize(rows, destination, report_type=report_type, created_at=run_time)
        except OSError as exc:
            logger.error("Failed to write %s: %s", destination, exc)
            summary.failed[report_type] = str(exc)
            continue

        summary.exported.append(exported)
        log_success(logger, "Wrote %d row(s) to %s", exported.row_count, exported.path.name)

    # --- Upload ---
    if uploader is not None and summary.exported:
        await _upload_all(uploader, summary.exported, summary)
    elif uploader is None:
        logger.info("Upload not configured, keeping files local")

    # --- Retention ---
    summary.deleted = sweep(config.export_dir, config.retention_days, now=run_time)

    if summary.succeeded:
        log_success(
            logger,
            "Export complete: %d file(s), %d row(s)",
            len(summary.exported),
            summary.total_rows,
        )
        if summary.upload_failed:
            logger.warning(
                "%d upload(s) failed; the files remain in %s",
                len(summary.upload_failed),
                config.export_dir,
            )
    else:
        logger.error(
            "Export finished with errors: %d report(s) failed, %d upload(s) failed",
            len(summary.failed),
            len(summary.upload_failed),
        )
    return summary


async def _upload_all(
    uploader: FileUploader,
    files: list[ExportedFile],
    summary: RunSummary,
) -> None:
    """Upload each exported file, recording the outcome per file.

    One failed upload never stops the others. Unexpected exceptions from
    an uploader are logged and counted as failures.

    Args:
        uploader: Upload destination.
        files: Files to upload.
        summary: Run summary updated in place.
    """
    for exported in files:
        name = exported.path.name
        try:
            ok = await uploader.upload(exported.path)
        except Exception:
            logger.exception("Upload raised for %s", name)
            ok = False
        if ok:
            summary.uploaded.append(name)
        else:
            summary.upload_failed.append(name)
