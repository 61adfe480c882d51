"""Retention sweep -- delete old local exports."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path

from copilot_usage_export.csv_export import FILE_PATTERN

logger = logging.getLogger(__name__)


def sweep(
    directory: Path,
    retention_days: int | None,
    *,
    pattern: str = FILE_PATTERN,
    now: datetime | None = None,
) -> list[Path]:
    """Delete files matching ``pattern`` older than ``retention_days``.

    Age is taken from the file modification time. A file that cannot be
    deleted is logged and skipped; the rest of the sweep continues.

    Args:
        directory: Export directory to sweep.
        retention_days: Age threshold in days. 0 or None disables the sweep.
        pattern: Glob pattern of files eligible for deletion.
        now: Reference time. Defaults to now (UTC).

    Returns:
        Paths that were deleted.
    """
    if not retention_days or retention_days < 0:
        logger.debug("Retention sweep disabled")
        return []
    if not directory.is_dir():
        return []

    cutoff = (now or datetime.now(UTC)) - timedelta(days=retention_days)
    deleted: list[Path] = []
    for path in sorted(directory.glob(pattern)):
        try:
            modified = datetime.fromtimestamp(path.stat().st_mtime, UTC)
            if modified >= cutoff:
                continue
            path.unlink()
        except OSError as exc:
            logger.warning("Could not delete %s: %s", path.name, exc)
            continue
        deleted.append(path)
        logger.info("Deleted expired export %s", path.name)

    return deleted
