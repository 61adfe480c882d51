"""CSV export -- serialization of flat rows to timestamped files.

Writes flattened report rows to CSV with a header derived from the union
of row keys. Quoting follows RFC 4180 via the stdlib ``csv`` module.
Files are UTF-8 with a byte order mark so spreadsheet tools detect the
encoding.

File naming convention: CopilotUsage_{ReportType}_{YYYYMMDD_HHMMSS}.csv
Example: CopilotUsage_UserDetail_20261018_020000.csv
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO

from copilot_usage_export.models import ExportedFile
from copilot_usage_export.types import FlatRow

FILE_PREFIX = "CopilotUsage"
FILE_PATTERN = f"{FILE_PREFIX}_*.csv"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
ENCODING = "utf-8-sig"


def export_filename(report_type: str, when: datetime) -> str:
    """Build the output file name for a report type and run time.

    Args:
        report_type: Report type name (e.g. "UserDetail").
        when: Run timestamp.

    Returns:
        File name like ``CopilotUsage_UserDetail_20261018_020000.csv``.
    """
    return f"{FILE_PREFIX}_{report_type}_{when.strftime(TIMESTAMP_FORMAT)}.csv"


def header_for(rows: Sequence[FlatRow]) -> list[str]:
    """Union of row keys in first-seen order.

    Args:
        rows: Flat rows, possibly with differing key sets.

    Returns:
        Column names. Keys introduced by later rows are appended.
    """
    columns: dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)


def _write_rows(handle: TextIO, rows: Sequence[FlatRow]) -> None:
    """Write header and rows to an open text handle."""
    writer = csv.DictWriter(
        handle,
        fieldnames=header_for(rows),
        restval="",
        lineterminator="\r\n",
    )
    writer.writeheader()
    writer.writerows(rows)


def export_csv(rows: Sequence[FlatRow]) -> str:
    """Serialize flat rows to a CSV string.

    Args:
        rows: Flat rows to render.

    Returns:
        CSV text with a header row and one line per row. Empty input
        gives an empty string.
    """
    if not rows:
        return ""
    output = io.StringIO()
    _write_rows(output, rows)
    return output.getvalue()


def serialize(
    rows: Sequence[FlatRow],
    destination: Path,
    *,
    report_type: str = "",
    created_at: datetime | None = None,
) -> ExportedFile:
    """Write flat rows to a CSV file.

    Creates the parent directory when needed.

    Args:
        rows: Flat rows to write. Must not be empty.
        destination: Target file path.
        report_type: Report type name recorded on the result.
        created_at: Timestamp recorded on the result. Defaults to now (UTC).

    Returns:
        ExportedFile describing the written file.

    Raises:
        ValueError: If ``rows`` is empty.
        OSError: If the directory cannot be created or the file written.

    Example::

        exported = serialize(rows, export_dir / export_filename("UserDetail", now))
        print(f"Wrote {exported.row_count} rows to {exported.path}")
    """
    if not rows:
        raise ValueError("No rows to serialize. Skip empty reports before writing.")

    destination.parent.mkdir(parents=True, exist_ok=True)
    with open(destination, "w", encoding=ENCODING, newline="") as f:
        _write_rows(f, rows)

    return ExportedFile(
        path=destination,
        report_type=report_type,
        row_count=len(rows),
        created_at=created_at or datetime.now(UTC),
    )
