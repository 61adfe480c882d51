"""Data models for export results.

Defines the records produced by a run: one ``ExportedFile`` per CSV
written and a ``RunSummary`` aggregating the outcome of every stage.
Both serialize to JSON-compatible dicts for ``run --json`` output.

Typical usage::

    from copilot_usage_export.models import ExportedFile

    exported = ExportedFile(
        path=Path("exports/CopilotUsage_UserDetail_20261018_020000.csv"),
        report_type="UserDetail",
        row_count=42,
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class ExportedFile:
    """A completed CSV export.

    Created once per report type per run and never modified afterwards.

    Attributes:
        path: Final location of the CSV on local disk.
        report_type: Report type name the rows came from.
        row_count: Number of data rows (header excluded).
        created_at: When the file was written (UTC).
    """

    path: Path
    report_type: str
    row_count: int
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary.

        Returns:
            Dictionary with path as string and created_at as ISO string.
        """
        return {
            "path": str(self.path),
            "report_type": self.report_type,
            "row_count": self.row_count,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class RunSummary:
    """Outcome of one export run.

    Attributes:
        exported: Files written, in report type order.
        skipped: Report types that returned no data.
        failed: Report type -> error text for files that could not be written.
        uploaded: Names of files uploaded successfully.
        upload_failed: Names of files whose upload failed.
        deleted: Paths removed by the retention sweep.
        started_at: When the run started (UTC).
    """

    exported: list[ExportedFile] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    uploaded: list[str] = field(default_factory=list)
    upload_failed: list[str] = field(default_factory=list)
    deleted: list[Path] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def succeeded(self) -> bool:
        """True when every report with data was written.

        Upload failures do not count; they are reported in
        ``upload_failed`` and leave the local files in place.
        """
        return not self.failed

    @property
    def total_rows(self) -> int:
        """Sum of data rows across all exported files."""
        return sum(f.row_count for f in self.exported)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary.

        Returns:
            Full run summary as a nested dictionary suitable for JSON output.
        """
        return {
            "started_at": self.started_at.isoformat(),
            "succeeded": self.succeeded,
            "total_rows": self.total_rows,
            "exported": [f.to_dict() for f in self.exported],
            "skipped": list(self.skipped),
            "failed": dict(self.failed),
            "uploaded": list(self.uploaded),
            "upload_failed": list(self.upload_failed),
            "deleted": [str(p) for p in self.deleted],
        }
