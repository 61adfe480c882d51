"""Core report types for flattening dispatch.

Defines the closed set of report kinds the flattener knows how to shape,
plus the type aliases shared by the flattener, serializer, and exporter.
Separated from ``models.py`` so that the flattening modules can import
these without pulling in the export data carriers.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import Any

# A single report record as decoded from Graph JSON. Values are None,
# str, int, float, bool, list, or dict.
RawReportRecord = Mapping[str, Any]

# One output row. Values are CSV-ready scalars; None never appears.
FlatRow = dict[str, str | int | float | bool]


class ReportKind(StrEnum):
    """Report shapes with a dedicated flattening rule.

    Values match the report type names used in configuration and in
    output file names. Any other configured report name is handled by
    ``OTHER``, which routes to the generic fallback flattener.
    """

    USER_DETAIL = "UserDetail"
    USER_COUNTS_SUMMARY = "UserCountSummary"
    USER_COUNTS_TREND = "UserCountTrend"
    OTHER = "Other"

    @classmethod
    def for_report(cls, report_type: str) -> ReportKind:
        """Select the kind for a configured report type name.

        Matching is case-insensitive. The kind is chosen from the name
        alone, never from the shape of the returned records.

        Args:
            report_type: Report type name (e.g. "UserDetail").

        Returns:
            The matching ReportKind, or ``ReportKind.OTHER`` for names
            without a dedicated rule.
        """
        lowered = report_type.strip().lower()
        for kind in cls:
            if kind is not cls.OTHER and kind.value.lower() == lowered:
                return kind
        return cls.OTHER

    @classmethod
    def canonical_name(cls, report_type: str) -> str:
        """Normalize a configured report type name.

        Names with a dedicated rule take the casing Graph and the output
        file names use (``userdetail`` -> ``UserDetail``). Other names
        are only stripped of surrounding whitespace.
        """
        kind = cls.for_report(report_type)
        return report_type.strip() if kind is cls.OTHER else kind.value
