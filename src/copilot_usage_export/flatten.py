"""Record flattener -- per-report-kind rules for Copilot usage payloads.

Turns the nested JSON returned by the Graph Copilot usage reports into
flat rows ready for CSV. Each ``ReportKind`` has one rule with the same
``records -> rows`` contract, registered in ``_RULES``. Kinds without a
rule go through the generic fallback.

Report shapes handled:

* ``UserDetail`` -- one row per user, with last-activity dates per
  Copilot surface and the period label from
  ``copilotActivityUserDetailsByPeriod``.
* ``UserCountSummary`` -- one row per tenant record; counts live in the
  nested ``adoptionByProduct`` object.
* ``UserCountTrend`` -- one row per entry of ``adoptionByDate``.

Every rule is pure: records are never mutated and missing or null
fields become ``""`` rather than raising.

Typical usage::

    from copilot_usage_export.flatten import flatten
    from copilot_usage_export.types import ReportKind

    rows = flatten(records, ReportKind.USER_DETAIL)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from copilot_usage_export.generic import flatten_generic, flatten_value
from copilot_usage_export.types import FlatRow, RawReportRecord, ReportKind

logger = logging.getLogger(__name__)

FlattenRule = Callable[[Sequence[RawReportRecord]], list[FlatRow]]

# Scalar columns of the per-user detail report, in output order.
USER_DETAIL_FIELDS: tuple[str, ...] = (
    "reportRefreshDate",
    "userPrincipalName",
    "displayName",
    "lastActivityDate",
    "copilotChatLastActivityDate",
    "microsoftTeamsCopilotLastActivityDate",
    "wordCopilotLastActivityDate",
    "excelCopilotLastActivityDate",
    "powerPointCopilotLastActivityDate",
    "outlookCopilotLastActivityDate",
    "oneNoteCopilotLastActivityDate",
    "loopCopilotLastActivityDate",
)

USER_DETAIL_PERIOD_KEY = "copilotActivityUserDetailsByPeriod"

# Product prefixes for adoption counts, in output order. Each product
# contributes "<prefix>EnabledUsers" and "<prefix>ActiveUsers".
ADOPTION_PRODUCTS: tuple[str, ...] = (
    "anyApp",
    "microsoftTeams",
    "word",
    "powerPoint",
    "outlook",
    "excel",
    "oneNote",
    "loop",
    "copilotChat",
)

ADOPTION_COLUMNS: tuple[str, ...] = tuple(
    f"{product}{suffix}"
    for product in ADOPTION_PRODUCTS
    for suffix in ("EnabledUsers", "ActiveUsers")
)

SUMMARY_NESTED_KEY = "adoptionByProduct"
TREND_NESTED_KEY = "adoptionByDate"


def _records(records: Sequence[RawReportRecord]) -> list[RawReportRecord]:
    """Keep only mapping records, logging anything else at debug level."""
    kept: list[RawReportRecord] = []
    for record in records:
        if isinstance(record, Mapping):
            kept.append(record)
        else:
            logger.debug("Skipping non-object report record of type %s", type(record).__name__)
    return kept


def _nested(record: RawReportRecord, key: str) -> Mapping[str, Any]:
    """Get a nested object, tolerating absence, null, or a wrapping list.

    Graph sometimes delivers a single nested object as a one-element
    array. The first mapping element is used in that case.

    Args:
        record: Parent record.
        key: Field holding the nested object.

    Returns:
        The nested mapping, or an empty mapping when absent or unusable.
    """
    value = record.get(key)
    if isinstance(value, Mapping):
        return value
    if isinstance(value, list | tuple):
        for element in value:
            if isinstance(element, Mapping):
                return element
    return {}


def _scalar(source: Mapping[str, Any], key: str) -> str | int | float | bool:
    """Read one field as a CSV scalar; missing and null become ``""``."""
    return flatten_value(source.get(key))


def _adoption_counts(source: Mapping[str, Any]) -> FlatRow:
    """Extract the enabled/active pair for every product."""
    return {column: _scalar(source, column) for column in ADOPTION_COLUMNS}


def flatten_user_detail(records: Sequence[RawReportRecord]) -> list[FlatRow]:
    """Flatten the per-user detail report.

    Args:
        records: Raw ``UserDetail`` records.

    Returns:
        One row per record with the fixed user detail columns plus
        ``reportPeriod``.
    """
    rows: list[FlatRow] = []
    for record in _records(records):
        row: FlatRow = {name: _scalar(record, name) for name in USER_DETAIL_FIELDS}
        row["reportPeriod"] = _scalar(_nested(record, USER_DETAIL_PERIOD_KEY), "reportPeriod")
        rows.append(row)
    return rows


def flatten_user_counts_summary(records: Sequence[RawReportRecord]) -> list[FlatRow]:
    """Flatten the per-tenant adoption summary report.

    Args:
        records: Raw ``UserCountSummary`` records.

    Returns:
        One row per record. All adoption columns are ``""`` when the
        ``adoptionByProduct`` object is missing.
    """
    rows: list[FlatRow] = []
    for record in _records(records):
        adoption = _nested(record, SUMMARY_NESTED_KEY)
        row: FlatRow = {
            "reportRefreshDate": _scalar(record, "reportRefreshDate"),
            "reportPeriod": _scalar(adoption, "reportPeriod"),
        }
        row.update(_adoption_counts(adoption))
        rows.append(row)
    return rows


def flatten_user_counts_trend(records: Sequence[RawReportRecord]) -> list[FlatRow]:
    """Flatten the per-tenant daily trend report.

    Each record expands into one row per ``adoptionByDate`` entry,
    carrying the parent's refresh date and report period. Entries keep
    their input order.

    Args:
        records: Raw ``UserCountTrend`` records.

    Returns:
        One row per date entry across all records. Records without
        date entries contribute nothing.
    """
    rows: list[FlatRow] = []
    for record in _records(records):
        entries = record.get(TREND_NESTED_KEY)
        if not isinstance(entries, list | tuple):
            continue
        refresh_date = _scalar(record, "reportRefreshDate")
        period = _scalar(record, "reportPeriod")
        for entry in entries:
            if not isinstance(entry, Mapping):
                logger.debug("Skipping non-object %s entry", TREND_NESTED_KEY)
                continue
            row: FlatRow = {
                "reportRefreshDate": refresh_date,
                "reportPeriod": period,
                "reportDate": _scalar(entry, "reportDate"),
            }
            row.update(_adoption_counts(entry))
            rows.append(row)
    return rows


_RULES: dict[ReportKind, FlattenRule] = {
    ReportKind.USER_DETAIL: flatten_user_detail,
    ReportKind.USER_COUNTS_SUMMARY: flatten_user_counts_summary,
    ReportKind.USER_COUNTS_TREND: flatten_user_counts_trend,
}


def flatten(records: Sequence[RawReportRecord], kind: ReportKind) -> list[FlatRow]:
    """Flatten a batch of report records using the rule for ``kind``.

    Args:
        records: Raw report records for one report type.
        kind: Which flattening rule applies. Chosen by the caller from
            the report type name.

    Returns:
        Flat rows in a deterministic order. Empty input gives an empty
        list.
    """
    if not records:
        return []
    rule = _RULES.get(kind, flatten_generic)
    return rule(records)
