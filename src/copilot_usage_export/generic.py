"""Generic fallback flattener for report shapes without a dedicated rule.

Each top-level field becomes exactly one column. Nested structures are
rendered to compact JSON text where they are first encountered instead
of being expanded into further columns, so row width is bounded by the
number of top-level fields no matter how deep the payload goes.

Typical usage::

    from copilot_usage_export.generic import flatten_generic

    rows = flatten_generic(records)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from copilot_usage_export.types import FlatRow, RawReportRecord

logger = logging.getLogger(__name__)

LIST_SEPARATOR = "; "
_ODATA_PREFIX = "@odata."


def to_compact_json(value: Any) -> str:
    """Render a nested value as single-line JSON.

    Args:
        value: A dict, list, or other JSON-compatible value.

    Returns:
        JSON text without insignificant whitespace. Values that JSON
        cannot represent natively (dates, decimals) fall back to ``str()``.
    """
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def _render_element(element: Any) -> str:
    """Render one list element as text."""
    if element is None:
        return ""
    if isinstance(element, Mapping | list | tuple):
        return to_compact_json(element)
    return str(element)


def flatten_value(value: Any) -> str | int | float | bool:
    """Flatten a single field value into a CSV-ready scalar.

    Args:
        value: Raw field value from a report record.

    Returns:
        ``""`` for None, the value itself for scalars, elements joined
        with ``"; "`` for lists, compact JSON for mappings, and ``str()``
        for anything else.
    """
    match value:
        case None:
            return ""
        case bool() | int() | float() | str():
            return value
        case Mapping():
            return to_compact_json(value)
        case list() | tuple():
            return LIST_SEPARATOR.join(_render_element(e) for e in value)
        case _:
            return str(value)


def flatten_generic(records: Sequence[RawReportRecord]) -> list[FlatRow]:
    """Flatten arbitrary report records into rectangular rows.

    The header is the union of field names across the batch in
    first-seen order. Rows missing a field get ``""`` for it, so every
    row has the same columns in the same order. OData annotations
    (``@odata.*``) are dropped.

    Args:
        records: Raw report records. Entries that are not mappings are
            skipped.

    Returns:
        One row per mapping record, in input order.
    """
    columns: dict[str, None] = {}
    partial: list[dict[str, str | int | float | bool]] = []

    for record in records:
        if not isinstance(record, Mapping):
            logger.debug("Skipping non-object report record of type %s", type(record).__name__)
            continue
        row: dict[str, str | int | float | bool] = {}
        for key, value in record.items():
            name = str(key)
            if name.startswith(_ODATA_PREFIX):
                continue
            columns.setdefault(name, None)
            row[name] = flatten_value(value)
        partial.append(row)

    return [{col: row.get(col, "") for col in columns} for row in partial]
