"""Tests for the per-report-kind record flattener.

Covers: UserDetail field extraction and period label handling,
UserCountSummary nested adoption extraction, UserCountTrend one-to-many
expansion and ordering, dispatch to the generic fallback, null
normalization, idempotence, and input immutability.
"""

from __future__ import annotations

import copy
from typing import Any

from copilot_usage_export.flatten import (
    ADOPTION_COLUMNS,
    USER_DETAIL_FIELDS,
    flatten,
    flatten_user_counts_summary,
    flatten_user_counts_trend,
    flatten_user_detail,
)
from copilot_usage_export.types import ReportKind

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _full_user(upn: str = "adele@contoso.com") -> dict[str, Any]:
    """Build a UserDetail record with every field populated."""
    return {
        "reportRefreshDate": "2026-10-15",
        "userPrincipalName": upn,
        "displayName": "Adele Vance",
        "lastActivityDate": "2026-10-14",
        "copilotChatLastActivityDate": "2026-10-14",
        "microsoftTeamsCopilotLastActivityDate": "2026-10-13",
        "wordCopilotLastActivityDate": "2026-10-12",
        "excelCopilotLastActivityDate": "2026-10-11",
        "powerPointCopilotLastActivityDate": "2026-10-10",
        "outlookCopilotLastActivityDate": "2026-10-09",
        "oneNoteCopilotLastActivityDate": "2026-10-08",
        "loopCopilotLastActivityDate": "2026-10-07",
        "copilotActivityUserDetailsByPeriod": [{"reportPeriod": 30}],
    }


def _adoption(base: int = 10) -> dict[str, Any]:
    """Build adoption counts with distinct values per column."""
    return {column: base + i for i, column in enumerate(ADOPTION_COLUMNS)}


def _trend_record(dates: list[str], *, period: int = 7) -> dict[str, Any]:
    """Build a UserCountTrend record with one entry per date."""
    return {
        "reportRefreshDate": "2026-10-15",
        "reportPeriod": period,
        "adoptionByDate": [{"reportDate": d, **_adoption(i)} for i, d in enumerate(dates)],
    }


# ---------------------------------------------------------------------------
# UserDetail
# ---------------------------------------------------------------------------


class TestUserDetail:
    """flatten_user_detail() emits one row per user record."""

    def test_row_count_matches_records(self) -> None:
        records = [_full_user("a@contoso.com"), _full_user("b@contoso.com")]
        assert len(flatten_user_detail(records)) == 2

    def test_columns_in_fixed_order(self) -> None:
        rows = flatten_user_detail([_full_user()])
        assert list(rows[0]) == [*USER_DETAIL_FIELDS, "reportPeriod"]

    def test_values_copied(self) -> None:
        row = flatten_user_detail([_full_user()])[0]
        assert row["userPrincipalName"] == "adele@contoso.com"
        assert row["loopCopilotLastActivityDate"] == "2026-10-07"
        assert row["reportPeriod"] == 30

    def test_full_and_upn_only_records(self) -> None:
        """One populated record and one null-except-UPN record give two rows."""
        sparse = {name: None for name in USER_DETAIL_FIELDS}
        sparse["userPrincipalName"] = "nobody@contoso.com"
        sparse["copilotActivityUserDetailsByPeriod"] = None

        rows = flatten_user_detail([_full_user(), sparse])

        assert len(rows) == 2
        second = rows[1]
        assert second["userPrincipalName"] == "nobody@contoso.com"
        assert all(v == "" for k, v in second.items() if k != "userPrincipalName")

    def test_empty_record_still_has_all_columns(self) -> None:
        rows = flatten_user_detail([{}])
        assert list(rows[0]) == [*USER_DETAIL_FIELDS, "reportPeriod"]
        assert set(rows[0].values()) == {""}

    def test_period_from_single_object(self) -> None:
        record = _full_user()
        record["copilotActivityUserDetailsByPeriod"] = {"reportPeriod": 7}
        assert flatten_user_detail([record])[0]["reportPeriod"] == 7

    def test_period_empty_list(self) -> None:
        record = _full_user()
        record["copilotActivityUserDetailsByPeriod"] = []
        assert flatten_user_detail([record])[0]["reportPeriod"] == ""

    def test_non_mapping_records_skipped(self) -> None:
        rows = flatten_user_detail([_full_user(), "garbage", None])  # type: ignore[list-item]
        assert len(rows) == 1


# ---------------------------------------------------------------------------
# UserCountSummary
# ---------------------------------------------------------------------------


class TestUserCountsSummary:
    """flatten_user_counts_summary() reads the nested adoption object."""

    def test_extracts_nested_counts(self) -> None:
        adoption = {"reportPeriod": 30, **_adoption()}
        record = {"reportRefreshDate": "2026-10-15", "adoptionByProduct": adoption}

        row = flatten_user_counts_summary([record])[0]

        assert row["reportRefreshDate"] == "2026-10-15"
        assert row["reportPeriod"] == 30
        assert row["anyAppEnabledUsers"] == 10
        assert row["copilotChatActiveUsers"] == 10 + len(ADOPTION_COLUMNS) - 1

    def test_column_order(self) -> None:
        row = flatten_user_counts_summary([{"adoptionByProduct": _adoption()}])[0]
        assert list(row) == ["reportRefreshDate", "reportPeriod", *ADOPTION_COLUMNS]

    def test_every_product_has_enabled_and_active(self) -> None:
        for product in ("microsoftTeams", "word", "powerPoint", "outlook", "excel"):
            assert f"{product}EnabledUsers" in ADOPTION_COLUMNS
            assert f"{product}ActiveUsers" in ADOPTION_COLUMNS
        for product in ("oneNote", "loop", "anyApp", "copilotChat"):
            assert f"{product}EnabledUsers" in ADOPTION_COLUMNS
            assert f"{product}ActiveUsers" in ADOPTION_COLUMNS

    def test_missing_adoption_object(self) -> None:
        """A record without adoptionByProduct gives one row of empty counts."""
        rows = flatten_user_counts_summary([{"reportRefreshDate": "2026-10-15"}])

        assert len(rows) == 1
        assert rows[0]["reportRefreshDate"] == "2026-10-15"
        assert rows[0]["reportPeriod"] == ""
        assert all(rows[0][c] == "" for c in ADOPTION_COLUMNS)

    def test_adoption_wrapped_in_list(self) -> None:
        record = {"adoptionByProduct": [{"reportPeriod": 7, "wordActiveUsers": 4}]}
        row = flatten_user_counts_summary([record])[0]
        assert row["reportPeriod"] == 7
        assert row["wordActiveUsers"] == 4
        assert row["wordEnabledUsers"] == ""

    def test_null_counts_become_empty(self) -> None:
        record = {"adoptionByProduct": {"excelEnabledUsers": None, "excelActiveUsers": 0}}
        row = flatten_user_counts_summary([record])[0]
        assert row["excelEnabledUsers"] == ""
        assert row["excelActiveUsers"] == 0


# ---------------------------------------------------------------------------
# UserCountTrend
# ---------------------------------------------------------------------------


class TestUserCountsTrend:
    """flatten_user_counts_trend() expands one row per date entry."""

    def test_three_dates_three_rows(self) -> None:
        record = _trend_record(["2026-10-13", "2026-10-14", "2026-10-15"])

        rows = flatten_user_counts_trend([record])

        assert len(rows) == 3
        assert {r["reportRefreshDate"] for r in rows} == {"2026-10-15"}
        assert {r["reportPeriod"] for r in rows} == {7}

    def test_row_count_is_sum_of_entries(self) -> None:
        records = [
            _trend_record(["2026-10-01", "2026-10-02"]),
            _trend_record([]),
            _trend_record(["2026-10-03"]),
        ]
        assert len(flatten_user_counts_trend(records)) == 3

    def test_order_follows_input(self) -> None:
        """Dates keep input order within a record and records keep theirs."""
        records = [
            _trend_record(["2026-10-05", "2026-10-01"]),
            _trend_record(["2026-09-30"]),
        ]
        rows = flatten_user_counts_trend(records)
        assert [r["reportDate"] for r in rows] == ["2026-10-05", "2026-10-01", "2026-09-30"]

    def test_absent_date_array_contributes_nothing(self) -> None:
        records = [{"reportRefreshDate": "2026-10-15"}, {"adoptionByDate": None}]
        assert flatten_user_counts_trend(records) == []

    def test_per_date_counts(self) -> None:
        rows = flatten_user_counts_trend([_trend_record(["2026-10-01", "2026-10-02"])])
        assert rows[0]["anyAppEnabledUsers"] == 0
        assert rows[1]["anyAppEnabledUsers"] == 1

    def test_column_order(self) -> None:
        rows = flatten_user_counts_trend([_trend_record(["2026-10-01"])])
        assert list(rows[0]) == [
            "reportRefreshDate",
            "reportPeriod",
            "reportDate",
            *ADOPTION_COLUMNS,
        ]

    def test_non_mapping_entries_skipped(self) -> None:
        record = {"adoptionByDate": [{"reportDate": "2026-10-01"}, 5, None]}
        rows = flatten_user_counts_trend([record])
        assert len(rows) == 1


# ---------------------------------------------------------------------------
# Dispatch and general properties
# ---------------------------------------------------------------------------


class TestFlattenDispatch:
    """flatten() routes by ReportKind and keeps rules pure."""

    def test_empty_input(self) -> None:
        for kind in ReportKind:
            assert flatten([], kind) == []

    def test_user_detail_dispatch(self) -> None:
        rows = flatten([_full_user()], ReportKind.USER_DETAIL)
        assert rows[0]["displayName"] == "Adele Vance"

    def test_trend_dispatch(self) -> None:
        rows = flatten([_trend_record(["2026-10-01"])], ReportKind.USER_COUNTS_TREND)
        assert rows[0]["reportDate"] == "2026-10-01"

    def test_other_uses_generic(self) -> None:
        rows = flatten([{"a": 1, "b": {"c": [1, 2]}}], ReportKind.OTHER)
        assert rows == [{"a": 1, "b": '{"c":[1,2]}'}]

    def test_idempotent(self) -> None:
        records = [_full_user(), {"userPrincipalName": "x@contoso.com"}]
        assert flatten(records, ReportKind.USER_DETAIL) == flatten(
            records, ReportKind.USER_DETAIL
        )

    def test_input_not_mutated(self) -> None:
        records = [_trend_record(["2026-10-01", "2026-10-02"])]
        snapshot = copy.deepcopy(records)
        flatten(records, ReportKind.USER_COUNTS_TREND)
        assert records == snapshot

    def test_tag_not_inferred_from_shape(self) -> None:
        """A trend-shaped record flattened as summary follows summary rules."""
        rows = flatten([_trend_record(["2026-10-01"])], ReportKind.USER_COUNTS_SUMMARY)
        assert len(rows) == 1
        assert "reportDate" not in rows[0]
