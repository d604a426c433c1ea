"""Tests for result evaluation and kind resolution."""

from __future__ import annotations

import pytest

from querywatch.checks.evaluator import evaluate, normalize_kind, resolve_semantics
from querywatch.checks.models import CheckKind, CheckRecord, QueryResult, Semantics


def _rows(n: int) -> tuple[tuple[int], ...]:
    return tuple((i,) for i in range(n))


def _series(values: list[float]) -> QueryResult:
    return QueryResult(
        columns=("day", "count"),
        column_types=("time", "integer"),
        rows=tuple((f"2025-01-{i + 1:02d}", v) for i, v in enumerate(values)),
    )


# ── Kind resolution ──────────────────────────────────────────────────────────


class TestKindResolution:
    @pytest.mark.parametrize(
        ("kind", "invert", "expected"),
        [
            (None, None, Semantics.BAD_DATA),
            (None, False, Semantics.BAD_DATA),
            (None, True, Semantics.MISSING_DATA),
            (CheckKind.GENERIC, None, Semantics.BAD_DATA),
            (CheckKind.GENERIC, True, Semantics.MISSING_DATA),
            (CheckKind.ANOMALY, True, Semantics.ANOMALY),
            (CheckKind.ALERT_FANOUT, None, Semantics.ALERT_NOTIFICATIONS),
        ],
    )
    def test_normalize(self, kind, invert, expected) -> None:
        assert normalize_kind(kind, invert) == expected

    def test_resolve_from_record(self) -> None:
        check = CheckRecord(kind=None, invert=True)
        assert resolve_semantics(check) == Semantics.MISSING_DATA


# ── Precedence ───────────────────────────────────────────────────────────────


class TestPrecedence:
    def test_timeout_wins_over_error(self) -> None:
        result = QueryResult(error="canceling statement", timed_out=True)
        assert evaluate(CheckKind.GENERIC, False, result) == ("timed out", "canceling statement")

    def test_timeout_without_message(self) -> None:
        result = QueryResult(timed_out=True, rows=_rows(3))
        assert evaluate(CheckKind.ANOMALY, None, result) == ("timed out", None)

    def test_error(self) -> None:
        result = QueryResult(error="syntax error", rows=_rows(2))
        assert evaluate(CheckKind.ALERT_FANOUT, None, result) == ("error", "syntax error")


# ── Generic ──────────────────────────────────────────────────────────────────


class TestGeneric:
    @pytest.mark.parametrize(
        ("invert", "rows", "expected"),
        [
            (False, 2, "failing"),
            (False, 0, "passing"),
            (True, 2, "passing"),
            (True, 0, "failing"),
            (None, 1, "failing"),
        ],
    )
    def test_rows_vs_invert(self, invert, rows, expected) -> None:
        state, message = evaluate(CheckKind.GENERIC, invert, QueryResult(columns=("id",), rows=_rows(rows)))
        assert state == expected
        assert message is None

    def test_legacy_record_without_kind(self) -> None:
        assert evaluate(None, True, QueryResult())[0] == "failing"
        assert evaluate(None, None, QueryResult())[0] == "passing"


# ── Alert fanout ─────────────────────────────────────────────────────────────


class TestAlertFanout:
    def test_rows_found(self) -> None:
        result = QueryResult(columns=("user_uuid",), rows=(("a",),))
        assert evaluate(CheckKind.ALERT_FANOUT, None, result) == ("rows_found", None)

    def test_none(self) -> None:
        assert evaluate(CheckKind.ALERT_FANOUT, None, QueryResult(columns=("user_uuid",))) == ("none", None)


# ── Anomaly ──────────────────────────────────────────────────────────────────


class TestAnomaly:
    def test_no_data_is_error(self) -> None:
        assert evaluate(CheckKind.ANOMALY, None, QueryResult(columns=("day", "count"))) == ("error", "No data")

    def test_bad_format_is_error(self) -> None:
        result = QueryResult(columns=("a", "b", "c", "d"), rows=((1, 2, 3, 4),))
        assert evaluate(CheckKind.ANOMALY, None, result) == ("error", "Bad format")

    def test_not_enough_points_is_error(self) -> None:
        state, message = evaluate(CheckKind.ANOMALY, None, _series([1, 2, 3]))
        assert state == "error"
        assert "Not enough data" in message

    def test_spike_is_failing(self) -> None:
        state, message = evaluate(CheckKind.ANOMALY, None, _series([10, 11, 9, 10, 12, 10, 11, 9, 500]))
        assert state == "failing"
        assert message is None

    def test_steady_is_passing(self) -> None:
        state, _ = evaluate(CheckKind.ANOMALY, None, _series([10, 11, 9, 10, 12, 10, 11, 9, 10]))
        assert state == "passing"

    def test_verdict_message_overrides(self) -> None:
        result = QueryResult(
            columns=("day", "n"), rows=(("d1", 1),),
            anomaly_detector=lambda values: True,
        )
        assert evaluate(CheckKind.ANOMALY, None, result) == ("failing", None)

    def test_broken_detector_never_raises(self) -> None:
        def boom(values):
            raise RuntimeError("detector down")

        result = QueryResult(columns=("day", "n"), rows=(("d1", 1),), anomaly_detector=boom)
        state, message = evaluate(CheckKind.ANOMALY, None, result)
        assert state == "error"
        assert "detector down" in message
