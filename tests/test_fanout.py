"""Tests for per-user alert fanout."""

from __future__ import annotations

from datetime import datetime, timezone

from querywatch.checks.fanout import ALERT_ACTION, AlertAggregator
from querywatch.checks.models import CheckRecord, QueryResult, Semantics

NOW = datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)


def _result(*uuids: str) -> QueryResult:
    return QueryResult(
        columns=("user_uuid", "amount"),
        column_types=("uuid", "integer"),
        rows=tuple((u, i) for i, u in enumerate(uuids)),
    )


class TestApplies:
    def test_only_rows_found_on_fanout(self) -> None:
        agg = AlertAggregator()
        assert agg.applies(Semantics.ALERT_NOTIFICATIONS, "rows_found")
        assert not agg.applies(Semantics.ALERT_NOTIFICATIONS, "none")
        assert not agg.applies(Semantics.ALERT_NOTIFICATIONS, "disabled")
        assert not agg.applies(Semantics.BAD_DATA, "rows_found")


class TestAggregate:
    def test_dedup_first_occurrence_order(self) -> None:
        check = CheckRecord(id=7)
        plan = AlertAggregator().aggregate(check, _result("A", "A", "B"), NOW)

        assert plan.state == "2_rows_found"
        assert [e["user_uuid"] for e in plan.events] == ["A", "B"]
        # first row for A wins
        assert plan.events[0]["event_object_data"] == {"user_uuid": "A", "amount": 0}
        assert plan.events[1]["event_object_data"] == {"user_uuid": "B", "amount": 2}

    def test_event_shape(self) -> None:
        plan = AlertAggregator().aggregate(CheckRecord(id=7), _result("A"), NOW)
        event = plan.events[0]
        assert event["action"] == ALERT_ACTION
        assert event["event_object"] == "Check/7"
        assert event["utc_time"] == NOW.isoformat()

    def test_params_timestamp_matches_events(self) -> None:
        check = CheckRecord(id=1, check_params={"window": "1d"})
        plan = AlertAggregator().aggregate(check, _result("A", "B"), NOW)
        assert plan.check_params == {"window": "1d", "last_run_at": NOW.isoformat()}
        assert all(e["utc_time"] == plan.check_params["last_run_at"] for e in plan.events)
        # original params untouched until the coordinator applies the plan
        assert check.check_params == {"window": "1d"}

    def test_rows_without_user_column(self) -> None:
        result = QueryResult(columns=("amount",), rows=((1,), (2,)))
        plan = AlertAggregator().aggregate(CheckRecord(id=1), result, NOW)
        assert plan.state == "1_rows_found"
        assert plan.events[0]["user_uuid"] is None
