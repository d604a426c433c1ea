"""Per-user alert fanout for ``alert_fanout`` checks.

Each result row represents an alert for one user. Rows are deduplicated on
their ``user_uuid`` column and one event is produced per distinct user,
in first-occurrence order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .models import CheckRecord, QueryResult, Semantics, State, rows_found_label

logger = logging.getLogger(__name__)

ALERT_ACTION = "trigger_user_alert_notification"
ALERT_CONTROLLER = "EventController"
USER_FIELD = "user_uuid"


@dataclass
class FanoutPlan:
    """What the aggregator decided: the revised state, params and events to publish."""

    state: str
    check_params: dict[str, Any]
    events: list[dict[str, Any]] = field(default_factory=list)

    @property
    def user_count(self) -> int:
        return len(self.events)


class AlertAggregator:
    """Builds one alert event per distinct user found in the result rows."""

    def applies(self, semantics: Semantics, state: str) -> bool:
        return semantics == Semantics.ALERT_NOTIFICATIONS and state == State.ROWS_FOUND.value

    def aggregate(
        self,
        check: CheckRecord,
        result: QueryResult,
        finished_at: datetime,
    ) -> FanoutPlan:
        """Plan the fanout. ``finished_at`` stamps both the params bag and every event."""
        utc_time = finished_at.isoformat()

        params = dict(check.check_params or {})
        params["last_run_at"] = utc_time

        columns = list(result.columns)
        seen: list[Any] = []
        events: list[dict[str, Any]] = []

        for row in result.rows:
            values = dict(zip(columns, row))
            user_uuid = values.get(USER_FIELD)

            if user_uuid in seen:
                continue
            seen.append(user_uuid)

            events.append({
                "utc_time": utc_time,
                "controller": ALERT_CONTROLLER,
                "action": ALERT_ACTION,
                "user_uuid": user_uuid,
                "event_object": check.object_ref,
                "event_object_data": values,
            })

        logger.debug(
            "Check %s: %d rows fanned out to %d users",
            check.id, result.row_count, len(events),
        )
        return FanoutPlan(
            state=rows_found_label(len(events)),
            check_params=params,
            events=events,
        )
