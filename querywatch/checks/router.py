"""Report notification routing: decides whether a state change is worth reporting."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .models import CheckRecord, QueryResult, State

DEFAULT_SAMPLE_ROWS = 10


@dataclass
class StateChangeNotification:
    """Payload handed to the email and chat sinks."""

    check: CheckRecord
    state: str
    previous_state: str | None
    row_count: int
    message: str | None
    columns: list[str] = field(default_factory=list)
    sample_rows: list[list[Any]] = field(default_factory=list)
    column_types: list[str] = field(default_factory=list)
    kind: str = ""


class NotificationRouter:
    """Fires a report when the state actually changed.

    A brand new check that passes on its first run stays quiet.
    """

    def __init__(self, sample_rows: int = DEFAULT_SAMPLE_ROWS) -> None:
        self.sample_rows = sample_rows

    @staticmethod
    def should_notify(previous_state: str | None, state: str) -> bool:
        if previous_state == State.NEW.value and state == State.PASSING.value:
            return False
        return state != previous_state

    def route(
        self,
        check: CheckRecord,
        previous_state: str | None,
        state: str,
        message: str | None,
        result: QueryResult,
        kind: str,
    ) -> StateChangeNotification | None:
        if not self.should_notify(previous_state, state):
            return None

        return StateChangeNotification(
            check=check,
            state=state,
            previous_state=previous_state,
            row_count=result.row_count,
            message=message,
            columns=list(result.columns),
            sample_rows=[list(r) for r in result.rows[: self.sample_rows]],
            column_types=list(result.column_types),
            kind=kind,
        )

    @staticmethod
    def targets(check: CheckRecord) -> list[str]:
        """Sinks to dispatch to, in order. Chat is always called; it no-ops itself."""
        sinks = []
        if check.split_emails():
            sinks.append("email")
        sinks.append("chat")
        return sinks
