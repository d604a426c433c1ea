"""Check evaluation coordinator.

Runs one evaluation cycle for a (check, result) pair:

  evaluate → timeout override → fanout (alert checks) or report routing
  → save if changed → dispatch to sinks

Sinks are called after the save, so a failing sink never loses the computed
state. Evaluations of the same check must be serialized by the caller
(see ``CheckRunner``); different checks share nothing.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from ..notifications.base import ChatSink, EmailSink, EventSink, NullSink
from .evaluator import evaluate_semantics, resolve_semantics
from .fanout import AlertAggregator
from .models import CheckRecord, QueryResult
from .router import DEFAULT_SAMPLE_ROWS, NotificationRouter
from .timeouts import DEFAULT_THRESHOLD, TimeoutTracker

logger = logging.getLogger(__name__)

# Fields whose change makes a cycle worth persisting
OBSERVED_FIELDS = ("state", "message", "timeouts", "check_params")


class CheckPersistence(Protocol):
    def save(self, check: CheckRecord) -> None: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class EvaluationOutcome:
    """Result of one evaluation cycle."""

    check_id: int | None
    state: str
    previous_state: str | None
    message: str | None
    changed: bool
    dispatched: list[tuple[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_id": self.check_id,
            "state": self.state,
            "previous_state": self.previous_state,
            "message": self.message,
            "changed": self.changed,
            "dispatched": [name for name, _ in self.dispatched],
        }


def _snapshot(check: CheckRecord) -> dict[str, Any]:
    return {name: copy.deepcopy(getattr(check, name)) for name in OBSERVED_FIELDS}


class CheckEvaluator:
    """Orchestrates evaluation, timeout tracking, fanout, routing and persistence."""

    def __init__(
        self,
        store: CheckPersistence,
        email_sink: EmailSink | None = None,
        chat_sink: ChatSink | None = None,
        event_sink: EventSink | None = None,
        timeout_threshold: int = DEFAULT_THRESHOLD,
        sample_rows: int = DEFAULT_SAMPLE_ROWS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.email_sink = email_sink if email_sink is not None else NullSink()
        self.chat_sink = chat_sink if chat_sink is not None else NullSink()
        self.event_sink = event_sink if event_sink is not None else NullSink()
        self.timeout_tracker = TimeoutTracker(timeout_threshold)
        self.aggregator = AlertAggregator()
        self.router = NotificationRouter(sample_rows)
        self._clock = clock

    def close(self) -> None:
        """Release sink resources such as HTTP clients."""
        for sink in (self.email_sink, self.chat_sink, self.event_sink):
            close = getattr(sink, "close", None)
            if close is not None:
                close()

    def evaluate(self, check: CheckRecord, result: QueryResult) -> EvaluationOutcome:
        """Evaluate ``result`` against ``check``, mutating the check in place."""
        semantics = resolve_semantics(check)
        before = _snapshot(check)
        previous_state = check.state

        state, message = evaluate_semantics(semantics, result)
        finished_at = self._clock()

        check.last_run_at = finished_at
        check.message = message
        check.timeouts, state = self.timeout_tracker.apply(check.timeouts, result.timed_out, state)

        events: list[dict[str, Any]] = []
        notification = None

        if self.aggregator.applies(semantics, state):
            plan = self.aggregator.aggregate(check, result, finished_at)
            check.check_params = plan.check_params
            state = plan.state
            events = plan.events
        else:
            notification = self.router.route(
                check, previous_state, state, message, result, semantics.value,
            )

        check.state = state
        changed = _snapshot(check) != before

        if changed:
            # Persistence errors are fatal for this cycle: nothing is dispatched
            self.store.save(check)
            logger.info("Check %s: %s → %s", check.id, previous_state, state)

        outcome = EvaluationOutcome(
            check_id=check.id,
            state=state,
            previous_state=previous_state,
            message=message,
            changed=changed,
        )

        for event in events:
            self.event_sink.publish(event)
            outcome.dispatched.append(("event", event))

        if notification is not None:
            for target in self.router.targets(check):
                sink = self.email_sink if target == "email" else self.chat_sink
                sink.state_change(notification)
                outcome.dispatched.append((target, notification))

        return outcome
