"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from querywatch.checks.coordinator import CheckEvaluator
from querywatch.checks.models import CheckRecord
from querywatch.checks.router import StateChangeNotification

FIXED_NOW = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class RecordingSink:
    """Fake sink that records every call in a shared log."""

    def __init__(self, name: str, log: list[tuple[str, Any]]) -> None:
        self.name = name
        self.log = log

    def state_change(self, notification: StateChangeNotification) -> None:
        self.log.append((self.name, notification))

    def publish(self, event: dict[str, Any]) -> None:
        self.log.append((self.name, event))

    @property
    def calls(self) -> list[Any]:
        return [payload for name, payload in self.log if name == self.name]


class FakeStore:
    """In-memory persistence that counts saves."""

    def __init__(self) -> None:
        self.saved: list[dict[str, Any]] = []

    def save(self, check: CheckRecord) -> None:
        self.saved.append(check.to_dict())


@pytest.fixture
def call_log() -> list[tuple[str, Any]]:
    return []


@pytest.fixture
def email_sink(call_log) -> RecordingSink:
    return RecordingSink("email", call_log)


@pytest.fixture
def chat_sink(call_log) -> RecordingSink:
    return RecordingSink("chat", call_log)


@pytest.fixture
def event_sink(call_log) -> RecordingSink:
    return RecordingSink("event", call_log)


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def evaluator(fake_store, email_sink, chat_sink, event_sink) -> CheckEvaluator:
    """A CheckEvaluator with recording sinks and a frozen clock."""
    return CheckEvaluator(
        fake_store,
        email_sink=email_sink,
        chat_sink=chat_sink,
        event_sink=event_sink,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW
