"""Sink interfaces used by the check coordinator.

Sinks raise ``NotificationError`` on delivery failure; the coordinator does
not swallow it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ..checks.router import StateChangeNotification


class NotificationError(Exception):
    """Raised when a notification could not be delivered."""


class EmailSink(Protocol):
    def state_change(self, notification: StateChangeNotification) -> None: ...


class ChatSink(Protocol):
    def state_change(self, notification: StateChangeNotification) -> None: ...


class EventSink(Protocol):
    def publish(self, event: dict[str, Any]) -> None: ...


class NullSink:
    """Sink that drops everything. Used when a channel is not wired."""

    def state_change(self, notification: StateChangeNotification) -> None:
        return None

    def publish(self, event: dict[str, Any]) -> None:
        return None
