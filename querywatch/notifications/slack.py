"""Slack notifier: posts check state changes to incoming-webhook channels.

Disabled (and a silent no-op) when no webhook URL is configured.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..checks.models import CheckRecord, Semantics, State
from ..checks.router import StateChangeNotification
from ..config import settings
from .base import NotificationError

logger = logging.getLogger(__name__)


def escape(text: str | None) -> str | None:
    """Escape the characters Slack treats as control sequences."""
    if text is None:
        return None
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def pluralize(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def check_title(state: str, check: CheckRecord) -> str:
    return f"Check {state.title()}: Query {check.query_id}"


class SlackNotifier:
    """Chat sink. Sends one webhook post per channel listed on the check."""

    def __init__(
        self,
        webhook_url: str = "",
        base_url: str = "",
        client: httpx.Client | None = None,
    ) -> None:
        self.webhook_url = webhook_url or settings.slack_webhook_url
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self._client = client or httpx.Client(timeout=10)
        self._enabled = bool(self.webhook_url)

        if self._enabled:
            logger.info("Slack notifier enabled")
        else:
            logger.info("Slack notifier disabled (no webhook)")

    @property
    def enabled(self) -> bool:
        return self._enabled

    def channels_for(self, check: CheckRecord) -> list[str]:
        if not self._enabled:
            return []
        return check.split_slack_channels()

    def build_payload(self, channel: str, n: StateChangeNotification) -> dict[str, Any]:
        if n.message:
            text = n.message
        elif n.row_count > 0 and n.kind == Semantics.BAD_DATA.value:
            text = pluralize(n.row_count, "row")
        else:
            text = None

        return {
            "channel": channel,
            "attachments": [
                {
                    "title": escape(check_title(n.state, n.check)),
                    "title_link": f"{self.base_url}/queries/{n.check.query_id}",
                    "text": escape(text),
                    "color": "good" if n.state == State.PASSING.value else "danger",
                }
            ],
        }

    def state_change(self, notification: StateChangeNotification) -> None:
        for channel in self.channels_for(notification.check):
            self._post(self.build_payload(channel, notification))

    def _post(self, payload: dict[str, Any]) -> None:
        try:
            resp = self._client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"Slack webhook failed: {e}") from e
        if resp.status_code != 200:
            logger.warning("Slack webhook returned %d: %s", resp.status_code, resp.text[:200])
            raise NotificationError(f"Slack webhook returned {resp.status_code}")
        logger.debug("Slack: posted to %s", payload["channel"])

    def close(self) -> None:
        self._client.close()
