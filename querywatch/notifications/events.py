"""Event publisher: forwards per-user alert events to an HTTP endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import settings
from .base import NotificationError

logger = logging.getLogger(__name__)


class EventPublisher:
    """Event sink. POSTs each event as JSON; no-op when no URL is configured."""

    def __init__(
        self,
        url: str = "",
        token: str = "",
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url or settings.event_publisher_url
        self.token = token or settings.event_publisher_token
        self._client = client or httpx.Client(timeout=10)

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def publish(self, event: dict[str, Any]) -> None:
        if not self.enabled:
            logger.debug("Events: skipping %s (no publisher URL)", event.get("action"))
            return

        try:
            resp = self._client.post(self.url, json=event, headers=self._headers())
        except httpx.HTTPError as e:
            raise NotificationError(f"Event publish failed: {e}") from e

        if resp.status_code >= 300:
            logger.warning("Event publisher returned %d: %s", resp.status_code, resp.text[:200])
            raise NotificationError(f"Event publisher returned {resp.status_code}")
        logger.debug("Events: published %s for user %s", event.get("action"), event.get("user_uuid"))

    def close(self) -> None:
        self._client.close()
