"""Check domain models: records, queries, results and state labels.

A CheckRecord is the persisted configuration + health state of one check.
A QueryResult is the immutable outcome of running the check's query once.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .anomaly import AnomalyDetector, StdDevDetector, detect_anomaly

logger = logging.getLogger(__name__)

_VARIABLE_RE = re.compile(r"\{\w*?\}")


# ── Labels ───────────────────────────────────────────────────────────────────


class CheckKind(str, Enum):
    """Explicit kind stored on a check."""

    GENERIC = "generic"
    ANOMALY = "anomaly"
    ALERT_FANOUT = "alert_fanout"


class Semantics(str, Enum):
    """Normalized evaluation semantics, resolved once per record."""

    BAD_DATA = "bad_data"  # rows present is bad
    MISSING_DATA = "missing_data"  # rows absent is bad
    ANOMALY = "anomaly"
    ALERT_NOTIFICATIONS = "alert_notifications"


class State(str, Enum):
    NEW = "new"
    PASSING = "passing"
    FAILING = "failing"
    ERROR = "error"
    TIMED_OUT = "timed out"
    DISABLED = "disabled"
    NONE = "none"
    ROWS_FOUND = "rows_found"


def rows_found_label(count: int) -> str:
    """State label after fanning out alerts to ``count`` distinct users."""
    return f"{count}_rows_found"


# ── Query ────────────────────────────────────────────────────────────────────


@dataclass
class QueryRef:
    """The query a check runs. Only its variables matter to this package."""

    id: int | None = None
    name: str = ""
    statement: str = ""

    @property
    def variables(self) -> list[str]:
        seen: list[str] = []
        for match in _VARIABLE_RE.findall(self.statement):
            name = match[1:-1]
            if name not in seen:
                seen.append(name)
        return seen


# ── Check ────────────────────────────────────────────────────────────────────


@dataclass
class CheckRecord:
    """A monitored query with alerting configuration and current health state.

    ``kind``, ``invert`` and ``timeouts`` are optional capabilities: ``None``
    means the record does not carry that field at all.
    """

    id: int | None = None
    query_id: int | None = None
    creator_id: int | None = None
    emails: str = ""
    slack_channels: str = ""
    kind: CheckKind | None = None
    invert: bool | None = None
    state: str | None = None
    message: str | None = None
    last_run_at: datetime | None = None
    timeouts: int | None = None
    check_params: dict[str, Any] = field(default_factory=dict)

    @property
    def object_ref(self) -> str:
        """Opaque identifier used in published events."""
        return f"Check/{self.id}"

    def split_emails(self) -> list[str]:
        return [e.strip() for e in (self.emails or "").lower().split(",") if e.strip()]

    def split_slack_channels(self) -> list[str]:
        return [c.strip() for c in (self.slack_channels or "").lower().split(",") if c.strip()]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "query_id": self.query_id,
            "creator_id": self.creator_id,
            "emails": self.emails,
            "slack_channels": self.slack_channels,
            "kind": self.kind.value if self.kind else None,
            "invert": self.invert,
            "state": self.state,
            "message": self.message,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "timeouts": self.timeouts,
            "check_params": self.check_params,
        }


# ── Result ───────────────────────────────────────────────────────────────────


AnomalyVerdict = tuple[bool | None, str | None]


@dataclass(frozen=True)
class QueryResult:
    """Immutable outcome of running a check's query once."""

    columns: Sequence[str] = ()
    column_types: Sequence[str] = ()
    rows: Sequence[Sequence[Any]] = ()
    error: str | None = None
    timed_out: bool = False
    anomaly_detector: AnomalyDetector | None = field(default=None, compare=False, repr=False)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def detect_anomaly(self) -> AnomalyVerdict:
        """Return ``(verdict, message)``; verdict is None when no verdict could be made."""
        detector: Callable[[list[float]], bool] = self.anomaly_detector or StdDevDetector()
        try:
            return detect_anomaly(self.columns, self.rows, detector)
        except Exception as e:
            # A misbehaving custom detector is a result-level error, not a crash
            logger.warning("Anomaly detector failed: %s", e)
            return None, f"Anomaly detection failed: {e}"

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], anomaly_detector: AnomalyDetector | None = None,
    ) -> "QueryResult":
        return cls(
            columns=tuple(data.get("columns") or ()),
            column_types=tuple(data.get("column_types") or ()),
            rows=tuple(tuple(r) for r in data.get("rows") or ()),
            error=data.get("error"),
            timed_out=bool(data.get("timed_out", False)),
            anomaly_detector=anomaly_detector,
        )
