"""Result evaluation: maps a query result to a check state.

Precedence (first match wins):
  1. timed out            → "timed out"
  2. result error         → "error"
  3. anomaly checks       → detector verdict (failing / passing / error)
  4. alert fanout checks  → "rows_found" / "none"
  5. generic checks       → rows vs. no rows, flipped by invert
"""

from __future__ import annotations

from .models import CheckKind, CheckRecord, QueryResult, Semantics, State


def normalize_kind(kind: CheckKind | None, invert: bool | None) -> Semantics:
    """Collapse an explicit kind and/or legacy invert flag into one semantics value."""
    if kind == CheckKind.ANOMALY:
        return Semantics.ANOMALY
    if kind == CheckKind.ALERT_FANOUT:
        return Semantics.ALERT_NOTIFICATIONS
    return Semantics.MISSING_DATA if invert else Semantics.BAD_DATA


def resolve_semantics(check: CheckRecord) -> Semantics:
    return normalize_kind(check.kind, check.invert)


def evaluate_semantics(semantics: Semantics, result: QueryResult) -> tuple[str, str | None]:
    """Return ``(state, message)`` for an already-resolved semantics value.

    Never raises for result content: errors, timeouts and missing anomaly
    verdicts are all ordinary states.
    """
    message = result.error

    if result.timed_out:
        return State.TIMED_OUT.value, message
    if result.error:
        return State.ERROR.value, message

    if semantics == Semantics.ANOMALY:
        anomaly, message = result.detect_anomaly()
        if anomaly is None:
            return State.ERROR.value, message
        return (State.FAILING.value if anomaly else State.PASSING.value), message

    has_rows = result.row_count > 0

    if semantics == Semantics.ALERT_NOTIFICATIONS:
        return (State.ROWS_FOUND.value if has_rows else State.NONE.value), message

    if semantics == Semantics.MISSING_DATA:
        return (State.PASSING.value if has_rows else State.FAILING.value), message
    return (State.FAILING.value if has_rows else State.PASSING.value), message


def evaluate(kind: CheckKind | None, invert: bool | None, result: QueryResult) -> tuple[str, str | None]:
    """Evaluate ``result`` for a check of ``kind`` (with optional legacy ``invert``)."""
    return evaluate_semantics(normalize_kind(kind, invert), result)
