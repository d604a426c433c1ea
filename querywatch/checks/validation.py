"""Pre-save normalization and validation for check records."""

from __future__ import annotations

import re

from .models import CheckKind, CheckRecord, QueryRef, State

_EMAIL_RE = re.compile(r"\A\S+@\S+\.\S+\Z")
_SEPARATORS_RE = re.compile(r"[;\s]")
_COMMAS_RE = re.compile(r",+")


class CheckValidationError(ValueError):
    """All validation problems for a check, raised as one error."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def normalize_emails(emails: str | None) -> str:
    """Turn ``"a@x.com; b@x.com  c@x.com"`` into ``"a@x.com, b@x.com, c@x.com"``."""
    if not emails or not emails.strip():
        return ""
    # people use ; or whitespace as separators; treat them all as commas
    fixed = _SEPARATORS_RE.sub(",", emails.strip())
    return _COMMAS_RE.sub(", ", fixed).lower()


def prepare_check(check: CheckRecord, query: QueryRef | None, query_changed: bool) -> CheckRecord:
    """Default the state, normalize emails and validate. Mutates ``check``.

    Raises ``CheckValidationError`` with every problem found.
    """
    if not check.state:
        check.state = State.NEW.value
    check.emails = normalize_emails(check.emails)

    errors: list[str] = []

    if check.query_id is None:
        errors.append("Query can't be blank")
    elif query is None:
        errors.append("Query must exist")

    if not all(_EMAIL_RE.match(e) for e in check.split_emails()):
        errors.append("Invalid emails")

    if query_changed and query is not None:
        if query.variables and check.kind != CheckKind.ALERT_FANOUT:
            errors.append("Query can't have variables")

    if errors:
        raise CheckValidationError(errors)
    return check
