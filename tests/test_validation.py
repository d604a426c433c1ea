"""Tests for check normalization and validation."""

from __future__ import annotations

import pytest

from querywatch.checks.models import CheckKind, CheckRecord, QueryRef
from querywatch.checks.validation import CheckValidationError, normalize_emails, prepare_check

PLAIN = QueryRef(id=1, statement="SELECT * FROM orders WHERE total < 0")
WITH_VARS = QueryRef(id=2, statement="SELECT * FROM alerts WHERE created_at > {start} AND user_id = {user} OR x = {start}")


class TestNormalizeEmails:
    def test_mixed_separators(self) -> None:
        assert normalize_emails("a@x.com; b@x.com  c@x.com") == "a@x.com, b@x.com, c@x.com"

    def test_lowercases_and_trims(self) -> None:
        assert normalize_emails("  Ops@Example.COM ,dev@example.com ") == "ops@example.com, dev@example.com"

    def test_blank(self) -> None:
        assert normalize_emails("   ") == ""
        assert normalize_emails(None) == ""


class TestQueryVariables:
    def test_distinct_in_order(self) -> None:
        assert WITH_VARS.variables == ["start", "user"]

    def test_none(self) -> None:
        assert PLAIN.variables == []


class TestPrepareCheck:
    def test_defaults_state_and_fixes_emails(self) -> None:
        check = prepare_check(CheckRecord(query_id=1, emails="a@x.com; b@x.com"), PLAIN, True)
        assert check.state == "new"
        assert check.emails == "a@x.com, b@x.com"

    def test_keeps_existing_state(self) -> None:
        check = prepare_check(CheckRecord(query_id=1, state="failing"), PLAIN, False)
        assert check.state == "failing"

    def test_invalid_email(self) -> None:
        with pytest.raises(CheckValidationError) as exc:
            prepare_check(CheckRecord(query_id=1, emails="not-an-email"), PLAIN, True)
        assert exc.value.errors == ["Invalid emails"]

    def test_variables_rejected_for_generic(self) -> None:
        with pytest.raises(CheckValidationError) as exc:
            prepare_check(CheckRecord(query_id=2), WITH_VARS, True)
        assert exc.value.errors == ["Query can't have variables"]

    def test_variables_allowed_for_fanout(self) -> None:
        check = CheckRecord(query_id=2, kind=CheckKind.ALERT_FANOUT)
        assert prepare_check(check, WITH_VARS, True) is check

    def test_variables_only_checked_on_query_change(self) -> None:
        check = CheckRecord(query_id=2, state="passing")
        assert prepare_check(check, WITH_VARS, False) is check

    def test_errors_aggregate(self) -> None:
        with pytest.raises(CheckValidationError) as exc:
            prepare_check(CheckRecord(query_id=2, emails="nope"), WITH_VARS, True)
        assert exc.value.errors == ["Invalid emails", "Query can't have variables"]
        assert "Invalid emails" in str(exc.value)

    def test_missing_query(self) -> None:
        with pytest.raises(CheckValidationError) as exc:
            prepare_check(CheckRecord(), None, True)
        assert exc.value.errors == ["Query can't be blank"]

    def test_dangling_query_id(self) -> None:
        with pytest.raises(CheckValidationError) as exc:
            prepare_check(CheckRecord(query_id=7), None, False)
        assert exc.value.errors == ["Query must exist"]
