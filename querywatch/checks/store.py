"""SQLite-backed storage for queries and checks."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from .models import CheckKind, CheckRecord, QueryRef
from .validation import prepare_check

logger = logging.getLogger(__name__)

DB_PATH = Path("data") / "checks.db"


class PersistenceError(Exception):
    """Raised when a check could not be written."""


class CheckStore:
    """SQLite storage for checks and the queries they reference."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = Path(db_path or DB_PATH)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
        return self._conn

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS queries (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL DEFAULT '',
                statement TEXT NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS checks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                query_id INTEGER NOT NULL REFERENCES queries (id),
                creator_id INTEGER,
                emails TEXT NOT NULL DEFAULT '',
                slack_channels TEXT NOT NULL DEFAULT '',
                kind TEXT,
                invert INTEGER,
                state TEXT,
                message TEXT,
                last_run_at TEXT,
                timeouts INTEGER,
                check_params TEXT NOT NULL DEFAULT '{}'
            );

            CREATE INDEX IF NOT EXISTS idx_checks_query ON checks (query_id);
        """)
        conn.commit()

    # ── Queries ──────────────────────────────────────────────────────────

    def add_query(self, query: QueryRef) -> QueryRef:
        conn = self._get_conn()
        cursor = conn.execute(
            "INSERT INTO queries (name, statement) VALUES (?, ?)",
            (query.name, query.statement),
        )
        conn.commit()
        query.id = cursor.lastrowid
        return query

    def get_query(self, query_id: int) -> QueryRef | None:
        row = self._get_conn().execute(
            "SELECT * FROM queries WHERE id = ?", (query_id,),
        ).fetchone()
        if not row:
            return None
        return QueryRef(id=row["id"], name=row["name"], statement=row["statement"])

    # ── Checks ───────────────────────────────────────────────────────────

    def create(self, check: CheckRecord) -> CheckRecord:
        """Validate and insert a new check. Raises ``CheckValidationError``."""
        query = self.get_query(check.query_id) if check.query_id is not None else None
        prepare_check(check, query, query_changed=True)

        conn = self._get_conn()
        cols = _to_row(check)
        cols.pop("id")
        names = ", ".join(cols)
        marks = ", ".join("?" for _ in cols)
        cursor = conn.execute(
            f"INSERT INTO checks ({names}) VALUES ({marks})", tuple(cols.values()),
        )
        conn.commit()
        check.id = cursor.lastrowid
        logger.info("Created check %s for query %s", check.id, check.query_id)
        return check

    def update(self, check: CheckRecord) -> CheckRecord:
        """Validate and write a user edit. The variables rule only runs when the query changed."""
        existing = self.get(check.id) if check.id is not None else None
        if existing is None:
            raise KeyError(f"Check not found: {check.id}")

        query_changed = existing.query_id != check.query_id
        query = self.get_query(check.query_id) if check.query_id is not None else None
        prepare_check(check, query, query_changed=query_changed)

        self._write(check)
        return check

    def save(self, check: CheckRecord) -> None:
        """Write a check as-is (used by the evaluator after a change)."""
        if check.id is None:
            raise PersistenceError("Cannot save a check without an id")
        self._write(check)

    def _write(self, check: CheckRecord) -> None:
        cols = _to_row(check)
        check_id = cols.pop("id")
        assignments = ", ".join(f"{name} = ?" for name in cols)
        try:
            conn = self._get_conn()
            cursor = conn.execute(
                f"UPDATE checks SET {assignments} WHERE id = ?",
                (*cols.values(), check_id),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save check {check_id}: {e}") from e
        if cursor.rowcount == 0:
            raise PersistenceError(f"Check not found: {check_id}")

    def get(self, check_id: int) -> CheckRecord | None:
        row = self._get_conn().execute(
            "SELECT * FROM checks WHERE id = ?", (check_id,),
        ).fetchone()
        return _from_row(dict(row)) if row else None

    def list_all(self) -> list[CheckRecord]:
        rows = self._get_conn().execute("SELECT * FROM checks ORDER BY id").fetchall()
        return [_from_row(dict(r)) for r in rows]

    def delete(self, check_id: int) -> bool:
        conn = self._get_conn()
        cursor = conn.execute("DELETE FROM checks WHERE id = ?", (check_id,))
        conn.commit()
        return cursor.rowcount > 0

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None


# ── Row mapping ──────────────────────────────────────────────────────────────


def _to_row(check: CheckRecord) -> dict[str, Any]:
    return {
        "id": check.id,
        "query_id": check.query_id,
        "creator_id": check.creator_id,
        "emails": check.emails or "",
        "slack_channels": check.slack_channels or "",
        "kind": check.kind.value if check.kind else None,
        "invert": None if check.invert is None else int(check.invert),
        "state": check.state,
        "message": check.message,
        "last_run_at": check.last_run_at.isoformat() if check.last_run_at else None,
        "timeouts": check.timeouts,
        "check_params": json.dumps(check.check_params or {}, default=str),
    }


def _from_row(row: dict[str, Any]) -> CheckRecord:
    params = row.get("check_params") or "{}"
    try:
        params = json.loads(params)
    except json.JSONDecodeError:
        logger.warning("Check %s has unreadable check_params; resetting", row["id"])
        params = {}

    last_run_at = row.get("last_run_at")
    return CheckRecord(
        id=row["id"],
        query_id=row["query_id"],
        creator_id=row.get("creator_id"),
        emails=row.get("emails", ""),
        slack_channels=row.get("slack_channels", ""),
        kind=CheckKind(row["kind"]) if row.get("kind") else None,
        invert=None if row.get("invert") is None else bool(row["invert"]),
        state=row.get("state"),
        message=row.get("message"),
        last_run_at=datetime.fromisoformat(last_run_at) if last_run_at else None,
        timeouts=row.get("timeouts"),
        check_params=params,
    )
