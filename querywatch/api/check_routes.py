"""Check API routes: query/check CRUD and result submission."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..checks.models import CheckKind, CheckRecord, QueryRef, QueryResult
from ..checks.runner import CheckRunner
from ..checks.store import CheckStore, PersistenceError
from ..checks.validation import CheckValidationError
from ..notifications.base import NotificationError

logger = logging.getLogger(__name__)

check_router = APIRouter(tags=["checks"])


# ── Request models ───────────────────────────────────────────────────────

class CreateQueryBody(BaseModel):
    name: str = ""
    statement: str


class CreateCheckBody(BaseModel):
    query_id: int | None = None
    creator_id: int | None = None
    emails: str = ""
    slack_channels: str = ""
    kind: CheckKind | None = None
    invert: bool | None = None
    track_timeouts: bool = True
    check_params: dict[str, Any] = {}


class UpdateCheckBody(BaseModel):
    query_id: int | None = None
    emails: str | None = None
    slack_channels: str | None = None
    kind: CheckKind | None = None
    invert: bool | None = None
    check_params: dict[str, Any] | None = None


class ResultBody(BaseModel):
    columns: list[str] = []
    column_types: list[str] = []
    rows: list[list[Any]] = []
    error: str | None = None
    timed_out: bool = False


# ── Helpers ──────────────────────────────────────────────────────────────

def _get_store(request: Request) -> CheckStore:
    return request.app.state.check_store  # type: ignore[no-any-return]


def _get_runner(request: Request) -> CheckRunner:
    return request.app.state.check_runner  # type: ignore[no-any-return]


def _invalid(e: CheckValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"errors": e.errors})


def _require_check(store: CheckStore, check_id: int) -> CheckRecord:
    check = store.get(check_id)
    if not check:
        raise HTTPException(status_code=404, detail=f"Check not found: {check_id}")
    return check


# ── Queries ──────────────────────────────────────────────────────────────

@check_router.post("/queries", status_code=201)
def create_query(body: CreateQueryBody, request: Request) -> dict[str, Any]:
    query = _get_store(request).add_query(QueryRef(name=body.name, statement=body.statement))
    return {"query": {"id": query.id, "name": query.name, "variables": query.variables}}


@check_router.get("/queries/{query_id}")
def get_query(query_id: int, request: Request) -> dict[str, Any]:
    query = _get_store(request).get_query(query_id)
    if not query:
        raise HTTPException(status_code=404, detail=f"Query not found: {query_id}")
    return {"query": {
        "id": query.id, "name": query.name,
        "statement": query.statement, "variables": query.variables,
    }}


# ── Checks ───────────────────────────────────────────────────────────────

@check_router.get("/checks")
def list_checks(request: Request) -> dict[str, Any]:
    checks = _get_store(request).list_all()
    return {"checks": [c.to_dict() for c in checks], "count": len(checks)}


@check_router.post("/checks", status_code=201)
def create_check(body: CreateCheckBody, request: Request) -> Any:
    store = _get_store(request)
    if body.query_id is not None and not store.get_query(body.query_id):
        raise HTTPException(status_code=404, detail=f"Query not found: {body.query_id}")

    check = CheckRecord(
        query_id=body.query_id,
        creator_id=body.creator_id,
        emails=body.emails,
        slack_channels=body.slack_channels,
        kind=body.kind,
        invert=body.invert,
        timeouts=0 if body.track_timeouts else None,
        check_params=dict(body.check_params),
    )
    try:
        created = store.create(check)
    except CheckValidationError as e:
        return _invalid(e)
    return {"check": created.to_dict(), "status": "created"}


@check_router.get("/checks/{check_id}")
def get_check(check_id: int, request: Request) -> dict[str, Any]:
    return {"check": _require_check(_get_store(request), check_id).to_dict()}


@check_router.patch("/checks/{check_id}")
def update_check(check_id: int, body: UpdateCheckBody, request: Request) -> Any:
    store = _get_store(request)
    check = _require_check(store, check_id)

    for name, value in body.model_dump(exclude_none=True).items():
        setattr(check, name, value)
    if check.query_id is not None and not store.get_query(check.query_id):
        raise HTTPException(status_code=404, detail=f"Query not found: {check.query_id}")

    try:
        updated = store.update(check)
    except CheckValidationError as e:
        return _invalid(e)
    return {"check": updated.to_dict(), "status": "updated"}


@check_router.delete("/checks/{check_id}")
def delete_check(check_id: int, request: Request) -> dict[str, Any]:
    if not _get_store(request).delete(check_id):
        raise HTTPException(status_code=404, detail=f"Check not found: {check_id}")
    return {"status": "deleted"}


@check_router.post("/checks/{check_id}/results")
def submit_result(check_id: int, body: ResultBody, request: Request) -> dict[str, Any]:
    """Evaluate a query result against the check and return the outcome."""
    result = QueryResult.from_dict(body.model_dump(), anomaly_detector=request.app.state.detector)

    try:
        # The check is read under the runner's per-check lock
        evaluated = _get_runner(request).evaluate_stored(_get_store(request), check_id, result)
    except PersistenceError as e:
        logger.error("Check %s: %s", check_id, e)
        raise HTTPException(status_code=500, detail=str(e)) from e
    except NotificationError as e:
        # State was already saved; only delivery failed
        logger.warning("Check %s notification failed: %s", check_id, e)
        raise HTTPException(status_code=502, detail=str(e)) from e

    if evaluated is None:
        raise HTTPException(status_code=404, detail=f"Check not found: {check_id}")
    check, outcome = evaluated
    return {"outcome": outcome.to_dict(), "check": check.to_dict()}
