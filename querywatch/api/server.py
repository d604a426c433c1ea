"""FastAPI server for query checks."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .check_routes import check_router
from ..checks.store import CheckStore
from ..config import settings
from ..services import build_detector, build_runner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the check store and wire the runner on startup."""
    store = CheckStore(settings.checks_db_path)
    runner = build_runner(store)
    app.state.check_store = store
    app.state.check_runner = runner
    app.state.detector = build_detector()
    logger.info("Check store opened at %s", settings.checks_db_path)

    yield

    runner.close()
    store.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="querywatch",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(check_router, prefix="/api")

    @app.get("/api/status")
    def status() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
