"""
cadence.api.main — FastAPI application entry point
===================================================

Read-only HTTP view over the same stores the bot writes to.

Run with::

    uvicorn cadence.api.main:app --port 8000
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

load_dotenv()

from cadence.api.deps import get_config, get_stores  # noqa: E402
from cadence.api.routes.public import router as public_router  # noqa: E402
from cadence.errors import TransientStoreError  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the stores once at startup."""
    cfg = get_config()
    get_stores()
    logger.info("Cadence API started (storage=%s)", cfg.storage_backend)
    yield
    logger.info("Cadence API shutting down")


app = FastAPI(
    title="Cadence Leaderboard API",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(public_router, prefix="/api")


@app.exception_handler(TransientStoreError)
async def storage_unavailable(request: Request, exc: TransientStoreError):
    logger.warning("Storage unavailable for %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable"})


@app.get("/api/health")
def health():
    return {"status": "ok"}
