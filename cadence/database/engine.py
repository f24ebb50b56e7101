"""
cadence.database.engine — Database Connection & Async Helper
=============================================================

Discord bots run on an ``asyncio`` event loop while SQLAlchemy is
synchronous.  Every store call from a Cog goes through :func:`run_db`,
which ships the synchronous function to a worker thread so the event
loop stays free:

    1. An event fires in Discord  (async world).
    2. The Cog calls ``await run_db(engine_fn, stores, signal)``.
    3. ``run_db`` runs it on the default thread pool.
    4. The result is awaited back in the Cog.

The same bridge serves the document backend, whose store methods are
synchronous too.

Usage::

    from cadence.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from cadence.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine`.

    *url* defaults to the ``DATABASE_URL`` env var.  Server databases get a
    small pool (5 + 10 overflow, pre-ping, hourly recycle); SQLite gets the
    defaults, and an in-memory SQLite URL shares one connection across
    threads so ``run_db`` sees the same database.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid database URL."
        )

    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            engine = create_engine(url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(
            url,
            echo=False,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
            pool_timeout=10,
            pool_recycle=3600,
        )
    logger.info("Database engine created → %s", engine.url.render_as_string(hide_password=True))
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`cadence.database.models`.

    Safe on every startup.  In production the schema is managed by Alembic
    (``alembic upgrade head``); ``create_all`` covers dev/test databases.
    Default settings are seeded separately by
    :func:`cadence.database.seed.seed_defaults` for either backend.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that commits on success and rolls back on error."""
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** store/engine function on a background thread.

    ::

        outcome = await run_db(award_engine.award, signal)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
