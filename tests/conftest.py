"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from cadence.clock import Clock
from cadence.database.models import Base
from cadence.database.seed import seed_defaults
from cadence.stores.base import Stores
from cadence.stores.document import build_document_stores
from cadence.stores.sql import build_sql_stores

# Wednesday noon UTC: no weekend factor
WEDNESDAY_NOON = datetime(2026, 10, 14, 12, 0, tzinfo=UTC)


def run_async(coro):
    """Run an async coroutine in a fresh event loop that is closed afterwards."""
    return asyncio.run(coro)


class FixedClock(Clock):
    """Clock frozen at *moment* until moved with :meth:`set`."""

    def __init__(self, moment: datetime = WEDNESDAY_NOON, timezone: str = "UTC") -> None:
        super().__init__(timezone)
        self.moment = moment

    def set(self, moment: datetime) -> None:
        self.moment = moment

    def now(self) -> datetime:
        return self.moment.astimezone(self.tz)


class LowRng:
    """Deterministic stand-in for ``random.Random``: always the low end."""

    def randint(self, a: int, b: int) -> int:
        return a


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Cadence tables.

    StaticPool keeps one connection so worker threads started by
    ``asyncio.to_thread`` see the same database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture(params=["sql", "document"])
def stores(request, db_engine: Engine) -> Stores:
    """Unseeded stores, once per backend."""
    if request.param == "sql":
        return build_sql_stores(db_engine)
    return build_document_stores(None)


@pytest.fixture
def seeded_stores(stores: Stores) -> Stores:
    seed_defaults(stores)
    return stores


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def today(clock: FixedClock) -> date:
    return clock.today()
