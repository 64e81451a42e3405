"""Shared async test fixtures for the database and bar data."""

import os

import pytest
import pytest_asyncio

from signal_outcomes.database import build_engine, build_session_factory
from signal_outcomes.models import Base
from signal_outcomes.schemas.bar import Bar

# ---------------------------------------------------------------------------
# Test database URL
# In-memory SQLite by default; point TEST_DATABASE_URL at Postgres to run
# the same tests against asyncpg.
# ---------------------------------------------------------------------------
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite://")

# 2026-01-01 00:00:00 UTC, on every bar grid used in the tests
T0 = 1_767_225_600_000
MINUTE = 60_000


# ---------------------------------------------------------------------------
# Database (function-scoped)
# Each test gets a fresh schema.
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine():
    engine = build_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide a database session on a freshly created schema."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Bar provider double
# ---------------------------------------------------------------------------
class FakeBarProvider:
    """In-memory BarProvider that records every call."""

    def __init__(self, bars: list[Bar] | None = None, error: Exception | None = None):
        self.bars = list(bars or [])
        self.error = error
        self.calls: list[tuple[str, int, int, int]] = []

    async def fetch_bars(self, symbol, interval_min, start_ms, end_ms):
        self.calls.append((symbol, interval_min, start_ms, end_ms))
        if self.error is not None:
            raise self.error
        return [b for b in self.bars if start_ms <= b.time <= end_ms]


@pytest.fixture
def fake_provider():
    return FakeBarProvider()


@pytest.fixture
def scenario_a_bars():
    """Three 5m bars from T0: quiet, TP1 touch at 105, drift higher."""
    return [
        Bar(T0, 100.0, 104.0, 99.0, 103.0),
        Bar(T0 + 5 * MINUTE, 103.0, 106.0, 102.0, 105.0),
        Bar(T0 + 10 * MINUTE, 105.0, 107.0, 104.0, 106.0),
    ]
