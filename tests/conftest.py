"""Shared fixtures: an isolated database and a controllable clock."""

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

# Point the app at a throwaway database before backend.config is imported.
os.environ.setdefault(
    "FLASHDECK_DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(tempfile.mkdtemp()) / 'flashdeck-test.db'}",
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backend.database import init_db  # noqa: E402
from backend.srs.session import ReviewService  # noqa: E402
from backend.store import CardStore  # noqa: E402

T0 = datetime(2024, 3, 1, 9, 0, 0)


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> CardStore:
    return CardStore(session_factory)


@pytest.fixture
def service(store: CardStore, clock: FakeClock) -> ReviewService:
    return ReviewService(store, clock=clock)
