"""
Pytest fixtures for test database, clock, seeded shows and HTTP client.

Runs against TEST_DATABASE_URL, defaulting to an in-memory SQLite database
shared by every session of a test. Point it at PostgreSQL to also run the
real concurrency tests. Tables are created and dropped per test.

Time never advances on its own: services get a FakeClock that tests move
forward explicitly.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Settings are read once, at import of the application
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["REDIS_ENABLED"] = "false"
os.environ["HOLD_SWEEP_ENABLED"] = "false"
os.environ.pop("ADMIN_API_TOKEN", None)

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from boxoffice.main import app
from boxoffice.api.deps import get_clock
from boxoffice.core.config import get_settings
from boxoffice.db.base import Base
from boxoffice.db.session import get_db
from boxoffice.models.show import Show
from boxoffice.schemas.show import ShowCreate
from boxoffice.services.reservation_service import ReservationService
from boxoffice.services.seat_identity import SeatIdentityResolver
from boxoffice.services.show_service import ShowService

IS_POSTGRES = TEST_DATABASE_URL.startswith("postgresql")

if IS_POSTGRES:
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
else:
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


def pytest_report_header(config):
    backend = TEST_DATABASE_URL.split("://", 1)[0]
    if IS_POSTGRES:
        return f"test database: {backend} (concurrent race tests enabled)"
    return f"test database: {backend} (race tests skipped; set TEST_DATABASE_URL to a PostgreSQL URL)"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


def layout(**overrides) -> dict:
    """
    Two sections:
      stalls  rows A, B with seats 1-4 at 2500p (B1 accessible)
      premium row A with seats 1-2 at 5000p
    External ids are derived: stalls-1-1 .. stalls-2-4, premium-1-1, premium-1-2.
    """
    data = {
        "title": "Test Matinee",
        "venue_name": "Test Theatre",
        "starts_at": (datetime.now(timezone.utc) + timedelta(days=30)).isoformat(),
        "sections": [
            {
                "name": "Stalls",
                "slug": "stalls",
                "rows": [
                    {"label": "A", "seats": [{"number": n, "price_pence": 2500} for n in range(1, 5)]},
                    {
                        "label": "B",
                        "seats": [
                            {"number": n, "price_pence": 2500, "is_accessible": n == 1}
                            for n in range(1, 5)
                        ],
                    },
                ],
            },
            {
                "name": "Premium",
                "slug": "premium",
                "rows": [
                    {"label": "A", "seats": [{"number": n, "price_pence": 5000} for n in range(1, 3)]},
                ],
            },
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture
def settings():
    return get_settings()


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Connections are bound to this test's event loop
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, clock: FakeClock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB session and clock dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def show(db_session: AsyncSession) -> Show:
    """A provisioned show with 10 seats (see layout)."""
    return await ShowService(db_session).provision_show(ShowCreate(**layout()))


@pytest_asyncio.fixture
async def small_show(db_session: AsyncSession) -> Show:
    """A show with exactly two seats, A1 and A2, both available."""
    show_data = ShowCreate(
        title="Two Seat Show",
        starts_at=datetime.now(timezone.utc) + timedelta(days=7),
        sections=[
            {
                "name": "House",
                "slug": "house",
                "rows": [
                    {
                        "label": "A",
                        "seats": [
                            {"number": 1, "price_pence": 3000, "external_id": "A1"},
                            {"number": 2, "price_pence": 3500, "external_id": "A2"},
                        ],
                    }
                ],
            }
        ],
    )
    return await ShowService(db_session).provision_show(show_data)


@pytest_asyncio.fixture
async def reservations(db_session: AsyncSession, clock: FakeClock, settings) -> ReservationService:
    return ReservationService(db_session, clock, settings)


@pytest_asyncio.fixture
async def seat_id(db_session: AsyncSession):
    """Resolve external ids to internal seat ids: `await seat_id(show, "stalls-1-1")`."""
    resolver = SeatIdentityResolver(db_session)

    async def _resolve(show: Show, external_id: str):
        return await resolver.resolve(show.id, external_id)

    return _resolve
