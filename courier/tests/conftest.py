"""
Centralized Test Configuration.
"""

import pytest
import httpx
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import Pool, StaticPool

from courier.app.main import app
from courier.app.core.config import Settings
from courier.app.core.context import build_context
from courier.app.core.dependencies import get_context
from courier.app.db.session import Base, build_session_factory
from courier.app.domain.transit.geometry import Waypoint, interpolate, waypoints_to_json
from courier.app.models.parcel import Parcel
from courier.app.models.parcel_enums import ParcelStatus
from courier.app.services.parcel_store import ParcelStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
ORIGIN = Waypoint(0.0, 0.0)
DESTINATION = Waypoint(0.0, 10.0)


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def flushdb(self):
        self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


class FakeGeo:
    """In-memory stand-in for the Nominatim/OSRM provider."""

    def __init__(self):
        self.addresses = {}
        self.native_route = None
        self.label = "Main Street, Springfield"
        self.failing_points = set()
        self.reverse_calls = []

    async def geocode(self, address):
        return self.addresses.get(address)

    async def fetch_route(self, origin, destination):
        if isinstance(self.native_route, Exception):
            raise self.native_route
        return self.native_route

    async def reverse_geocode(self, lat, lng):
        self.reverse_calls.append((lat, lng))
        if (lat, lng) in self.failing_points:
            raise RuntimeError("lookup exploded")
        return self.label


@pytest.fixture
def test_settings():
    return Settings(
        database_url=TEST_DATABASE_URL,
        route_points=100,
        tick_token=None,
        tick_deadline_seconds=30,
        geocode_min_interval_seconds=0,
    )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session_factory):
    return ParcelStore(session_factory)


@pytest.fixture
def fake_geo():
    return FakeGeo()


@pytest.fixture
def redis_client():
    return MockRedis()


@pytest.fixture
async def context(test_settings, engine, redis_client, fake_geo):
    def unreachable(request):
        raise AssertionError(f"unexpected outbound request to {request.url}")

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(unreachable))
    ctx = build_context(
        test_settings,
        engine=engine,
        redis_client=redis_client,
        http_client=http_client,
        geo=fake_geo,
    )
    yield ctx
    await http_client.aclose()


@pytest.fixture
async def client(context):
    """Async client for testing."""
    app.dependency_overrides[get_context] = lambda: context
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}


def make_parcel_factory(session_factory):
    """Insert a parcel row directly, bypassing registration."""

    async def create(
        tracking_code="CRX-AAA-BBB-CCC",
        created_at=NOW - timedelta(hours=24),
        days_to_deliver=2,
        points=101,
        route_progress=0,
        status=ParcelStatus.PENDING,
        with_route=True,
        receiver_name="Ada Lovelace",
    ):
        waypoints = interpolate(ORIGIN, DESTINATION, points)
        parcel = Parcel(
            tracking_code=tracking_code,
            sender_name="Charles Babbage",
            sender_address="1 Analytical Way",
            receiver_name=receiver_name,
            receiver_email="ada@example.com",
            receiver_address="12 St James's Square",
            parcel_description="Difference engine parts",
            delivery_from_address="1 Analytical Way",
            days_to_deliver=days_to_deliver,
            estimated_delivery=created_at + timedelta(days=days_to_deliver),
            status=status,
            current_lat=ORIGIN.lat,
            current_lng=ORIGIN.lng,
            current_location_name="Awaiting Pickup",
            route_points=waypoints_to_json(waypoints) if with_route else None,
            route_progress=route_progress,
            created_at=created_at,
            last_updated=created_at,
        )
        async with session_factory() as session:
            session.add(parcel)
            await session.commit()
        return waypoints

    return create


@pytest.fixture
def parcel_factory(session_factory):
    return make_parcel_factory(session_factory)
