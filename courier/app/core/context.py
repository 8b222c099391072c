"""
Runtime context.

Every long-lived handle (database engine, redis, HTTP client, rate gate)
is created here explicitly and passed to the services that need it. The
API stores one context on ``app.state``; the scheduled job builds its own.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from courier.app.core.config import Settings
from courier.app.core.rate_limiter import IntervalGate
from courier.app.db.session import build_engine, build_session_factory
from courier.app.domain.transit.route_builder import RouteBuilder, default_route_builder
from courier.app.services.geo_provider import GeoProvider
from courier.app.services.label_cache import LocationLabelCache
from courier.app.services.parcel_registration import ParcelRegistration
from courier.app.services.parcel_store import ParcelStore
from courier.app.services.reconciler import Reconciler


@dataclass
class TransitContext:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker
    redis: object
    http_client: httpx.AsyncClient
    geo: GeoProvider
    route_builder: RouteBuilder
    store: ParcelStore
    reconciler: Reconciler
    registration: ParcelRegistration

    async def aclose(self) -> None:
        await self.http_client.aclose()
        await self.redis.aclose()
        await self.engine.dispose()


def build_context(
    settings: Settings,
    engine: Optional[AsyncEngine] = None,
    redis_client=None,
    http_client: Optional[httpx.AsyncClient] = None,
    geo=None,
) -> TransitContext:
    """
    Wire the runtime from settings. Any handle may be supplied to
    override the default (tests pass in-memory SQLite, fake redis, a
    mock transport or a fake provider).
    """
    engine = engine or build_engine(settings)
    session_factory = build_session_factory(engine)
    redis_client = redis_client or redis.from_url(
        settings.redis_url,
        decode_responses=settings.redis_decode_responses,
    )
    http_client = http_client or httpx.AsyncClient(
        timeout=settings.provider_timeout_seconds,
        headers={"User-Agent": settings.provider_user_agent},
    )
    if geo is None:
        geo = GeoProvider(
            http_client,
            settings,
            IntervalGate(settings.geocode_min_interval_seconds),
            label_cache=LocationLabelCache(redis_client, ttl_seconds=settings.label_cache_ttl_seconds),
        )
    route_builder = default_route_builder(geo, n=settings.route_points)
    store = ParcelStore(session_factory)

    return TransitContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        redis=redis_client,
        http_client=http_client,
        geo=geo,
        route_builder=route_builder,
        store=store,
        reconciler=Reconciler(
            store,
            geo,
            workers=settings.reconcile_workers,
            deadline_seconds=settings.tick_deadline_seconds,
        ),
        registration=ParcelRegistration(geo, route_builder),
    )
