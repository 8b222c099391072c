"""
Parcel registration and route repair.

Registration geocodes both addresses, builds the route once and records the
initial "created" event. A parcel whose addresses could not be geocoded is
still registered, without a route, and is ignored by the reconciler until
its route is repaired.
"""

import asyncio
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from courier.app.core.exceptions import (
    GeocodingFailedError, ResourceNotFoundError, RouteAlreadyPresentError,
)
from courier.app.domain.transit.geometry import Route, Waypoint, waypoints_to_json
from courier.app.models.parcel import Parcel
from courier.app.models.parcel_enums import ParcelStatus, TrackingEventType
from courier.app.schemas.parcel import ParcelCreate
from courier.app.services.parcel_store import append_tracking_event

logger = logging.getLogger("courier.registration")

TRACKING_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ1234567890"
TRACKING_PREFIX = "CRX"
AWAITING_PICKUP = "Awaiting Pickup"
MAX_CODE_ATTEMPTS = 5


def generate_tracking_code() -> str:
    """CRX-XXX-XXX-XXX; ambiguous letters I and O are left out."""
    segments = ("".join(secrets.choice(TRACKING_ALPHABET) for _ in range(3)) for _ in range(3))
    return "-".join((TRACKING_PREFIX, *segments))


class ParcelRegistration:

    def __init__(self, geo, route_builder):
        self.geo = geo
        self.route_builder = route_builder

    async def _unique_code(self, db: AsyncSession) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_tracking_code()
            existing = await db.execute(select(Parcel.id).where(Parcel.tracking_code == code))
            if existing.scalar_one_or_none() is None:
                return code
        raise RuntimeError("Could not allocate a unique tracking code")

    async def _resolve(self, origin_address: str, destination_address: str) -> Tuple[Optional[Waypoint], Optional[Waypoint]]:
        origin, destination = await asyncio.gather(
            self.geo.geocode(origin_address),
            self.geo.geocode(destination_address),
        )
        return origin, destination

    async def register(self, db: AsyncSession, data: ParcelCreate, now: Optional[datetime] = None) -> Tuple[Parcel, bool]:
        """
        Register a parcel.

        Returns:
            (parcel, route_available)
        """
        now = now or datetime.now(timezone.utc)
        code = await self._unique_code(db)

        origin, destination = await self._resolve(data.delivery_from_address, data.receiver_address)
        route: Optional[Route] = None
        if origin and destination:
            route = await self.route_builder.build_route(origin, destination)
        else:
            logger.warning(
                "Geocoding failed for %s, registering without route",
                code,
                extra={"origin_resolved": origin is not None, "destination_resolved": destination is not None},
            )

        parcel = Parcel(
            tracking_code=code,
            sender_name=data.sender_name,
            sender_email=data.sender_email,
            sender_address=data.sender_address,
            receiver_name=data.receiver_name,
            receiver_email=data.receiver_email,
            receiver_address=data.receiver_address,
            parcel_description=data.parcel_description,
            delivery_from_address=data.delivery_from_address,
            days_to_deliver=data.days_to_deliver,
            estimated_delivery=now + timedelta(days=data.days_to_deliver),
            status=ParcelStatus.PENDING,
            current_location_name=AWAITING_PICKUP,
            route_progress=0,
            created_at=now,
            last_updated=now,
        )
        if route is not None:
            _attach_route(parcel, origin, destination, route)

        db.add(parcel)
        await db.flush()
        await append_tracking_event(
            db,
            code,
            TrackingEventType.CREATED,
            f"Parcel registered. Awaiting pickup from {data.delivery_from_address}",
            data.delivery_from_address,
            origin.lat if origin else None,
            origin.lng if origin else None,
            now,
        )
        await db.commit()
        await db.refresh(parcel)

        logger.info("Parcel %s registered", code, extra={"route_available": route is not None})
        return parcel, route is not None

    async def repair_route(self, db: AsyncSession, tracking_code: str) -> Tuple[Parcel, Route]:
        """
        Geocode and route a parcel that was registered without a route.

        Parcels that already have a route are never rebuilt: their progress
        index must not be reset.
        """
        result = await db.execute(select(Parcel).where(Parcel.tracking_code == tracking_code))
        parcel = result.scalar_one_or_none()
        if not parcel:
            raise ResourceNotFoundError("Parcel", tracking_code)
        if parcel.route_points is not None:
            raise RouteAlreadyPresentError(tracking_code)

        origin, destination = await self._resolve(parcel.delivery_from_address, parcel.receiver_address)
        if not origin or not destination:
            raise GeocodingFailedError(origin is not None, destination is not None)

        route = await self.route_builder.build_route(origin, destination)
        _attach_route(parcel, origin, destination, route)
        await db.commit()
        await db.refresh(parcel)

        logger.info("Route repaired for %s", tracking_code, extra={"points": len(route)})
        return parcel, route


def _attach_route(parcel: Parcel, origin: Waypoint, destination: Waypoint, route: Route) -> None:
    parcel.origin_lat = origin.lat
    parcel.origin_lng = origin.lng
    parcel.destination_lat = destination.lat
    parcel.destination_lng = destination.lng
    parcel.current_lat = origin.lat
    parcel.current_lng = origin.lng
    parcel.current_location_name = AWAITING_PICKUP
    parcel.route_points = waypoints_to_json(route.waypoints)
    parcel.route_distance_meters = route.total_distance_meters
