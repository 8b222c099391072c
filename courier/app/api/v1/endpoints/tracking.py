"""
Public Tracking API Endpoint.

Receivers look up a parcel by tracking code.
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from courier.app.core.dependencies import get_db
from courier.app.core.exceptions import InvalidTrackingCodeError, ResourceNotFoundError
from courier.app.domain.transit.geometry import waypoints_from_json
from courier.app.models.parcel import Parcel
from courier.app.models.tracking_event import TrackingEvent
from courier.app.schemas.parcel import (
    ParcelTrackingView, RoutePoint, TrackingEventResponse, TrackingResponse,
)
from courier.app.services.parcel_registration import TRACKING_PREFIX

router = APIRouter(prefix="/track", tags=["Tracking"])

EVENT_LIMIT = 20
ROUTE_THINNING = 5


@router.get("/{tracking_code}", response_model=TrackingResponse)
async def track_parcel(
    tracking_code: str = Path(..., description="Tracking code, e.g. CRX-ABC-DEF-GHI"),
    db: AsyncSession = Depends(get_db)
):
    """
    Current position, status, a thinned route and the latest events.
    """
    code = tracking_code.strip().upper()
    if not code.startswith(f"{TRACKING_PREFIX}-"):
        raise InvalidTrackingCodeError(code)

    result = await db.execute(select(Parcel).where(Parcel.tracking_code == code))
    parcel = result.scalar_one_or_none()
    if not parcel:
        raise ResourceNotFoundError("Tracking code", code)

    events_result = await db.execute(
        select(TrackingEvent)
        .where(TrackingEvent.tracking_code == code)
        .order_by(TrackingEvent.timestamp.desc(), TrackingEvent.id.desc())
        .limit(EVENT_LIMIT)
    )
    events = events_result.scalars().all()

    # Thin out route points for payload size (every 5th point plus the last)
    route_points = None
    progress_percent = 0
    if parcel.route_points:
        waypoints = waypoints_from_json(parcel.route_points)
        last = len(waypoints) - 1
        route_points = [
            RoutePoint(lat=p.lat, lng=p.lng)
            for i, p in enumerate(waypoints)
            if i % ROUTE_THINNING == 0 or i == last
        ]
        progress_percent = round(parcel.route_progress / max(last, 1) * 100)

    view = ParcelTrackingView(
        tracking_code=parcel.tracking_code,
        status=parcel.status,
        sender_name=parcel.sender_name,
        sender_address=parcel.sender_address,
        receiver_name=parcel.receiver_name,
        receiver_address=parcel.receiver_address,
        parcel_description=parcel.parcel_description,
        current_lat=parcel.current_lat,
        current_lng=parcel.current_lng,
        current_location_name=parcel.current_location_name,
        origin_lat=parcel.origin_lat,
        origin_lng=parcel.origin_lng,
        destination_lat=parcel.destination_lat,
        destination_lng=parcel.destination_lng,
        days_to_deliver=parcel.days_to_deliver,
        estimated_delivery=parcel.estimated_delivery,
        created_at=parcel.created_at,
        last_updated=parcel.last_updated,
        progress_percent=progress_percent,
        route_points=route_points,
    )

    return TrackingResponse(
        parcel=view,
        events=[TrackingEventResponse.model_validate(e) for e in events],
    )
