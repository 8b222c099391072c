"""
Parcel storage used by the progress reconciler.

Reads active parcels as immutable snapshots and applies one parcel's
position, status and tracking event in a single transaction.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from courier.app.core.exceptions import StorageUnavailableError
from courier.app.domain.transit.geometry import waypoints_from_json
from courier.app.domain.transit.progress import ParcelSnapshot, ProgressPlan, plan_progress
from courier.app.models.parcel import Parcel
from courier.app.models.parcel_enums import ACTIVE_STATUSES, ParcelStatus, TrackingEventType
from courier.app.models.tracking_event import TrackingEvent

logger = logging.getLogger("courier.store")


class ProgressConflictError(Exception):
    """The stored parcel moved on between planning and applying."""
    pass


def to_snapshot(parcel: Parcel) -> ParcelSnapshot:
    """
    Build a reconciler snapshot from a row.

    Raises:
        ValueError: route JSON is unreadable or shorter than 2 points, or
            the stored progress index does not lie on the route
    """
    try:
        waypoints = tuple(waypoints_from_json(parcel.route_points))
    except (KeyError, TypeError) as e:
        raise ValueError(f"unreadable route: {e}") from e
    if len(waypoints) < 2:
        raise ValueError("route has fewer than 2 waypoints")
    progress_index = parcel.route_progress or 0
    if not 0 <= progress_index < len(waypoints):
        raise ValueError(f"progress index {progress_index} outside route of {len(waypoints)} waypoints")
    return ParcelSnapshot(
        tracking_code=parcel.tracking_code,
        created_at=parcel.created_at,
        days_to_deliver=parcel.days_to_deliver,
        waypoints=waypoints,
        progress_index=progress_index,
        status=parcel.status,
        receiver_name=parcel.receiver_name,
    )


def event_for(plan: ProgressPlan, receiver_name: str, label: str) -> tuple:
    """(event type, description) for an applied plan."""
    if plan.delivered:
        return TrackingEventType.DELIVERED, f"Package delivered to {receiver_name}"
    return TrackingEventType.LOCATION_UPDATE, f"Package in transit through {label}"


async def update_parcel_position(
    session: AsyncSession,
    tracking_code: str,
    lat: float,
    lng: float,
    label: str,
    progress_index: int,
    status: ParcelStatus,
    now: datetime,
) -> None:
    await session.execute(
        update(Parcel)
        .where(Parcel.tracking_code == tracking_code)
        .values(
            current_lat=lat,
            current_lng=lng,
            current_location_name=label,
            route_progress=progress_index,
            status=status,
            last_updated=now,
        )
    )


async def append_tracking_event(
    session: AsyncSession,
    tracking_code: str,
    event_type: TrackingEventType,
    description: str,
    label: Optional[str],
    lat: Optional[float],
    lng: Optional[float],
    now: datetime,
) -> TrackingEvent:
    event = TrackingEvent(
        tracking_code=tracking_code,
        event_type=event_type,
        description=description,
        location_name=label,
        lat=lat,
        lng=lng,
        timestamp=now,
    )
    session.add(event)
    await session.flush()
    return event


class ParcelStore:
    """Storage handle injected into the reconciler."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def list_active_parcels(self) -> List[ParcelSnapshot]:
        """
        Non-terminal parcels with a materialized route.

        Raises:
            StorageUnavailableError: the database cannot be queried at all
        """
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(Parcel)
                    .where(
                        Parcel.status.in_(ACTIVE_STATUSES),
                        Parcel.route_points.is_not(None),
                    )
                    .order_by(Parcel.id)
                )
                parcels = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise StorageUnavailableError(f"Parcel storage unavailable: {e.__class__.__name__}") from e

        snapshots = []
        for parcel in parcels:
            try:
                snapshots.append(to_snapshot(parcel))
            except ValueError as e:
                logger.warning("Skipping %s: %s", parcel.tracking_code, e)
        return snapshots

    async def apply_progress(self, plan: ProgressPlan, label: str, now: datetime) -> bool:
        """
        Persist ``plan`` and its tracking event atomically.

        The row is re-read under lock and re-planned against its stored
        index. Returns False when the stored parcel is already at the
        planned state.

        Raises:
            ProgressConflictError: the stored parcel advanced past ``plan``
        """
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(Parcel)
                    .where(Parcel.tracking_code == plan.tracking_code)
                    .with_for_update()
                )
                parcel = result.scalar_one_or_none()
                if parcel is None or parcel.status.is_terminal or parcel.route_points is None:
                    return False

                fresh = plan_progress(to_snapshot(parcel), now)
                if not fresh.changed:
                    return False
                if (fresh.new_index, fresh.new_status) != (plan.new_index, plan.new_status):
                    raise ProgressConflictError(
                        f"{plan.tracking_code} planned {plan.new_index}/{plan.new_status.value}, "
                        f"stored state yields {fresh.new_index}/{fresh.new_status.value}"
                    )

                await update_parcel_position(
                    session,
                    plan.tracking_code,
                    plan.waypoint.lat,
                    plan.waypoint.lng,
                    label,
                    plan.new_index,
                    plan.new_status,
                    now,
                )
                event_type, description = event_for(plan, parcel.receiver_name, label)
                await append_tracking_event(
                    session,
                    plan.tracking_code,
                    event_type,
                    description,
                    label,
                    plan.waypoint.lat,
                    plan.waypoint.lng,
                    now,
                )
        return True
