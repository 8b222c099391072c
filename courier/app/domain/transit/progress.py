"""
Progress computation for simulated parcels.

The progress index is a function of absolute elapsed time since the parcel
was created, clamped to the route and never allowed to decrease. A parcel
that missed any number of ticks lands on the time-correct waypoint the next
time it is reconciled.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from courier.app.domain.transit.geometry import Waypoint
from courier.app.domain.transit.state_machine import next_status
from courier.app.models.parcel_enums import ParcelStatus


@dataclass(frozen=True)
class ParcelSnapshot:
    """The subset of a parcel record the reconciler reads."""
    tracking_code: str
    created_at: datetime
    days_to_deliver: int
    waypoints: Sequence[Waypoint]
    progress_index: int
    status: ParcelStatus
    receiver_name: str


@dataclass(frozen=True)
class ProgressPlan:
    """Outcome of planning one parcel at one instant."""
    tracking_code: str
    previous_index: int
    new_index: int
    previous_status: ParcelStatus
    new_status: ParcelStatus
    waypoint: Waypoint

    @property
    def changed(self) -> bool:
        return self.new_index != self.previous_index or self.new_status != self.previous_status

    @property
    def delivered(self) -> bool:
        return self.new_status is ParcelStatus.DELIVERED


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def elapsed_hours(created_at: datetime, now: datetime) -> float:
    delta = as_utc(now) - as_utc(created_at)
    return max(0.0, delta.total_seconds() / 3600.0)


def target_index(created_at: datetime, now: datetime, days_to_deliver: int, n: int) -> int:
    """
    Waypoint index the parcel should occupy at ``now``.

    Clock skew (now before created_at) yields 0; anything past the promised
    duration yields n-1.
    """
    if days_to_deliver <= 0:
        raise ValueError("days_to_deliver must be positive")
    if n < 2:
        raise ValueError("route needs at least 2 waypoints")
    total_hours = days_to_deliver * 24
    fraction = min(1.0, elapsed_hours(created_at, now) / total_hours)
    return math.floor(fraction * (n - 1))


def plan_progress(snapshot: ParcelSnapshot, now: datetime) -> ProgressPlan:
    """
    Compute the monotonic new index and derived status for ``snapshot``.

    Raises:
        ValueError: the stored index does not lie on the route
    """
    n = len(snapshot.waypoints)
    previous = snapshot.progress_index
    if not 0 <= previous < n:
        raise ValueError(f"progress index {previous} outside route of {n} waypoints")
    new_index = max(previous, target_index(snapshot.created_at, now, snapshot.days_to_deliver, n))
    new_status = next_status(snapshot.status, new_index, n)

    return ProgressPlan(
        tracking_code=snapshot.tracking_code,
        previous_index=previous,
        new_index=new_index,
        previous_status=snapshot.status,
        new_status=new_status,
        waypoint=snapshot.waypoints[new_index],
    )
