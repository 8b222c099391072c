"""
Progress reconciler.

Runs once per scheduler tick. For every active parcel with a route it
computes the waypoint matching the current time, and when the index or
status moved it resolves a location label and persists the new position
together with one tracking event.

A tick is idempotent: running it twice at the same instant writes nothing
the second time. Failures are isolated per parcel, and parcels cut off by
the tick deadline are simply picked up by the next tick.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from courier.app.domain.transit.progress import ParcelSnapshot, as_utc, plan_progress

logger = logging.getLogger("courier.reconciler")


class Outcome(str, enum.Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class TickResult:
    """Summary reported back to the trigger."""
    updated_count: int = 0
    total_candidates: int = 0
    unchanged_count: int = 0
    failed_count: int = 0
    deferred_count: int = 0


class Reconciler:
    """
    Advances simulated parcels along their routes.

    Args:
        store: ParcelStore (list_active_parcels / apply_progress)
        geo: provider exposing ``reverse_geocode(lat, lng) -> str``
        workers: parcels processed concurrently; 1 means sequential
        deadline_seconds: time limit for one tick, None for unbounded
    """

    def __init__(self, store, geo, workers: int = 1, deadline_seconds: Optional[float] = None):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.store = store
        self.geo = geo
        self.workers = workers
        self.deadline_seconds = deadline_seconds

    async def reconcile_tick(self, now: Optional[datetime] = None) -> TickResult:
        """
        Reconcile every active parcel against ``now``.

        Raises:
            StorageUnavailableError: candidates could not be listed
        """
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        logger.info("Reconcile tick at %s", now.isoformat())

        candidates = await self.store.list_active_parcels()
        result = TickResult(total_candidates=len(candidates))
        if not candidates:
            logger.info("No active parcels.")
            return result

        semaphore = asyncio.Semaphore(self.workers)

        async def run(snapshot: ParcelSnapshot) -> Outcome:
            async with semaphore:
                return await self._reconcile_one(snapshot, now)

        tasks = [asyncio.create_task(run(snapshot)) for snapshot in candidates]
        done, pending = await asyncio.wait(tasks, timeout=self.deadline_seconds)

        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("Tick deadline reached, %d parcel(s) deferred to next tick", len(pending))

        for task in done:
            outcome = task.result()
            if outcome is Outcome.UPDATED:
                result.updated_count += 1
            elif outcome is Outcome.UNCHANGED:
                result.unchanged_count += 1
            else:
                result.failed_count += 1
        result.deferred_count = len(pending)

        logger.info(
            "Done. Updated %d/%d parcel(s).",
            result.updated_count,
            result.total_candidates,
            extra={
                "unchanged": result.unchanged_count,
                "failed": result.failed_count,
                "deferred": result.deferred_count,
            },
        )
        return result

    async def _reconcile_one(self, snapshot: ParcelSnapshot, now: datetime) -> Outcome:
        try:
            plan = plan_progress(snapshot, now)
            if not plan.changed:
                return Outcome.UNCHANGED

            label = await self.geo.reverse_geocode(plan.waypoint.lat, plan.waypoint.lng)
            if not await self.store.apply_progress(plan, label, now):
                return Outcome.UNCHANGED
        except Exception:
            logger.exception("Failed for %s", snapshot.tracking_code)
            return Outcome.FAILED

        logger.info(
            "%s: %d/%d (%s) @ %s",
            plan.tracking_code,
            plan.new_index,
            len(snapshot.waypoints) - 1,
            plan.new_status.value,
            label,
        )
        return Outcome.UPDATED
