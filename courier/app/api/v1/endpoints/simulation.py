"""
Simulation API Endpoints.

Manual trigger for one reconcile tick. Production ticks come from the
scheduled job (courier.app.jobs.reconcile); this endpoint exists for
platforms whose scheduler can only hit a URL.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from courier.app.core.context import TransitContext
from courier.app.core.dependencies import get_context, require_tick_token
from courier.app.schemas.simulation import TickResponse

router = APIRouter(prefix="/simulation", tags=["Simulation"])


@router.post("/tick", response_model=TickResponse, dependencies=[Depends(require_tick_token)])
async def run_tick(context: TransitContext = Depends(get_context)):
    """
    Advance every active parcel to its time-correct position.

    Safe to call repeatedly: a second call at the same instant writes nothing.
    Returns 503 if parcel storage is unreachable.
    """
    now = datetime.now(timezone.utc)
    result = await context.reconciler.reconcile_tick(now)

    return TickResponse(
        ran_at=now,
        updated_count=result.updated_count,
        total_candidates=result.total_candidates,
        unchanged_count=result.unchanged_count,
        failed_count=result.failed_count,
        deferred_count=result.deferred_count,
    )
