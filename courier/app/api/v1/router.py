"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from courier.app.api.v1.endpoints import parcels, tracking, simulation

router = APIRouter()

# Parcel registration
router.include_router(parcels.router)

# Public tracking
router.include_router(tracking.router)

# Reconcile tick trigger
router.include_router(simulation.router)
