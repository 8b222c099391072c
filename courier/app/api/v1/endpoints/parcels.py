"""
Parcel Registration API Endpoints.

Register parcels, list them, and repair parcels saved without a route.
"""

from fastapi import APIRouter, Depends, Query, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from courier.app.core.context import TransitContext
from courier.app.core.dependencies import get_context, get_db
from courier.app.domain.transit.geometry import Route
from courier.app.models.parcel import Parcel
from courier.app.schemas.parcel import (
    ParcelCreate, ParcelCreateResponse, ParcelListResponse, ParcelSummary,
    RoutePoint, RouteRepairResponse,
)

router = APIRouter(prefix="/parcels", tags=["Parcels"])


@router.post("", response_model=ParcelCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_data: ParcelCreate,
    context: TransitContext = Depends(get_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a new parcel.

    Both addresses are geocoded and the route is built once here. If
    geocoding fails the parcel is still created, with route_available=false.
    """
    parcel, route_available = await context.registration.register(db, parcel_data)

    return ParcelCreateResponse(
        tracking_code=parcel.tracking_code,
        estimated_delivery=parcel.estimated_delivery,
        route_available=route_available,
    )


@router.get("", response_model=ParcelListResponse)
async def list_parcels(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    """List parcels, newest first."""
    total = (await db.execute(select(func.count(Parcel.id)))).scalar()

    result = await db.execute(
        select(Parcel)
        .order_by(Parcel.created_at.desc(), Parcel.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    parcels = result.scalars().all()

    return ParcelListResponse(
        parcels=[ParcelSummary.model_validate(p) for p in parcels],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/{tracking_code}/repair-route", response_model=RouteRepairResponse)
async def repair_parcel_route(
    tracking_code: str = Path(..., description="Tracking code"),
    context: TransitContext = Depends(get_context),
    db: AsyncSession = Depends(get_db)
):
    """
    Re-geocode and route a parcel that was registered without a route.

    Returns 409 if the parcel already has a route and 422 if either
    address still cannot be geocoded.
    """
    parcel, route = await context.registration.repair_route(db, tracking_code.strip().upper())
    return _repair_response(parcel, route)


def _repair_response(parcel: Parcel, route: Route) -> RouteRepairResponse:
    return RouteRepairResponse(
        tracking_code=parcel.tracking_code,
        origin=RoutePoint(lat=parcel.origin_lat, lng=parcel.origin_lng),
        destination=RoutePoint(lat=parcel.destination_lat, lng=parcel.destination_lng),
        route_points=len(route),
        distance_km=round(route.total_distance_meters / 1000),
    )
