"""
Parcel Pydantic schemas.

Defines request and response models for parcel registration and tracking.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, List
from courier.app.models.parcel_enums import ParcelStatus, TrackingEventType


class ParcelCreate(BaseModel):
    """Schema for registering a new parcel."""
    sender_name: str = Field(..., min_length=1, max_length=200)
    sender_email: Optional[EmailStr] = Field(None, description="Sender contact email")
    sender_address: str = Field(..., min_length=1, max_length=500)
    receiver_name: str = Field(..., min_length=1, max_length=200)
    receiver_email: EmailStr = Field(..., description="Receiver contact email")
    receiver_address: str = Field(..., min_length=1, max_length=500, description="Delivery destination")
    parcel_description: str = Field(..., min_length=1, max_length=500)
    delivery_from_address: str = Field(..., min_length=1, max_length=500, description="Pickup origin")
    days_to_deliver: int = Field(..., ge=1, le=30, description="Promised transit time in days")


class ParcelCreateResponse(BaseModel):
    """Response after registering a parcel."""
    success: bool = True
    tracking_code: str
    estimated_delivery: datetime
    route_available: bool
    message: str = "Parcel created successfully"


class ParcelSummary(BaseModel):
    """Row in the parcel list."""
    tracking_code: str
    sender_name: str
    receiver_name: str
    parcel_description: str
    status: ParcelStatus
    current_location_name: str
    created_at: datetime
    estimated_delivery: datetime

    class Config:
        from_attributes = True


class ParcelListResponse(BaseModel):
    """Schema for paginated parcel list."""
    parcels: List[ParcelSummary]
    total: int
    page: int
    page_size: int


class RoutePoint(BaseModel):
    lat: float
    lng: float


class TrackingEventResponse(BaseModel):
    """Tracking event as shown to the receiver."""
    event_type: TrackingEventType
    description: str
    location_name: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    timestamp: datetime

    class Config:
        from_attributes = True


class ParcelTrackingView(BaseModel):
    """Public view of a parcel in transit."""
    tracking_code: str
    status: ParcelStatus
    sender_name: str
    sender_address: str
    receiver_name: str
    receiver_address: str
    parcel_description: str
    current_lat: Optional[float]
    current_lng: Optional[float]
    current_location_name: str
    origin_lat: Optional[float]
    origin_lng: Optional[float]
    destination_lat: Optional[float]
    destination_lng: Optional[float]
    days_to_deliver: int
    estimated_delivery: datetime
    created_at: datetime
    last_updated: datetime
    progress_percent: int
    route_points: Optional[List[RoutePoint]]


class TrackingResponse(BaseModel):
    parcel: ParcelTrackingView
    events: List[TrackingEventResponse]


class RouteRepairResponse(BaseModel):
    """Response after rebuilding a missing route."""
    success: bool = True
    tracking_code: str
    origin: RoutePoint
    destination: RoutePoint
    route_points: int
    distance_km: int
