"""
Parcel database model.

A parcel travels along a precomputed route; its position is advanced by
the progress reconciler, never by a live GPS feed.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, Text
from sqlalchemy.sql import func
from courier.app.db.session import Base
from courier.app.models.parcel_enums import ParcelStatus


class Parcel(Base):
    """
    Parcel model.

    route_points holds the ordered waypoint list as a JSON array of
    {lat, lng} objects and is immutable once written. route_progress is
    the index into that list and only ever increases.
    """
    __tablename__ = "parcels"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_code = Column(String(32), unique=True, nullable=False, index=True)

    # Parties
    sender_name = Column(String(200), nullable=False)
    sender_email = Column(String(320), nullable=True)
    sender_address = Column(String(500), nullable=False)
    receiver_name = Column(String(200), nullable=False)
    receiver_email = Column(String(320), nullable=False)
    receiver_address = Column(String(500), nullable=False)
    parcel_description = Column(String(500), nullable=False)
    delivery_from_address = Column(String(500), nullable=False)

    # Promise
    days_to_deliver = Column(Integer, nullable=False)
    estimated_delivery = Column(DateTime(timezone=True), nullable=False)

    # Transit state
    status = Column(Enum(ParcelStatus), default=ParcelStatus.PENDING, nullable=False, index=True)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    current_location_name = Column(String(300), nullable=False, default="Awaiting Pickup")

    # Route (nullable when geocoding failed at registration)
    origin_lat = Column(Float, nullable=True)
    origin_lng = Column(Float, nullable=True)
    destination_lat = Column(Float, nullable=True)
    destination_lng = Column(Float, nullable=True)
    route_points = Column(Text, nullable=True)
    route_distance_meters = Column(Float, nullable=True)
    route_progress = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_updated = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Parcel(code='{self.tracking_code}', status='{self.status.value}', progress={self.route_progress})>"
