"""
Tracking event database model.

Append-only history of a parcel; rows are never updated or deleted.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from courier.app.db.session import Base
from courier.app.models.parcel_enums import TrackingEventType


class TrackingEvent(Base):
    """Tracking event recorded at registration and on every progress change."""
    __tablename__ = "tracking_events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_code = Column(String(32), ForeignKey("parcels.tracking_code"), nullable=False, index=True)

    event_type = Column(Enum(TrackingEventType), nullable=False)
    description = Column(String(500), nullable=False)
    location_name = Column(String(300), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<TrackingEvent(code='{self.tracking_code}', type='{self.event_type.value}')>"
