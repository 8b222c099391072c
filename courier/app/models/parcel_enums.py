"""
Parcel transit enumerations.
"""

import enum


class ParcelStatus(str, enum.Enum):
    """
    Parcel delivery status.

    Status flow (forward only):
        pending → in_transit → out_for_delivery → delivered
    delivered is terminal.
    """
    PENDING = "pending"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"

    @property
    def is_terminal(self) -> bool:
        return self is ParcelStatus.DELIVERED


ACTIVE_STATUSES = (
    ParcelStatus.PENDING,
    ParcelStatus.IN_TRANSIT,
    ParcelStatus.OUT_FOR_DELIVERY,
)


class TrackingEventType(str, enum.Enum):
    """Tracking event types (append-only history)."""
    CREATED = "created"
    LOCATION_UPDATE = "location_update"
    DELIVERED = "delivered"
