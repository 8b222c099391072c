"""
Delivery state machine.

pending → in_transit → out_for_delivery → delivered (terminal)
"""

from courier.app.models.parcel_enums import ParcelStatus

# Final 5% of the route counts as "out for delivery"
OUT_FOR_DELIVERY_PERCENT = 95

_ORDER = {
    ParcelStatus.PENDING: 0,
    ParcelStatus.IN_TRANSIT: 1,
    ParcelStatus.OUT_FOR_DELIVERY: 2,
    ParcelStatus.DELIVERED: 3,
}


def out_for_delivery_threshold(n: int) -> int:
    """ceil(0.95 * n) in integer arithmetic."""
    return -(-OUT_FOR_DELIVERY_PERCENT * n // 100)


def next_status(current: ParcelStatus, new_index: int, n: int) -> ParcelStatus:
    """
    Derive the status for a parcel whose progress index is ``new_index``
    on a route of ``n`` waypoints.

    Branches are checked in priority order: route exhausted, then final 5%,
    then leaving pending. A parcel may skip intermediate states when its
    first reconciliation already places it past them.
    """
    if current is ParcelStatus.DELIVERED:
        return ParcelStatus.DELIVERED
    if new_index >= n - 1:
        return ParcelStatus.DELIVERED
    if new_index >= out_for_delivery_threshold(n):
        return ParcelStatus.OUT_FOR_DELIVERY
    if current is ParcelStatus.PENDING:
        return ParcelStatus.IN_TRANSIT
    return current


def is_forward(previous: ParcelStatus, new: ParcelStatus) -> bool:
    """True when ``new`` does not move backwards from ``previous``."""
    return _ORDER[new] >= _ORDER[previous]
