"""
Booking-related enumerations.
"""

import enum


class BookingStatus(str, enum.Enum):
    """
    Booking status enumeration.

    Status flow:
        pending → confirmed → assigned → picked_up → in_transit
        → out_for_delivery → delivered
        cancelled / failed may follow any non-terminal status
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({BookingStatus.DELIVERED, BookingStatus.CANCELLED, BookingStatus.FAILED})

# Statuses counted as "on the road" by dashboards
ACTIVE_STATUSES = (
    BookingStatus.CONFIRMED,
    BookingStatus.ASSIGNED,
    BookingStatus.PICKED_UP,
    BookingStatus.IN_TRANSIT,
    BookingStatus.OUT_FOR_DELIVERY,
)

# Forward moves accepted when strict transitions are enabled; terminal
# alternates are added for every non-terminal status below.
ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.ASSIGNED},
    BookingStatus.CONFIRMED: {BookingStatus.ASSIGNED},
    BookingStatus.ASSIGNED: {BookingStatus.PICKED_UP},
    BookingStatus.PICKED_UP: {BookingStatus.IN_TRANSIT},
    BookingStatus.IN_TRANSIT: {BookingStatus.OUT_FOR_DELIVERY, BookingStatus.DELIVERED},
    BookingStatus.OUT_FOR_DELIVERY: {BookingStatus.DELIVERED},
    BookingStatus.DELIVERED: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.FAILED: set(),
}
for _status, _targets in ALLOWED_TRANSITIONS.items():
    if _status not in TERMINAL_STATUSES:
        _targets.update({BookingStatus.CANCELLED, BookingStatus.FAILED})


class ServiceType(str, enum.Enum):
    """Delivery speed/price class."""
    EXPRESS = "express"
    STANDARD = "standard"
    ECONOMY = "economy"
    OVERNIGHT = "overnight"
    SAME_DAY = "same_day"


class PaymentMethod(str, enum.Enum):
    ONLINE = "online"
    CASH_PICKUP = "cash_pickup"
    CASH_DELIVERY = "cash_delivery"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class ItemCategory(str, enum.Enum):
    DOCUMENT = "document"
    PACKAGE = "package"
    FRAGILE = "fragile"
    ELECTRONICS = "electronics"
    OTHER = "other"


class LocationType(str, enum.Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class TrackingUpdateType(str, enum.Enum):
    STATUS = "status"
    LOCATION = "location"
    NOTE = "note"
