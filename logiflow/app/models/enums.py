"""
User and driver enumerations.

Defines the role types and driver availability for the booking system.
"""

import enum


def enum_values(enum_cls) -> list:
    """Persist enum values (not member names) in SQLAlchemy Enum columns."""
    return [member.value for member in enum_cls]


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        CUSTOMER: Creates bookings and tracks their own shipments (default role)
        DRIVER: Fulfils bookings assigned to them
        ADMIN: Monitors operations and assigns drivers
    """
    CUSTOMER = "customer"
    DRIVER = "driver"
    ADMIN = "admin"


class DriverStatus(str, enum.Enum):
    """Driver availability."""
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"
