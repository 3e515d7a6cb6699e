"""
Dashboard Schemas.
"""

from pydantic import BaseModel
from decimal import Decimal


class AdminDashboardStats(BaseModel):
    """System-wide stats for Admins (and unscoped callers)."""
    total_bookings: int
    active_bookings: int
    revenue: Decimal
    pending_payments: Decimal
    available_drivers: int
    unique_customers: int  # distinct customers booking in the last 30 days


class CustomerDashboardStats(BaseModel):
    """Dashboard stats for Customers."""
    total_bookings: int
    pending: int
    in_transit: int
    delivered: int


class DriverDashboardStats(BaseModel):
    """Dashboard stats for Drivers."""
    active_bookings: int
    completed_today: int
    earnings: Decimal
