"""
Booking API Endpoints.

Thin HTTP surface over the booking core. Core operations return a Result;
``unwrap()`` re-raises failures for the global exception handlers.
"""

from fastapi import APIRouter, Depends, Path, status

from logiflow.app.db.session import Database, get_database
from logiflow.app.schemas.booking import (
    BookingCreate, BookingCreated, BookingListResponse, BookingDetail,
    StatusUpdate, DriverAssignment, BookingActionResponse,
)
from logiflow.app.core.dependencies import get_current_user
from logiflow.app.core.guards import require_admin, require_role
from logiflow.app.models.enums import UserRole
from logiflow.app.services.booking_lifecycle import BookingLifecycleManager
from logiflow.app.services.booking_queries import BookingQueryService

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_lifecycle_manager(database: Database = Depends(get_database)) -> BookingLifecycleManager:
    return BookingLifecycleManager(database)


def get_query_service(database: Database = Depends(get_database)) -> BookingQueryService:
    return BookingQueryService(database)


@router.post("", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking: BookingCreate,
    current_user: dict = Depends(get_current_user),
    manager: BookingLifecycleManager = Depends(get_lifecycle_manager),
):
    """Create a booking for the authenticated customer."""
    result = await manager.create_booking(current_user["user_id"], booking)
    return result.unwrap()


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    current_user: dict = Depends(get_current_user),
    queries: BookingQueryService = Depends(get_query_service),
):
    """
    List bookings visible to the caller.

    Customers get their own bookings, drivers their assigned bookings and
    admins every booking (newest first).
    """
    result = await queries.list_bookings(current_user["user_id"], current_user["role"])
    return result.unwrap()


@router.get("/stats")
async def dashboard_stats(
    current_user: dict = Depends(get_current_user),
    queries: BookingQueryService = Depends(get_query_service),
):
    """Dashboard counters for the caller's role."""
    result = await queries.get_dashboard_stats(current_user["user_id"], current_user["role"])
    return result.unwrap()


@router.get("/track/{tracking_number}", response_model=BookingDetail)
async def track_booking(
    tracking_number: str = Path(..., min_length=1, max_length=20),
    queries: BookingQueryService = Depends(get_query_service),
):
    """Public tracking lookup; internal updates are hidden."""
    result = await queries.get_booking_by_tracking(tracking_number, include_internal=False)
    return result.unwrap()


@router.put("/{booking_id}/status", response_model=BookingActionResponse)
async def update_booking_status(
    update: StatusUpdate,
    booking_id: int = Path(..., description="Booking ID"),
    current_user: dict = Depends(require_role([UserRole.DRIVER, UserRole.ADMIN])),
    manager: BookingLifecycleManager = Depends(get_lifecycle_manager),
):
    """Update booking status (Admin, or the driver assigned to the booking)."""
    assigned_driver_id = current_user["user_id"] if current_user["role"] == UserRole.DRIVER.value else None
    result = await manager.update_status(
        booking_id, update.status, current_user["user_id"], update.notes, assigned_driver_id=assigned_driver_id
    )
    return result.unwrap()


@router.put("/{booking_id}/assign-driver", response_model=BookingActionResponse)
async def assign_driver(
    assignment: DriverAssignment,
    booking_id: int = Path(..., description="Booking ID"),
    current_user: dict = Depends(require_admin),
    manager: BookingLifecycleManager = Depends(get_lifecycle_manager),
):
    """Assign an available driver to a pending booking (Admin only)."""
    result = await manager.assign_driver(booking_id, assignment.driver_id, current_user["user_id"])
    return result.unwrap()
