"""
Booking Read Façade.

Assembles denormalized booking views and dashboard counters.
Focused on READ-ONLY operations; every query is built with SQLAlchemy
expressions so user ids are always bound parameters.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from logiflow.app.core.config import Settings
from logiflow.app.core.exceptions import ValidationError, BookingNotFoundError
from logiflow.app.core.result import returns_result
from logiflow.app.db.session import Database
from logiflow.app.domain.pricing.pricing_engine import CENTS
from logiflow.app.models.booking import Booking
from logiflow.app.models.driver import Driver
from logiflow.app.models.tracking_update import TrackingUpdate
from logiflow.app.models.user import User
from logiflow.app.models.enums import UserRole, DriverStatus
from logiflow.app.models.booking_enums import BookingStatus, PaymentStatus, ACTIVE_STATUSES
from logiflow.app.schemas.analytics import AdminDashboardStats, CustomerDashboardStats, DriverDashboardStats
from logiflow.app.schemas.booking import (
    BookingView, BookingDetail, BookingListResponse, BookingItemView, LocationView, TrackingUpdateView,
)

UNIQUE_CUSTOMER_WINDOW_DAYS = 30

DashboardStats = Union[AdminDashboardStats, CustomerDashboardStats, DriverDashboardStats]


def _resolve_role(role: Union[str, UserRole, None]) -> Optional[UserRole]:
    if role is None:
        return None
    try:
        return UserRole(role)
    except ValueError:
        raise ValidationError(f"Unknown role: {role}", details={"allowed": [r.value for r in UserRole]})


def _amount(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _booking_fields(booking: Booking) -> dict:
    """Flatten a booking and its loaded relations into view fields."""
    customer = booking.customer
    driver = booking.driver
    profile = driver.driver_profile if driver is not None else None
    return dict(
        id=booking.id,
        tracking_number=booking.tracking_number,
        status=booking.status.value,
        service_type=booking.service_type.value,
        payment_method=booking.payment_method.value,
        payment_status=booking.payment_status.value,
        customer_id=booking.customer_id,
        customer_name=customer.name,
        customer_phone=customer.phone,
        customer_email=customer.email,
        driver_id=booking.driver_id,
        driver_name=driver.name if driver else None,
        driver_phone=driver.phone if driver else None,
        driver_rating=profile.rating if profile else None,
        pickup=LocationView.model_validate(booking.pickup_location),
        delivery=LocationView.model_validate(booking.delivery_location),
        items=[BookingItemView.model_validate(item) for item in booking.items],
        total_weight=booking.total_weight,
        total_value=booking.total_value,
        base_amount=booking.base_amount,
        weight_charges=booking.weight_charges,
        distance_charges=booking.distance_charges,
        fuel_surcharge=booking.fuel_surcharge,
        insurance_fee=booking.insurance_fee,
        tax_amount=booking.tax_amount,
        total_amount=booking.total_amount,
        scheduled_pickup_time=booking.scheduled_pickup_time,
        actual_pickup_time=booking.actual_pickup_time,
        actual_delivery_time=booking.actual_delivery_time,
        special_notes=booking.special_notes,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


def _with_relations(stmt):
    return stmt.options(
        selectinload(Booking.customer),
        selectinload(Booking.driver).selectinload(User.driver_profile),
        selectinload(Booking.pickup_location),
        selectinload(Booking.delivery_location),
        selectinload(Booking.items),
    )


class BookingQueryService:
    """
    Read side of the booking core.

    Usage:
        queries = BookingQueryService(database)
        result = await queries.list_bookings(user_id, "customer")
    """

    def __init__(self, database: Database, settings: Optional[Settings] = None):
        self.database = database
        self.settings = settings or database.settings

    @returns_result
    async def list_bookings(
        self,
        user_id: Optional[int] = None,
        role: Union[str, UserRole, None] = None,
    ) -> BookingListResponse:
        """
        List bookings visible to the caller, newest first.

        Customers see their own bookings, drivers the bookings assigned to
        them, admins (or an unscoped call) everything.
        """
        scope = _resolve_role(role)
        if scope in (UserRole.CUSTOMER, UserRole.DRIVER) and user_id is None:
            raise ValidationError("user_id is required for a scoped listing", details={"role": scope.value})

        stmt = _with_relations(select(Booking))
        if scope == UserRole.CUSTOMER:
            stmt = stmt.where(Booking.customer_id == user_id)
        elif scope == UserRole.DRIVER:
            stmt = stmt.where(Booking.driver_id == user_id)
        stmt = stmt.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(self.settings.booking_list_limit)

        async def load_bookings(session: AsyncSession):
            result = await session.execute(stmt)
            return [BookingView(**_booking_fields(booking)) for booking in result.scalars().all()]

        bookings = await self.database.run_in_transaction(load_bookings)
        return BookingListResponse(bookings=bookings, total=len(bookings))

    @returns_result
    async def get_booking_by_tracking(self, tracking_number: str, include_internal: bool = True) -> BookingDetail:
        """
        Full booking view for a tracking number.

        Tracking history is returned newest first with the name of the user
        who produced each update. Public callers pass
        ``include_internal=False`` to hide non-public updates.
        """
        async def load_detail(session: AsyncSession):
            result = await session.execute(
                _with_relations(select(Booking)).where(Booking.tracking_number == tracking_number)
            )
            booking = result.scalar_one_or_none()
            if booking is None:
                raise BookingNotFoundError(tracking_number)

            history = (
                select(TrackingUpdate, User.name)
                .outerjoin(User, TrackingUpdate.updated_by == User.id)
                .where(TrackingUpdate.booking_id == booking.id)
                .order_by(TrackingUpdate.created_at.desc(), TrackingUpdate.id.desc())
            )
            if not include_internal:
                history = history.where(TrackingUpdate.is_public.is_(True))
            rows = (await session.execute(history)).all()

            profile = booking.driver.driver_profile if booking.driver is not None else None
            return BookingDetail(
                **_booking_fields(booking),
                vehicle_type=profile.vehicle_type if profile else None,
                vehicle_number=profile.vehicle_number if profile else None,
                tracking_updates=[
                    TrackingUpdateView(
                        id=update.id,
                        status=update.status,
                        location=update.location,
                        latitude=update.latitude,
                        longitude=update.longitude,
                        notes=update.notes,
                        update_type=update.update_type.value,
                        is_public=update.is_public,
                        updated_by_name=updated_by_name,
                        created_at=update.created_at,
                    )
                    for update, updated_by_name in rows
                ],
            )

        return await self.database.run_in_transaction(load_detail)

    @returns_result
    async def get_dashboard_stats(
        self,
        user_id: Optional[int] = None,
        role: Union[str, UserRole, None] = None,
    ) -> DashboardStats:
        """Role-dependent counters; admin (or no role) gets the system-wide view."""
        scope = _resolve_role(role)
        if scope in (UserRole.CUSTOMER, UserRole.DRIVER) and user_id is None:
            raise ValidationError("user_id is required for role dashboards", details={"role": scope.value})

        if scope == UserRole.CUSTOMER:
            work = lambda session: self._customer_stats(session, user_id)
        elif scope == UserRole.DRIVER:
            work = lambda session: self._driver_stats(session, user_id)
        else:
            work = self._admin_stats
        return await self.database.run_in_transaction(work)

    async def _admin_stats(self, session: AsyncSession) -> AdminDashboardStats:
        since = _start_of_day(datetime.now(timezone.utc)) - timedelta(days=UNIQUE_CUSTOMER_WINDOW_DAYS)

        total_bookings = await session.scalar(select(func.count(Booking.id)))
        active_bookings = await session.scalar(
            select(func.count(Booking.id)).where(Booking.status.in_(ACTIVE_STATUSES))
        )
        revenue = await session.scalar(
            select(func.coalesce(func.sum(Booking.total_amount), 0))
            .where(Booking.payment_status == PaymentStatus.PAID)
        )
        pending_payments = await session.scalar(
            select(func.coalesce(func.sum(Booking.total_amount), 0))
            .where(Booking.payment_status == PaymentStatus.PENDING)
        )
        available_drivers = await session.scalar(
            select(func.count(Driver.user_id)).where(Driver.status == DriverStatus.AVAILABLE)
        )
        unique_customers = await session.scalar(
            select(func.count(func.distinct(Booking.customer_id))).where(Booking.created_at >= since)
        )

        return AdminDashboardStats(
            total_bookings=total_bookings or 0,
            active_bookings=active_bookings or 0,
            revenue=_amount(revenue),
            pending_payments=_amount(pending_payments),
            available_drivers=available_drivers or 0,
            unique_customers=unique_customers or 0,
        )

    async def _customer_stats(self, session: AsyncSession, customer_id: int) -> CustomerDashboardStats:
        def count(*conditions):
            return session.scalar(
                select(func.count(Booking.id)).where(Booking.customer_id == customer_id, *conditions)
            )

        return CustomerDashboardStats(
            total_bookings=await count() or 0,
            pending=await count(Booking.status == BookingStatus.PENDING) or 0,
            in_transit=await count(Booking.status.in_(ACTIVE_STATUSES)) or 0,
            delivered=await count(Booking.status == BookingStatus.DELIVERED) or 0,
        )

    async def _driver_stats(self, session: AsyncSession, driver_id: int) -> DriverDashboardStats:
        today = _start_of_day(datetime.now(timezone.utc))

        active_bookings = await session.scalar(
            select(func.count(Booking.id))
            .where(Booking.driver_id == driver_id, Booking.status.in_(ACTIVE_STATUSES))
        )
        completed_today = await session.scalar(
            select(func.count(Booking.id)).where(
                Booking.driver_id == driver_id,
                Booking.status == BookingStatus.DELIVERED,
                Booking.actual_delivery_time >= today,
                Booking.actual_delivery_time < today + timedelta(days=1),
            )
        )
        # credited on delivery
        earnings = await session.scalar(select(Driver.total_earnings).where(Driver.user_id == driver_id))

        return DriverDashboardStats(
            active_bookings=active_bookings or 0,
            completed_today=completed_today or 0,
            earnings=_amount(earnings),
        )
