"""
Booking Lifecycle Manager.

Orchestrates booking creation, status transitions and driver assignment.
Every multi-row write runs as one unit of work on the persistence gateway,
so a failure at any step rolls back the whole operation. Public methods
return a ``Result`` instead of raising.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from logiflow.app.core.config import Settings
from logiflow.app.core.exceptions import (
    ValidationError, NotFoundError, BookingNotFoundError, DriverNotFoundError,
    DriverUnavailableError, BookingNotEligibleError, InvalidStatusError, InsufficientPermissionsError,
)
from logiflow.app.core.result import returns_result
from logiflow.app.db.session import Database
from logiflow.app.domain.pricing.pricing_engine import price, resolve_service_type, CENTS
from logiflow.app.domain.pricing.tracking_number import generate_tracking_number
from logiflow.app.models.booking import Booking
from logiflow.app.models.booking_item import BookingItem
from logiflow.app.models.driver import Driver
from logiflow.app.models.location import Location
from logiflow.app.models.tracking_update import TrackingUpdate
from logiflow.app.models.user import User
from logiflow.app.models.enums import DriverStatus
from logiflow.app.models.booking_enums import (
    BookingStatus, LocationType, PaymentStatus, TrackingUpdateType, ALLOWED_TRANSITIONS,
)
from logiflow.app.schemas.booking import BookingCreate, BookingCreated, BookingActionResponse, LocationInput

logger = logging.getLogger(__name__)

BOOKING_CREATED_NOTE = "Your booking has been created successfully and is pending driver assignment"
DRIVER_ASSIGNED_NOTE = "A professional driver has been assigned to your delivery"

# Conditional updates report affected rows; skip in-session synchronization.
_NO_SYNC = {"synchronize_session": False}


def _location(data: LocationInput, location_type: LocationType) -> Location:
    coordinates = data.coordinates
    return Location(
        address=data.address,
        latitude=coordinates.lat if coordinates else 0,
        longitude=coordinates.lng if coordinates else 0,
        contact_name=data.contact_name,
        contact_phone=data.contact_phone,
        location_type=location_type,
    )


class BookingLifecycleManager:
    """
    Writes side of the booking core.

    Usage:
        manager = BookingLifecycleManager(database)
        result = await manager.create_booking(customer_id, BookingCreate(...))
        if result.ok:
            print(result.value.tracking_number)
    """

    def __init__(self, database: Database, settings: Optional[Settings] = None):
        self.database = database
        self.settings = settings or database.settings

    @returns_result
    async def create_booking(self, customer_id: Optional[int], booking: BookingCreate) -> BookingCreated:
        """
        Create a booking with its locations, items and first tracking update.

        Flow:
        1. Validate required fields
        2. Price the shipment
        3. In one transaction: pickup + delivery locations, booking row
           (pending), items, "Booking Created" tracking update

        A tracking-number collision rolls the attempt back and retries
        with a fresh number.
        """
        missing = [
            name for name, value in (
                ("customer", customer_id),
                ("pickup", booking.pickup),
                ("delivery", booking.delivery),
                ("service_type", booking.service_type),
            )
            if not value
        ]
        if missing:
            raise ValidationError("Missing required booking information", details={"missing": missing})
        if not booking.items:
            raise ValidationError("At least one item is required")

        breakdown = price(booking.items, booking.service_type, self.settings.default_distance_charge)

        async def insert_booking(session: AsyncSession):
            customer = await session.get(User, customer_id)
            if customer is None or not customer.is_active:
                raise NotFoundError("Customer", customer_id)

            pickup = _location(booking.pickup, LocationType.PICKUP)
            delivery = _location(booking.delivery, LocationType.DELIVERY)
            session.add_all([pickup, delivery])
            await session.flush()

            new_booking = Booking(
                tracking_number=generate_tracking_number(self.settings.tracking_number_prefix),
                customer_id=customer_id,
                pickup_location_id=pickup.id,
                delivery_location_id=delivery.id,
                service_type=resolve_service_type(booking.service_type),
                status=BookingStatus.PENDING,
                payment_method=booking.payment_method,
                payment_status=PaymentStatus.PENDING,
                scheduled_pickup_time=booking.scheduled_pickup_time,
                special_notes=booking.notes,
                **breakdown.model_dump(),
            )
            session.add(new_booking)
            await session.flush()  # Raises IntegrityError on a tracking-number collision

            session.add_all([
                BookingItem(
                    booking_id=new_booking.id,
                    description=item.description,
                    category=item.category,
                    quantity=item.quantity,
                    weight=item.weight,
                    value=item.value,
                    dimensions_length=item.length,
                    dimensions_width=item.width,
                    dimensions_height=item.height,
                )
                for item in booking.items
            ])
            session.add(TrackingUpdate(
                booking_id=new_booking.id,
                status="Booking Created",
                notes=BOOKING_CREATED_NOTE,
                update_type=TrackingUpdateType.STATUS,
                is_public=True,
            ))
            await session.flush()
            return new_booking.id, new_booking.tracking_number

        booking_id, tracking_number = await self.database.run_in_transaction(
            insert_booking,
            retry_on=(IntegrityError,),
            retry_on_attempts=self.settings.tracking_number_attempts,
        )
        logger.info(
            "Booking %s created for customer %s (%s, total %s)",
            tracking_number, customer_id, booking.service_type, breakdown.total_amount,
        )

        return BookingCreated(
            booking_id=booking_id,
            tracking_number=tracking_number,
            total_amount=breakdown.total_amount,
            status=BookingStatus.PENDING.value,
        )

    @returns_result
    async def update_status(
        self,
        booking_id: int,
        status: Union[str, BookingStatus],
        actor_id: Optional[int] = None,
        notes: Optional[str] = None,
        assigned_driver_id: Optional[int] = None,
    ) -> BookingActionResponse:
        """
        Move a booking to ``status`` and append a tracking update.

        With ``assigned_driver_id`` set, only a booking assigned to that
        driver may be updated.

        picked_up and delivered stamp the actual times. Delivery credits the
        assigned driver (one more completed delivery, plus
        total_amount * commission_rate / 100 in earnings) in the same
        transaction; any terminal status frees the driver again.
        """
        try:
            new_status = BookingStatus(status)
        except ValueError:
            raise InvalidStatusError(status)

        async def apply_status(session: AsyncSession):
            result = await session.execute(
                select(Booking).where(Booking.id == booking_id).with_for_update()
            )
            booking = result.scalar_one_or_none()
            if booking is None:
                raise BookingNotFoundError(booking_id)
            if assigned_driver_id is not None and booking.driver_id != assigned_driver_id:
                raise InsufficientPermissionsError(
                    f"Booking {booking_id} is not assigned to driver {assigned_driver_id}",
                    details={"booking_id": booking_id, "driver_id": assigned_driver_id},
                )

            previous = booking.status
            if self.settings.enforce_status_transitions and new_status not in ALLOWED_TRANSITIONS[previous]:
                raise BookingNotEligibleError(
                    booking_id, f"cannot move from {previous.value} to {new_status.value}"
                )

            values = {"status": new_status}
            if new_status == BookingStatus.PICKED_UP:
                values["actual_pickup_time"] = func.now()
            elif new_status == BookingStatus.DELIVERED:
                values["actual_delivery_time"] = func.now()

            await session.execute(
                update(Booking).where(Booking.id == booking_id).values(**values).execution_options(**_NO_SYNC)
            )
            session.add(TrackingUpdate(
                booking_id=booking_id,
                status=new_status.value,
                notes=notes or f"Status updated to {new_status.value}",
                updated_by=actor_id,
                update_type=TrackingUpdateType.STATUS,
                is_public=True,
            ))

            # credit and release happen once, on the way into the status
            if booking.driver_id is not None:
                if new_status == BookingStatus.DELIVERED and previous != BookingStatus.DELIVERED:
                    await self._credit_driver(session, booking.driver_id, booking.total_amount)
                if new_status.is_terminal and not previous.is_terminal:
                    await self._release_driver(session, booking.driver_id)

            await session.flush()
            return previous

        previous = await self.database.run_in_transaction(apply_status)
        logger.info(
            "Booking %s status %s -> %s by %s", booking_id, previous.value, new_status.value, actor_id
        )

        return BookingActionResponse(
            booking_id=booking_id,
            status=new_status.value,
            message="Booking status updated successfully",
        )

    @returns_result
    async def assign_driver(
        self,
        booking_id: int,
        driver_id: int,
        actor_id: Optional[int] = None,
    ) -> BookingActionResponse:
        """
        Assign an available driver to a pending booking.

        Both checks are conditional updates in one transaction, so two
        concurrent assignments of the same driver (or to the same booking)
        cannot both succeed. On failure nothing is changed.
        """
        async def claim_driver(session: AsyncSession):
            claimed = await session.execute(
                update(Driver)
                .where(Driver.user_id == driver_id, Driver.status == DriverStatus.AVAILABLE)
                .values(status=DriverStatus.BUSY)
                .execution_options(**_NO_SYNC)
            )
            if claimed.rowcount == 0:
                known = await session.scalar(select(Driver.user_id).where(Driver.user_id == driver_id))
                if known is None:
                    raise DriverNotFoundError(driver_id)
                raise DriverUnavailableError(driver_id)

            assigned = await session.execute(
                update(Booking)
                .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING)
                .values(driver_id=driver_id, status=BookingStatus.ASSIGNED)
                .execution_options(**_NO_SYNC)
            )
            if assigned.rowcount == 0:
                current = await session.scalar(select(Booking.status).where(Booking.id == booking_id))
                reason = "booking not found" if current is None else f"status is {current.value}"
                raise BookingNotEligibleError(booking_id, reason)

            session.add(TrackingUpdate(
                booking_id=booking_id,
                status="Driver Assigned",
                notes=DRIVER_ASSIGNED_NOTE,
                updated_by=actor_id,
                update_type=TrackingUpdateType.STATUS,
                is_public=True,
            ))
            await session.flush()

        await self.database.run_in_transaction(claim_driver)
        logger.info("Driver %s assigned to booking %s", driver_id, booking_id)

        return BookingActionResponse(
            booking_id=booking_id,
            status=BookingStatus.ASSIGNED.value,
            message="Driver assigned successfully",
        )

    async def _credit_driver(self, session: AsyncSession, driver_id: int, total_amount: Decimal) -> None:
        commission_rate = await session.scalar(
            select(Driver.commission_rate).where(Driver.user_id == driver_id).with_for_update()
        )
        if commission_rate is None:
            logger.warning("Delivered booking references unknown driver %s", driver_id)
            return

        credit = (Decimal(total_amount) * Decimal(commission_rate) / 100).quantize(CENTS, rounding=ROUND_HALF_UP)
        await session.execute(
            update(Driver)
            .where(Driver.user_id == driver_id)
            .values(
                completed_deliveries=Driver.completed_deliveries + 1,
                total_earnings=Driver.total_earnings + credit,
            )
            .execution_options(**_NO_SYNC)
        )

    async def _release_driver(self, session: AsyncSession, driver_id: int) -> None:
        await session.execute(
            update(Driver)
            .where(Driver.user_id == driver_id, Driver.status == DriverStatus.BUSY)
            .values(status=DriverStatus.AVAILABLE)
            .execution_options(**_NO_SYNC)
        )

