"""
Booking Lifecycle Tests.

Validates creation, status transitions, driver assignment and their
all-or-nothing behaviour against a real database.
"""

import re
import asyncio
import pytest
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from logiflow.app.core.exceptions import (
    ValidationError, NotFoundError, BookingNotFoundError, DriverNotFoundError,
    ConflictError, DriverUnavailableError, BookingNotEligibleError,
    InvalidStatusError, PersistenceError, StoreTimeoutError, InsufficientPermissionsError,
)
from logiflow.app.models.booking import Booking
from logiflow.app.models.booking_item import BookingItem
from logiflow.app.models.driver import Driver
from logiflow.app.models.location import Location
from logiflow.app.models.tracking_update import TrackingUpdate
from logiflow.app.models.enums import DriverStatus
from logiflow.app.models.booking_enums import BookingStatus, PaymentStatus, LocationType
from logiflow.app.services.booking_lifecycle import BookingLifecycleManager
from logiflow.tests.helpers import fetch, count_rows, booking_request


async def tracking_labels(database, booking_id):
    async with database.session() as session:
        result = await session.execute(
            select(TrackingUpdate.status).where(TrackingUpdate.booking_id == booking_id).order_by(TrackingUpdate.id)
        )
        return list(result.scalars())


@pytest.fixture
async def customer(make_user):
    return await make_user()


@pytest.fixture
async def pending_booking(lifecycle, customer):
    result = await lifecycle.create_booking(customer.id, booking_request())
    assert result.ok, result.error
    return result.value


@pytest.fixture
async def assigned_booking(lifecycle, pending_booking, make_driver):
    driver = await make_driver()
    result = await lifecycle.assign_driver(pending_booking.booking_id, driver.id)
    assert result.ok, result.error
    return pending_booking, driver


# Creation

async def test_create_booking_persists_full_aggregate(database, lifecycle, customer):
    result = await lifecycle.create_booking(customer.id, booking_request())

    assert result.ok
    created = result.value
    assert re.fullmatch(r"LF\d{10}", created.tracking_number)
    assert created.total_amount == Decimal("86.62")
    assert created.status == "pending"

    booking = await fetch(database, Booking, created.booking_id)
    assert booking.customer_id == customer.id
    assert booking.status == BookingStatus.PENDING
    assert booking.payment_status == PaymentStatus.PENDING
    assert booking.driver_id is None
    assert booking.total_amount == Decimal("86.62")
    assert booking.special_notes == "Leave at reception"

    pickup = await fetch(database, Location, booking.pickup_location_id)
    delivery = await fetch(database, Location, booking.delivery_location_id)
    assert pickup.location_type == LocationType.PICKUP
    assert pickup.latitude == 0 and pickup.longitude == 0
    assert delivery.location_type == LocationType.DELIVERY
    assert delivery.latitude == pytest.approx(51.5)

    assert await count_rows(database, BookingItem) == 1
    assert await tracking_labels(database, created.booking_id) == ["Booking Created"]


async def test_create_booking_with_empty_items_persists_nothing(database, lifecycle, customer):
    result = await lifecycle.create_booking(customer.id, booking_request(items=[]))

    assert not result.ok
    assert isinstance(result.error, ValidationError)
    assert await count_rows(database, Location) == 0
    assert await count_rows(database, Booking) == 0


@pytest.mark.parametrize("overrides,missing", [
    ({"pickup": None}, "pickup"),
    ({"delivery": None}, "delivery"),
    ({"service_type": None}, "service_type"),
])
async def test_create_booking_requires_fields(lifecycle, customer, overrides, missing):
    result = await lifecycle.create_booking(customer.id, booking_request(**overrides))

    assert isinstance(result.error, ValidationError)
    assert missing in result.error.details["missing"]


async def test_create_booking_requires_customer(lifecycle):
    result = await lifecycle.create_booking(None, booking_request())
    assert isinstance(result.error, ValidationError)


async def test_create_booking_unknown_service_type(database, lifecycle, customer):
    result = await lifecycle.create_booking(customer.id, booking_request(service_type="teleport"))

    assert isinstance(result.error, ValidationError)
    assert await count_rows(database, Booking) == 0


async def test_create_booking_unknown_customer(database, lifecycle):
    result = await lifecycle.create_booking(999, booking_request())

    assert isinstance(result.error, NotFoundError)
    assert await count_rows(database, Location) == 0


async def test_create_booking_inactive_customer(lifecycle, make_user):
    inactive = await make_user(is_active=False)
    result = await lifecycle.create_booking(inactive.id, booking_request())
    assert isinstance(result.error, NotFoundError)


async def test_tracking_number_collision_is_retried(database, lifecycle, customer, mocker):
    mocker.patch(
        "logiflow.app.services.booking_lifecycle.generate_tracking_number",
        side_effect=["LF2026000001", "LF2026000001", "LF2026000002"],
    )

    first = await lifecycle.create_booking(customer.id, booking_request())
    second = await lifecycle.create_booking(customer.id, booking_request())

    assert first.value.tracking_number == "LF2026000001"
    assert second.value.tracking_number == "LF2026000002"
    # the colliding attempt left no orphaned locations behind
    assert await count_rows(database, Booking) == 2
    assert await count_rows(database, Location) == 4


async def test_tracking_number_collision_gives_up(database, customer, mocker):
    database.settings.tracking_number_attempts = 2
    manager = BookingLifecycleManager(database)
    mocker.patch(
        "logiflow.app.services.booking_lifecycle.generate_tracking_number",
        return_value="LF2026000001",
    )

    assert (await manager.create_booking(customer.id, booking_request())).ok
    result = await manager.create_booking(customer.id, booking_request())

    assert isinstance(result.error, PersistenceError)
    assert await count_rows(database, Booking) == 1


async def test_timed_out_creation_is_not_retried(database, lifecycle, customer, mocker):
    run_once = mocker.patch.object(database, "_run_once", side_effect=asyncio.TimeoutError())

    result = await lifecycle.create_booking(customer.id, booking_request())

    assert isinstance(result.error, StoreTimeoutError)
    assert run_once.call_count == 1


# Status updates

async def test_update_status_appends_tracking_update(database, lifecycle, pending_booking, customer):
    result = await lifecycle.update_status(pending_booking.booking_id, "confirmed", customer.id)

    assert result.ok
    assert result.value.status == "confirmed"
    booking = await fetch(database, Booking, pending_booking.booking_id)
    assert booking.status == BookingStatus.CONFIRMED
    assert await tracking_labels(database, booking.id) == ["Booking Created", "confirmed"]

    async with database.session() as session:
        update = await session.scalar(
            select(TrackingUpdate).where(TrackingUpdate.booking_id == booking.id).order_by(TrackingUpdate.id.desc())
        )
    assert update.notes == "Status updated to confirmed"
    assert update.updated_by == customer.id
    assert update.is_public


async def test_update_status_stamps_pickup_time(database, lifecycle, assigned_booking):
    created, driver = assigned_booking
    await lifecycle.update_status(created.booking_id, BookingStatus.PICKED_UP, driver.id, "Collected from dock")

    booking = await fetch(database, Booking, created.booking_id)
    assert booking.actual_pickup_time is not None
    assert booking.actual_delivery_time is None


async def test_delivered_credits_driver(database, lifecycle, assigned_booking):
    created, driver = assigned_booking

    result = await lifecycle.update_status(created.booking_id, "delivered", driver.id)

    assert result.ok
    booking = await fetch(database, Booking, created.booking_id)
    assert booking.status == BookingStatus.DELIVERED
    assert booking.actual_delivery_time is not None

    profile = await fetch(database, Driver, driver.id)
    assert profile.completed_deliveries == 1
    # 86.62 x 15 / 100
    assert profile.total_earnings == Decimal("12.99")
    assert profile.status == DriverStatus.AVAILABLE


async def test_delivered_uses_driver_commission_rate(database, lifecycle, pending_booking, make_driver):
    driver = await make_driver(commission_rate=Decimal("20.00"))
    await lifecycle.assign_driver(pending_booking.booking_id, driver.id)

    await lifecycle.update_status(pending_booking.booking_id, "delivered", driver.id)

    profile = await fetch(database, Driver, driver.id)
    assert profile.total_earnings == Decimal("17.32")


async def test_delivery_rolls_back_on_mid_transaction_failure(database, lifecycle, assigned_booking, mocker):
    created, driver = assigned_booking
    mocker.patch.object(BookingLifecycleManager, "_credit_driver", side_effect=SQLAlchemyError("boom"))

    result = await lifecycle.update_status(created.booking_id, "delivered", driver.id)

    assert isinstance(result.error, PersistenceError)
    booking = await fetch(database, Booking, created.booking_id)
    assert booking.status == BookingStatus.ASSIGNED
    assert booking.actual_delivery_time is None
    profile = await fetch(database, Driver, driver.id)
    assert profile.completed_deliveries == 0
    assert profile.total_earnings == Decimal("0")
    assert profile.status == DriverStatus.BUSY
    assert await tracking_labels(database, created.booking_id) == ["Booking Created", "Driver Assigned"]


async def test_cancel_releases_driver_without_credit(database, lifecycle, assigned_booking):
    created, driver = assigned_booking

    await lifecycle.update_status(created.booking_id, "cancelled")

    profile = await fetch(database, Driver, driver.id)
    assert profile.status == DriverStatus.AVAILABLE
    assert profile.completed_deliveries == 0


async def test_update_status_rejects_unknown_status(database, lifecycle, pending_booking):
    result = await lifecycle.update_status(pending_booking.booking_id, "lost_at_sea")

    assert isinstance(result.error, InvalidStatusError)
    booking = await fetch(database, Booking, pending_booking.booking_id)
    assert booking.status == BookingStatus.PENDING


async def test_update_status_unknown_booking(lifecycle):
    result = await lifecycle.update_status(12345, "confirmed")
    assert isinstance(result.error, BookingNotFoundError)


async def test_repeated_delivery_credits_driver_once(database, lifecycle, assigned_booking):
    created, driver = assigned_booking

    await lifecycle.update_status(created.booking_id, "delivered", driver.id)
    again = await lifecycle.update_status(created.booking_id, "delivered", driver.id)

    assert again.ok
    profile = await fetch(database, Driver, driver.id)
    assert profile.completed_deliveries == 1
    assert profile.total_earnings == Decimal("12.99")


async def test_leaving_terminal_status_keeps_driver_on_new_job(database, lifecycle, assigned_booking, customer):
    created, driver = assigned_booking
    await lifecycle.update_status(created.booking_id, "delivered", driver.id)
    next_job = (await lifecycle.create_booking(customer.id, booking_request())).value
    assert (await lifecycle.assign_driver(next_job.booking_id, driver.id)).ok

    await lifecycle.update_status(created.booking_id, "cancelled")

    profile = await fetch(database, Driver, driver.id)
    assert profile.status == DriverStatus.BUSY
    assert profile.completed_deliveries == 1


async def test_driver_cannot_update_unassigned_booking(database, lifecycle, assigned_booking, make_driver):
    created, driver = assigned_booking
    stranger = await make_driver()

    rejected = await lifecycle.update_status(
        created.booking_id, "delivered", stranger.id, assigned_driver_id=stranger.id
    )
    accepted = await lifecycle.update_status(
        created.booking_id, "picked_up", driver.id, assigned_driver_id=driver.id
    )

    assert isinstance(rejected.error, InsufficientPermissionsError)
    assert accepted.ok
    assert (await fetch(database, Driver, driver.id)).completed_deliveries == 0


async def test_rejected_status_writes_leave_circuit_closed(database, lifecycle, pending_booking):
    database.breaker.failure_threshold = 2

    for _ in range(3):
        result = await lifecycle.update_status(pending_booking.booking_id, "confirmed", actor_id=987654)
        assert isinstance(result.error, PersistenceError)

    assert database.breaker.state == "CLOSED"
    assert (await lifecycle.update_status(pending_booking.booking_id, "confirmed")).ok


async def test_transitions_are_permissive_by_default(lifecycle, pending_booking):
    result = await lifecycle.update_status(pending_booking.booking_id, "out_for_delivery")
    assert result.ok


async def test_strict_transitions_reject_skipping_states(database, pending_booking):
    database.settings.enforce_status_transitions = True
    strict = BookingLifecycleManager(database)

    skipped = await strict.update_status(pending_booking.booking_id, "delivered")
    allowed = await strict.update_status(pending_booking.booking_id, "confirmed")

    assert isinstance(skipped.error, BookingNotEligibleError)
    assert allowed.ok
    booking = await fetch(database, Booking, pending_booking.booking_id)
    assert booking.status == BookingStatus.CONFIRMED


# Driver assignment

async def test_assign_driver(database, assigned_booking):
    created, driver = assigned_booking

    booking = await fetch(database, Booking, created.booking_id)
    assert booking.status == BookingStatus.ASSIGNED
    assert booking.driver_id == driver.id
    profile = await fetch(database, Driver, driver.id)
    assert profile.status == DriverStatus.BUSY
    assert await tracking_labels(database, created.booking_id) == ["Booking Created", "Driver Assigned"]


async def test_assign_busy_driver_is_conflict(database, lifecycle, pending_booking, make_driver):
    driver = await make_driver(status=DriverStatus.BUSY)

    result = await lifecycle.assign_driver(pending_booking.booking_id, driver.id)

    assert isinstance(result.error, DriverUnavailableError)
    assert isinstance(result.error, ConflictError)
    booking = await fetch(database, Booking, pending_booking.booking_id)
    assert booking.status == BookingStatus.PENDING
    assert booking.driver_id is None


async def test_assign_offline_driver_is_conflict(lifecycle, pending_booking, make_driver):
    driver = await make_driver(status=DriverStatus.OFFLINE)
    result = await lifecycle.assign_driver(pending_booking.booking_id, driver.id)
    assert isinstance(result.error, DriverUnavailableError)


async def test_assign_unknown_driver(lifecycle, pending_booking):
    result = await lifecycle.assign_driver(pending_booking.booking_id, 4242)
    assert isinstance(result.error, DriverNotFoundError)


async def test_assign_to_ineligible_booking_keeps_driver_available(database, lifecycle, assigned_booking, make_driver):
    created, _ = assigned_booking
    second_driver = await make_driver()

    result = await lifecycle.assign_driver(created.booking_id, second_driver.id)

    assert isinstance(result.error, BookingNotEligibleError)
    profile = await fetch(database, Driver, second_driver.id)
    assert profile.status == DriverStatus.AVAILABLE


async def test_assign_to_unknown_booking(database, lifecycle, make_driver):
    driver = await make_driver()

    result = await lifecycle.assign_driver(999, driver.id)

    assert isinstance(result.error, BookingNotEligibleError)
    assert (await fetch(database, Driver, driver.id)).status == DriverStatus.AVAILABLE


async def test_concurrent_assignment_of_same_driver(database, lifecycle, customer, make_driver):
    first = (await lifecycle.create_booking(customer.id, booking_request())).value
    second = (await lifecycle.create_booking(customer.id, booking_request())).value
    driver = await make_driver()

    results = await asyncio.gather(
        lifecycle.assign_driver(first.booking_id, driver.id),
        lifecycle.assign_driver(second.booking_id, driver.id),
    )

    assert sum(result.ok for result in results) == 1
    failed = next(result for result in results if not result.ok)
    assert isinstance(failed.error, ConflictError)

    bookings = [await fetch(database, Booking, b.booking_id) for b in (first, second)]
    assert sorted(b.status.value for b in bookings) == ["assigned", "pending"]
    assert [b.driver_id for b in bookings].count(driver.id) == 1
