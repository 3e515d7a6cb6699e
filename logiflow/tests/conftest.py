"""
Centralized Test Configuration.

Every test gets its own file-backed SQLite database so concurrent units
of work really run on separate connections.
"""

import itertools
from decimal import Decimal

import pytest
from httpx import AsyncClient, ASGITransport

from logiflow.app.main import create_app
from logiflow.app.core.config import Settings
from logiflow.app.db.session import Database
from logiflow.app.models.user import User
from logiflow.app.models.driver import Driver
from logiflow.app.models.enums import UserRole, DriverStatus
from logiflow.app.services.booking_lifecycle import BookingLifecycleManager
from logiflow.app.services.booking_queries import BookingQueryService


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'logiflow.db'}",
        db_statement_timeout=10.0,
        db_retry_backoff_seconds=0,
        db_create_tables=True,
    )


@pytest.fixture
async def database(test_settings):
    db = Database(test_settings)
    await db.connect()
    yield db
    await db.dispose()


@pytest.fixture
def lifecycle(database):
    return BookingLifecycleManager(database)


@pytest.fixture
def queries(database):
    return BookingQueryService(database)


@pytest.fixture
def make_user(database):
    """Factory inserting an active user with the given role."""
    counter = itertools.count(1)

    async def _make_user(role: UserRole = UserRole.CUSTOMER, name: str = None, is_active: bool = True) -> User:
        n = next(counter)

        async def insert_user(session):
            user = User(
                email=f"{role.value}{n}@test.com",
                name=name or f"{role.value.title()} {n}",
                phone=f"+1555000{n:04d}",
                role=role,
                is_active=is_active,
            )
            session.add(user)
            await session.flush()
            return user

        return await database.run_in_transaction(insert_user)

    return _make_user


@pytest.fixture
def make_driver(database, make_user):
    """Factory inserting a driver user with its profile."""
    async def _make_driver(
        status: DriverStatus = DriverStatus.AVAILABLE,
        commission_rate: Decimal = Decimal("15.00"),
        name: str = None,
    ) -> User:
        user = await make_user(UserRole.DRIVER, name=name)

        async def insert_profile(session):
            session.add(Driver(
                user_id=user.id,
                status=status,
                commission_rate=commission_rate,
                vehicle_type="van",
                vehicle_number=f"LF-{user.id:03d}",
            ))

        await database.run_in_transaction(insert_profile)
        return user

    return _make_driver


@pytest.fixture
async def client(database, test_settings):
    """Async client; the lifespan is skipped so the test database is injected."""
    app = create_app(test_settings)
    app.state.database = database
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
