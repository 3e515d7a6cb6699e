"""
Database seeding script for demo users.

Creates a CUSTOMER, an available DRIVER (with its driver profile) and an
ADMIN, then prints a bearer token for each so the API can be exercised
without the identity service.

Run with: python -m logiflow.seed_users
"""

import asyncio

from sqlalchemy import select

from logiflow.app.core.config import settings
from logiflow.app.core.jwt import create_access_token
from logiflow.app.db.session import Database
from logiflow.app.models.user import User
from logiflow.app.models.driver import Driver
from logiflow.app.models.enums import UserRole, DriverStatus
import logiflow.app.main  # noqa: F401  registers every model with Base

DEMO_USERS = [
    {"email": "customer@logiflow.dev", "name": "Demo Customer", "phone": "+15550000001", "role": UserRole.CUSTOMER},
    {"email": "driver@logiflow.dev", "name": "Demo Driver", "phone": "+15550000002", "role": UserRole.DRIVER},
    {"email": "admin@logiflow.dev", "name": "Demo Admin", "phone": "+15550000003", "role": UserRole.ADMIN},
]


async def seed_users(database: Database) -> list:
    """
    Seed the demo users (idempotent).

    Returns:
        The seeded users, existing ones included.
    """
    async def insert_users(session):
        seeded = []
        for data in DEMO_USERS:
            user = await session.scalar(select(User).where(User.email == data["email"]))
            if user is None:
                user = User(**data)
                session.add(user)
                await session.flush()
                if user.role == UserRole.DRIVER:
                    session.add(Driver(
                        user_id=user.id,
                        status=DriverStatus.AVAILABLE,
                        license_number="DL-DEMO-0001",
                        vehicle_type="van",
                        vehicle_number="LF-001",
                    ))
            seeded.append(user)
        return seeded

    return await database.run_in_transaction(insert_users)


async def main():
    database = Database(settings)
    await database.connect()
    try:
        print("🌱 Starting user seeding...")
        for user in await seed_users(database):
            token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role.value})
            print(f"✅ {user.role.value:<8} {user.email}\n   token: {token}")
        print("\n🎉 User seeding completed successfully!")
    finally:
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(main())
