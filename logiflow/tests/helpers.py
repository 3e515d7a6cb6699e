"""
Shared test helpers.
"""

from sqlalchemy import select, func

from logiflow.app.core.jwt import create_access_token
from logiflow.app.db.session import Database
from logiflow.app.models.user import User
from logiflow.app.schemas.booking import BookingCreate


async def fetch(database: Database, model, pk):
    """Load the committed state of a row."""
    async with database.session() as session:
        return await session.get(model, pk)


async def count_rows(database: Database, model) -> int:
    async with database.session() as session:
        return await session.scalar(select(func.count()).select_from(model))


def booking_payload(**overrides) -> dict:
    """One 10 kg item worth 100, standard service."""
    data = {
        "pickup": {"address": "1 Warehouse Road", "contact_name": "Dock A", "contact_phone": "+15551110000"},
        "delivery": {"address": "22 Harbour Street", "coordinates": {"lat": 51.5, "lng": -0.12}},
        "items": [{"description": "Spare parts", "category": "package", "quantity": 1, "weight": 10, "value": 100}],
        "service_type": "standard",
        "payment_method": "online",
        "notes": "Leave at reception",
    }
    data.update(overrides)
    return data


def booking_request(**overrides) -> BookingCreate:
    return BookingCreate(**booking_payload(**overrides))


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.email, "user_id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}
