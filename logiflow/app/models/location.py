"""
Location model.

Each booking owns exactly two locations (pickup and delivery) created in the
same transaction as the booking. Coordinates default to 0 until geocoding
exists.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum
from sqlalchemy.sql import func
from logiflow.app.db.session import Base
from logiflow.app.models.booking_enums import LocationType
from logiflow.app.models.enums import enum_values


class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    address = Column(String(500), nullable=False)
    latitude = Column(Float, nullable=False, default=0)
    longitude = Column(Float, nullable=False, default=0)
    contact_name = Column(String(255), nullable=True)
    contact_phone = Column(String(30), nullable=True)
    location_type = Column(
        Enum(LocationType, values_callable=enum_values, name="location_type"),
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Location(id={self.id}, type='{self.location_type.value}')>"
