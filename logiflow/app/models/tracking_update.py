"""
Tracking update model.

Append-only audit trail of a booking. Rows are never updated or deleted.
"""

from sqlalchemy import Column, Integer, String, Float, Text, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from logiflow.app.db.session import Base
from logiflow.app.models.booking_enums import TrackingUpdateType
from logiflow.app.models.enums import enum_values


class TrackingUpdate(Base):
    __tablename__ = "tracking_updates"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey('bookings.id'), nullable=False, index=True)

    # Free label: a booking status value or an event name such as "Booking Created"
    status = Column(String(100), nullable=False)
    location = Column(String(500), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)

    # Who produced the update (None for system events)
    updated_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    update_type = Column(
        Enum(TrackingUpdateType, values_callable=enum_values, name="tracking_update_type"),
        default=TrackingUpdateType.STATUS,
        nullable=False,
    )
    is_public = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    booking = relationship("Booking", back_populates="tracking_updates")
    updated_by_user = relationship("User")

    def __repr__(self):
        return f"<TrackingUpdate(id={self.id}, booking_id={self.booking_id}, status='{self.status}')>"
