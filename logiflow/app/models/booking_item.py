"""
Booking item model.

Items are created with their booking and never mutated afterwards.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from logiflow.app.db.session import Base
from logiflow.app.models.booking_enums import ItemCategory
from logiflow.app.models.enums import enum_values


class BookingItem(Base):
    __tablename__ = "booking_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_booking_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey('bookings.id'), nullable=False, index=True)

    description = Column(String(500), nullable=False)
    category = Column(
        Enum(ItemCategory, values_callable=enum_values, name="item_category"),
        default=ItemCategory.PACKAGE,
        nullable=False,
    )
    quantity = Column(Integer, nullable=False, default=1)

    # Per-unit weight (kg) and declared value
    weight = Column(Numeric(10, 2), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)

    dimensions_length = Column(Numeric(10, 2), nullable=True)
    dimensions_width = Column(Numeric(10, 2), nullable=True)
    dimensions_height = Column(Numeric(10, 2), nullable=True)

    booking = relationship("Booking", back_populates="items")

    def __repr__(self):
        return f"<BookingItem(id={self.id}, booking_id={self.booking_id}, qty={self.quantity})>"
