"""
Booking database model.

A booking is a customer's shipment request. It owns its pickup and delivery
locations, its items and its tracking history. After creation only the
status, driver assignment, payment status and actual times change.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Enum, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from logiflow.app.db.session import Base
from logiflow.app.models.booking_enums import BookingStatus, ServiceType, PaymentMethod, PaymentStatus
from logiflow.app.models.enums import enum_values

MONEY = Numeric(10, 2)


class Booking(Base):
    """
    Booking model.

    The monetary breakdown is fixed at creation:
    total_amount = base_amount + weight_charges + distance_charges
                   + fuel_surcharge + insurance_fee + tax_amount
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_number = Column(String(20), unique=True, nullable=False, index=True)

    # Parties
    customer_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)

    # Exclusively owned locations
    pickup_location_id = Column(Integer, ForeignKey('locations.id'), nullable=False)
    delivery_location_id = Column(Integer, ForeignKey('locations.id'), nullable=False)

    service_type = Column(Enum(ServiceType, values_callable=enum_values, name="service_type"), nullable=False)
    status = Column(
        Enum(BookingStatus, values_callable=enum_values, name="booking_status"),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_method = Column(Enum(PaymentMethod, values_callable=enum_values, name="payment_method"), nullable=False)
    payment_status = Column(
        Enum(PaymentStatus, values_callable=enum_values, name="payment_status"),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    # Monetary breakdown
    total_weight = Column(Numeric(10, 2), nullable=False)
    total_value = Column(MONEY, nullable=False)
    base_amount = Column(MONEY, nullable=False)
    weight_charges = Column(MONEY, nullable=False)
    distance_charges = Column(MONEY, nullable=False)
    fuel_surcharge = Column(MONEY, nullable=False)
    insurance_fee = Column(MONEY, nullable=False)
    tax_amount = Column(MONEY, nullable=False)
    total_amount = Column(MONEY, nullable=False)

    # Scheduling
    scheduled_pickup_time = Column(DateTime(timezone=True), nullable=True)
    actual_pickup_time = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_time = Column(DateTime(timezone=True), nullable=True)

    special_notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    customer = relationship("User", foreign_keys=[customer_id])
    driver = relationship("User", foreign_keys=[driver_id])
    pickup_location = relationship("Location", foreign_keys=[pickup_location_id])
    delivery_location = relationship("Location", foreign_keys=[delivery_location_id])
    items = relationship("BookingItem", back_populates="booking", order_by="BookingItem.id")
    tracking_updates = relationship(
        "TrackingUpdate",
        back_populates="booking",
        order_by="TrackingUpdate.id",
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, tracking='{self.tracking_number}', status='{self.status.value}')>"
