"""
Driver profile model.

Availability and commission data for users with the driver role. The
counters are only mutated by the booking lifecycle on delivery.
"""

from sqlalchemy import Column, Integer, String, Numeric, Float, ForeignKey, Enum
from sqlalchemy.orm import relationship
from logiflow.app.db.session import Base
from logiflow.app.models.enums import DriverStatus, enum_values


class Driver(Base):
    __tablename__ = "drivers"

    user_id = Column(Integer, ForeignKey('users.id'), primary_key=True)

    status = Column(
        Enum(DriverStatus, values_callable=enum_values, name="driver_status"),
        default=DriverStatus.OFFLINE,
        nullable=False,
        index=True,
    )

    # Percentage of a delivered booking's total credited to the driver
    commission_rate = Column(Numeric(5, 2), nullable=False, default=15)
    total_earnings = Column(Numeric(12, 2), nullable=False, default=0)
    completed_deliveries = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=5.0)

    license_number = Column(String(50), nullable=True)
    vehicle_type = Column(String(50), nullable=True)
    vehicle_number = Column(String(30), nullable=True)

    user = relationship("User", back_populates="driver_profile")

    def __repr__(self):
        return f"<Driver(user_id={self.user_id}, status='{self.status.value}')>"
