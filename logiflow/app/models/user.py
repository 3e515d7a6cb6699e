"""
User database model.

Users are owned by the identity service; the booking core only reads them
(customers, drivers and admins) and joins their identity into booking views.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from logiflow.app.db.session import Base
from logiflow.app.models.enums import UserRole, enum_values


class User(Base):
    """User model shared by customers, drivers and admins."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(30), nullable=True)
    role = Column(
        Enum(UserRole, values_callable=enum_values, name="user_role"),
        default=UserRole.CUSTOMER,
        nullable=False,
        index=True,
    )
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Present only for role=driver
    driver_profile = relationship("Driver", back_populates="user", uselist=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
