"""
Booking Pydantic schemas.

Defines request models for booking creation and lifecycle actions and the
denormalized booking views returned by the read façade.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from logiflow.app.models.booking_enums import ItemCategory, PaymentMethod


class Coordinates(BaseModel):
    lat: float = 0
    lng: float = 0


class LocationInput(BaseModel):
    """Pickup or delivery point supplied by the customer."""
    address: str = Field(..., min_length=1, max_length=500)
    coordinates: Optional[Coordinates] = None
    contact_name: Optional[str] = Field(None, max_length=255)
    contact_phone: Optional[str] = Field(None, max_length=30)


class BookingItemInput(BaseModel):
    """One line of the shipment; weight and value are per unit."""
    description: str = Field(..., min_length=1, max_length=500)
    category: ItemCategory = ItemCategory.PACKAGE
    quantity: int = Field(default=1, ge=1)
    weight: Decimal = Field(..., ge=0, description="Unit weight in kilograms")
    value: Decimal = Field(default=Decimal("0"), ge=0, description="Declared unit value")
    length: Optional[Decimal] = Field(None, gt=0)
    width: Optional[Decimal] = Field(None, gt=0)
    height: Optional[Decimal] = Field(None, gt=0)


class BookingCreate(BaseModel):
    """
    Schema for creating a booking.

    Presence of pickup, delivery, items and service type is checked by the
    lifecycle manager so direct callers get the same ValidationError.
    """
    pickup: Optional[LocationInput] = None
    delivery: Optional[LocationInput] = None
    items: List[BookingItemInput] = Field(default_factory=list)
    service_type: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    scheduled_pickup_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=2000)


class BookingCreated(BaseModel):
    """Response after booking creation."""
    booking_id: int
    tracking_number: str
    total_amount: Decimal
    status: str


class StatusUpdate(BaseModel):
    """Schema for a status change; the value is validated by the lifecycle manager."""
    status: str = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=2000)


class DriverAssignment(BaseModel):
    """Schema for assigning a driver to a booking."""
    driver_id: int


class BookingActionResponse(BaseModel):
    """Response after a lifecycle action."""
    booking_id: int
    status: str
    message: str


class LocationView(BaseModel):
    address: str
    latitude: float
    longitude: float
    contact_name: Optional[str]
    contact_phone: Optional[str]

    class Config:
        from_attributes = True


class BookingItemView(BaseModel):
    id: int
    description: str
    category: ItemCategory
    quantity: int
    weight: Decimal
    value: Decimal
    dimensions_length: Optional[Decimal] = None
    dimensions_width: Optional[Decimal] = None
    dimensions_height: Optional[Decimal] = None

    class Config:
        from_attributes = True


class TrackingUpdateView(BaseModel):
    id: int
    status: str
    location: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    notes: Optional[str]
    update_type: str
    is_public: bool
    updated_by_name: Optional[str] = None
    created_at: datetime


class BookingView(BaseModel):
    """Denormalized booking used by list endpoints."""
    id: int
    tracking_number: str
    status: str
    service_type: str
    payment_method: str
    payment_status: str

    customer_id: int
    customer_name: str
    customer_phone: Optional[str]
    customer_email: str
    driver_id: Optional[int] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    driver_rating: Optional[float] = None

    pickup: LocationView
    delivery: LocationView
    items: List[BookingItemView]

    total_weight: Decimal
    total_value: Decimal
    base_amount: Decimal
    weight_charges: Decimal
    distance_charges: Decimal
    fuel_surcharge: Decimal
    insurance_fee: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    scheduled_pickup_time: Optional[datetime]
    actual_pickup_time: Optional[datetime]
    actual_delivery_time: Optional[datetime]
    special_notes: Optional[str]
    created_at: datetime
    updated_at: datetime


class BookingDetail(BookingView):
    """Full booking view returned by tracking lookups."""
    vehicle_type: Optional[str] = None
    vehicle_number: Optional[str] = None
    tracking_updates: List[TrackingUpdateView]


class BookingListResponse(BaseModel):
    bookings: List[BookingView]
    total: int
