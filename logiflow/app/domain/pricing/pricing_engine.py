"""
Pricing Engine (Domain Logic).

Computes a shipment's monetary breakdown from its items and service tier.
Pure and side-effect free; all arithmetic is exact ``Decimal`` and values
are rounded to cents only when the breakdown is produced.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Union

from pydantic import BaseModel

from logiflow.app.core.exceptions import ValidationError
from logiflow.app.models.booking_enums import ServiceType

BASE_RATES = {
    ServiceType.EXPRESS: Decimal("35"),
    ServiceType.STANDARD: Decimal("25"),
    ServiceType.ECONOMY: Decimal("18"),
    ServiceType.OVERNIGHT: Decimal("45"),
    ServiceType.SAME_DAY: Decimal("55"),
}

WEIGHT_RATE = Decimal("2.75")  # per kg
DEFAULT_DISTANCE_CHARGE = Decimal("15.50")  # flat until routing distance exists
FUEL_SURCHARGE_RATE = Decimal("0.15")
INSURANCE_RATE = Decimal("0.02")
TAX_RATE = Decimal("0.08")

CENTS = Decimal("0.01")


class PriceBreakdown(BaseModel):
    """Rounded monetary breakdown of a booking."""
    total_weight: Decimal
    total_value: Decimal
    base_amount: Decimal
    weight_charges: Decimal
    distance_charges: Decimal
    fuel_surcharge: Decimal
    insurance_fee: Decimal
    tax_amount: Decimal
    total_amount: Decimal


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """Convert ints, strings and floats (via their repr) to Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Item {field} must be a number", details={"field": field})
    try:
        return Decimal(str(value))
    except ArithmeticError:
        raise ValidationError(f"Item {field} must be a number", details={"field": field})


def _read(item: Any, field: str) -> Any:
    if isinstance(item, dict):
        return item.get(field)
    return getattr(item, field, None)


def _money(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def resolve_service_type(service_type: Union[str, ServiceType]) -> ServiceType:
    try:
        return ServiceType(service_type)
    except ValueError:
        raise ValidationError(
            f"Unknown service type: {service_type}",
            details={"service_type": service_type, "allowed": [s.value for s in ServiceType]}
        )


def price(
    items: Iterable[Any],
    service_type: Union[str, ServiceType],
    distance_charge: Decimal = DEFAULT_DISTANCE_CHARGE,
) -> PriceBreakdown:
    """
    Price a shipment.

    Args:
        items: Objects or dicts exposing weight, value and quantity (all >= 0)
        service_type: One of the ServiceType tiers
        distance_charge: Flat distance component

    Returns:
        PriceBreakdown whose total_amount equals the sum of its six
        presented components.

    Raises:
        ValidationError: Empty items, negative figures or unknown tier
    """
    items = list(items or [])
    if not items:
        raise ValidationError("At least one item is required")

    tier = resolve_service_type(service_type)

    total_weight = Decimal("0")
    total_value = Decimal("0")
    for index, item in enumerate(items):
        weight = to_decimal(_read(item, "weight"), "weight")
        value = to_decimal(_read(item, "value"), "value")
        quantity = to_decimal(_read(item, "quantity"), "quantity")
        if weight < 0 or value < 0 or quantity < 0:
            raise ValidationError(
                "Item weight, value and quantity must be non-negative",
                details={"item_index": index}
            )
        total_weight += weight * quantity
        total_value += value * quantity

    base = BASE_RATES[tier]
    distance = to_decimal(distance_charge, "distance_charge")
    weight_charge = total_weight * WEIGHT_RATE
    fuel_surcharge = (base + weight_charge + distance) * FUEL_SURCHARGE_RATE
    insurance_fee = total_value * INSURANCE_RATE
    tax_amount = (base + weight_charge + distance + fuel_surcharge + insurance_fee) * TAX_RATE

    components = {
        "base_amount": _money(base),
        "weight_charges": _money(weight_charge),
        "distance_charges": _money(distance),
        "fuel_surcharge": _money(fuel_surcharge),
        "insurance_fee": _money(insurance_fee),
        "tax_amount": _money(tax_amount),
    }

    return PriceBreakdown(
        total_weight=_money(total_weight),
        total_value=_money(total_value),
        total_amount=sum(components.values(), Decimal("0")),
        **components,
    )
