"""
Fee normalisation and service-fee maths.

Fees are handled in **major currency units** as `Decimal` throughout the services.
Stored documents are inconsistent:

- Clubs written before normalisation hold `fee` in minor units (500 == 5.00).
  Clubs tagged `feeUnit: "major"` hold major units.
- Events hold one of `fee` (major), `price` (minor) or, for `type == "Paid"`, `amount` (major).

New documents always store major units with `feeUnit: "major"`. The
`fee_normalization` migration rewrites legacy documents into that form.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from clubsphere.config import settings

MAJOR_UNIT = "major"
CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """
    Convert a stored amount into a `Decimal` rounded to two places.

    Missing, empty or unparseable values are treated as zero.
    """
    if value is None or value == "":
        return ZERO
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    if not amount.is_finite():
        return ZERO
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def club_fee(club: Dict[str, Any]) -> Decimal:
    """Membership fee of a club document in major units."""
    raw = club.get("fee")
    if club.get("feeUnit") == MAJOR_UNIT:
        return to_decimal(raw)
    return to_decimal(to_decimal(raw) / 100)


def event_fee(event: Dict[str, Any]) -> Decimal:
    """
    Registration fee of an event document in major units.

    Resolution order: `fee`, then `price / 100`, then `amount` for paid events.
    """
    if event.get("fee") is not None:
        return to_decimal(event["fee"])
    if event.get("price") is not None:
        return to_decimal(to_decimal(event["price"]) / 100)
    if event.get("type") == "Paid" and event.get("amount"):
        return to_decimal(event["amount"])
    return ZERO


def service_fee(fee: Decimal, rate: Optional[Decimal] = None, minimum: Optional[Decimal] = None) -> Decimal:
    """`max(fee * rate, minimum)`, rounded to cents."""
    rate = settings.SERVICE_FEE_RATE if rate is None else rate
    minimum = settings.MIN_SERVICE_FEE if minimum is None else minimum
    return max(to_decimal(fee * rate), to_decimal(minimum))


def fee_breakdown(fee: Decimal) -> Tuple[Decimal, Decimal, Decimal]:
    """Return `(fee, service_fee, total)` for a non-zero fee."""
    fee = to_decimal(fee)
    charge = service_fee(fee)
    return fee, charge, fee + charge


def to_minor_units(amount: Decimal) -> int:
    """Major units to the integer minor units the payment provider expects."""
    return int((to_decimal(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_minor_units(amount: Any) -> Decimal:
    return to_decimal(to_decimal(amount) / 100)


def fee_fields(fee: Any) -> Dict[str, Any]:
    """Storage fields for a fee written in major units."""
    return {"fee": float(to_decimal(fee)), "feeUnit": MAJOR_UNIT}
