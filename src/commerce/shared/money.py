"""Monetary rounding shared by carts, orders and gateway reconciliation."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")

# Largest difference between a gateway-reported amount and an order total
# that still counts as a match.
AMOUNT_TOLERANCE = 0.01


def round_money(value: float | int | str | None) -> float:
    """Round half-up to 2 decimals, e.g. 100.005 -> 100.01."""
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def amounts_match(paid: float, expected: float) -> bool:
    difference = abs(Decimal(str(round_money(paid))) - Decimal(str(round_money(expected))))
    return difference <= Decimal(str(AMOUNT_TOLERANCE))


def to_minor_units(amount: float) -> int:
    """Convert to the gateway's smallest currency unit (cents, paisa)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int | None) -> float:
    return round_money(Decimal(amount or 0) / 100)
