# Overview: Money helpers and the totals formula shared by the cart and the sales ledger.

"""
Pricing rules for the terminal.

Money is carried as Decimal end to end. The tax (IGV) is a flat rate applied
to the discounted subtotal of the whole ticket, not per product, even though
each Product carries its own configured igv percentage.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

ZERO = Decimal("0")
CENT = Decimal("0.01")

DEFAULT_IGV_RATE = Decimal("0.18")
DEFAULT_CASH_ROUNDING_STEP = Decimal("0.10")


def to_money(value) -> Decimal:
    """
    Coerce user/JSON input into a Decimal.

    Floats go through str() so 2.5 becomes Decimal("2.5") rather than its
    binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Money amount cannot be a boolean")
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, (int, str)):
        return Decimal(value)
    raise ValueError(f"Cannot interpret {value!r} as a money amount")


def quantize_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def round_to_step(amount: Decimal, step: Decimal = DEFAULT_CASH_ROUNDING_STEP) -> Decimal:
    """Round to the nearest multiple of step (half up), e.g. 10.34 -> 10.30, 10.35 -> 10.40."""
    units = (amount / step).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return (units * step).quantize(step)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    igv_amount: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "discount_amount": str(self.discount_amount),
            "igv_amount": str(self.igv_amount),
            "total": str(self.total),
        }


def compute_totals(lines: Iterable, igv_rate: Decimal = DEFAULT_IGV_RATE) -> Totals:
    """
    Totals for a set of priced lines (anything with quantity, unit_price, discount).

    subtotal is pre-discount; igv is charged on (subtotal - discount) and the
    result is left unrounded.
    """
    subtotal = ZERO
    discount = ZERO
    for line in lines:
        subtotal += line.quantity * line.unit_price
        discount += line.discount
    igv = (subtotal - discount) * igv_rate
    return Totals(
        subtotal=subtotal,
        discount_amount=discount,
        igv_amount=igv,
        total=subtotal - discount + igv,
    )
