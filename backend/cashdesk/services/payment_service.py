# Overview: Simulated tender handling for checkout (cash with change, card).

"""
Payment Processing

WHY: The terminal takes cash or card. There is no gateway: card payments
always succeed for the exact total, cash payments must cover the total
rounded to the cash step and produce change.

TENDER TYPES:
- cash: charged amount is the rounded total; change = received - charged
- card: charged amount is the unrounded total, shown in cents; no change
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..models import PAYMENT_CARD, PAYMENT_CASH, PAYMENT_METHODS
from ..pricing import ZERO, quantize_cents, to_money


class PaymentError(Exception):
    """Raised for payment processing errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass(frozen=True)
class PaymentResult:
    method: str
    amount_due: Decimal
    amount_received: Decimal
    change: Decimal

    def to_dict(self) -> dict:
        return {
            "method": self.method,
            "amount_due": str(self.amount_due),
            "amount_received": str(self.amount_received),
            "change": str(self.change),
        }


def amount_due(method: str, total: Decimal, total_rounded: Decimal) -> Decimal:
    if method == PAYMENT_CASH:
        return total_rounded
    return total


def take_payment(method: str, total: Decimal, total_rounded: Decimal,
                 amount_received=None) -> PaymentResult:
    """
    Settle a checkout.

    Raises:
        PaymentError: unknown method, or cash below the rounded total
    """
    if method not in PAYMENT_METHODS:
        raise PaymentError(f"Unknown payment method: {method}")

    due = amount_due(method, total, total_rounded)

    if method == PAYMENT_CARD:
        # receipt amounts are in cents; the sale keeps the unrounded total
        charged = quantize_cents(due)
        return PaymentResult(method=method, amount_due=charged, amount_received=charged, change=ZERO)

    if amount_received is None:
        raise PaymentError("Cash received is required for cash payments")
    try:
        received = to_money(amount_received)
    except (ArithmeticError, ValueError) as exc:
        raise PaymentError(f"Invalid cash amount: {amount_received!r}") from exc

    if received < due:
        raise PaymentError(
            "Cash received is insufficient",
            details={"amount_due": str(due), "amount_received": str(received), "missing": str(due - received)},
        )
    return PaymentResult(method=method, amount_due=due, amount_received=received, change=received - due)
