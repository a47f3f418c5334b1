# Overview: Counter side of refunds; builds refund lines, validates the request, restores stock.

"""
Refund Processing

WHY: The ledger records refunds but deliberately leaves two duties to its
caller: validating the free-text reason and putting units back on the
shelf. This module is that caller.

REFUND LINE PRICING:
Each refunded line gives back its share of the original line's discount:

    discount = original discount / original quantity * refunded quantity
    total    = unit_price * refunded quantity - discount

rounded to cents. The refund that completes a line takes the remaining
discount instead, so a line refunded in parts gives back exactly its sold
total. The sale's status moves by quantity (see SalesLedger).
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..models import CartLine, Refund, Sale
from ..pricing import ZERO, quantize_cents
from .catalog_service import CatalogError, CatalogStore
from .sales_service import RefundError, SalesLedger

logger = logging.getLogger(__name__)


class EmptyRefundReasonError(RefundError):
    """A refund was requested without a reason."""


def validate_refund_reason(reason: str | None) -> str:
    text = (reason or "").strip()
    if not text:
        raise EmptyRefundReasonError("A reason is required to process a refund")
    return text


def build_refund_line(original: CartLine, quantity: int, *, already_refunded: int = 0,
                      discount_refunded: Decimal = ZERO) -> CartLine:
    """
    Price a refund of `quantity` units of a sold line.

    The refund that brings the product's cumulative refunded quantity up to
    the sold quantity takes whatever discount is left, so the refunds of a
    line always add up to exactly its sold total.
    """
    quantity = min(quantity, original.quantity)
    if already_refunded + quantity >= original.quantity:
        discount = original.discount - discount_refunded
    else:
        discount = quantize_cents(original.discount * quantity / original.quantity)
    line = CartLine(
        product_id=original.product_id,
        code=original.code,
        description=original.description,
        quantity=quantity,
        unit_price=original.unit_price,
    )
    line.apply_discount(discount)
    return line


def build_refund_lines(sale: Sale, quantities: dict[str, int],
                       refunded: dict[str, int] | None = None,
                       refunded_discounts: dict[str, Decimal] | None = None) -> list[CartLine]:
    """
    Turn a {product_id: quantity} selection into priced refund lines.

    `refunded` and `refunded_discounts` describe earlier refunds of the same
    sale (see SalesLedger.refunded_quantities / refunded_discounts).
    Products with a quantity of zero or less are skipped. Products that are
    not on the sale raise RefundError.
    """
    refunded = refunded or {}
    refunded_discounts = refunded_discounts or {}
    lines = []
    for product_id, quantity in quantities.items():
        if quantity <= 0:
            continue
        original = sale.line_for(product_id)
        if original is None:
            raise RefundError(
                f"Product {product_id} is not part of sale {sale.ticket_number}",
                details={"product_id": product_id},
            )
        if quantity > original.quantity:
            raise RefundError(
                f"Cannot refund {quantity} units. Sale only had {original.quantity} units.",
                details={"product_id": product_id, "sold_quantity": original.quantity},
            )
        lines.append(build_refund_line(
            original,
            quantity,
            already_refunded=refunded.get(product_id, 0),
            discount_refunded=refunded_discounts.get(product_id, ZERO),
        ))
    return lines


def refund_sale(
    ledger: SalesLedger,
    catalog: CatalogStore,
    *,
    ticket_number: str,
    employee_id: str,
    employee_name: str,
    quantities: dict[str, int],
    reason: str | None,
) -> Refund | None:
    """
    Refund units of a ticket and put them back in stock.

    Returns None when the ticket is unknown.

    Raises:
        EmptyRefundReasonError: blank reason (checked before anything else)
        RefundError: empty selection or quantities beyond what is refundable
    """
    reason = validate_refund_reason(reason)

    sale = ledger.get_sale_by_ticket(ticket_number)
    if sale is None:
        return None

    lines = build_refund_lines(
        sale,
        quantities,
        ledger.refunded_quantities(sale.id),
        ledger.refunded_discounts(sale.id),
    )
    if not lines:
        raise RefundError("Select at least one product to refund")

    refund = ledger.process_refund(sale.id, employee_id, employee_name, lines, reason)
    if refund is None:
        return None

    for line in refund.lines:
        try:
            catalog.increment_stock(line.product_id, line.quantity)
        except CatalogError:
            # product vanished from a reloaded catalog; the refund stands
            logger.warning("Refund %s: product %s not in catalog, stock not restored", refund.id, line.product_id)
    return refund
