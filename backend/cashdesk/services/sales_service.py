# Overview: Sales ledger; immutable sale snapshots and the refunds recorded against them.

"""
Sales Ledger

WHY: The ledger is the system of record for money taken and given back.
It never trusts cart totals: totals are recomputed here from the copied
lines with the same formula the cart uses.

DESIGN PRINCIPLES:
- complete_sale and process_refund apply fully or not at all
- The ledger never touches stock; the checkout and refund callers move
  stock through the catalog store
- Refund status is decided by quantities, not money, so cent rounding of
  proportional discounts cannot leave a sale stuck in partial_refund

LIFECYCLE (per sale):
    completed --(any refund)--> partial_refund
    partial_refund --(every sold unit refunded)--> refunded
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable

from ..models import (
    CartLine,
    Refund,
    Sale,
    PAYMENT_METHODS,
    SALE_STATUS_COMPLETED,
    SALE_STATUS_PARTIAL_REFUND,
    SALE_STATUS_REFUNDED,
)
from ..pricing import DEFAULT_IGV_RATE, ZERO, compute_totals
from ..time_utils import day_window, utcnow

logger = logging.getLogger(__name__)


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class RefundError(SaleError):
    """Raised when a refund request does not fit the original sale."""


class SalesLedger:
    def __init__(self, *, igv_rate: Decimal = DEFAULT_IGV_RATE, clock: Callable = utcnow):
        self._igv_rate = igv_rate
        self._clock = clock
        self._sales: list[Sale] = []
        self._refunds: list[Refund] = []
        self._last_ticket_millis: int | None = None

    # =========================================================================
    # SALES
    # =========================================================================

    def complete_sale(
        self,
        employee_id: str,
        employee_name: str,
        terminal_id: str,
        lines: Iterable[CartLine],
        payment_method: str,
        session_start: datetime | None,
        *,
        amount_received: Decimal | None = None,
        change_given: Decimal | None = None,
    ) -> Sale:
        """
        Record a completed checkout.

        Lines are deep-copied so later cart edits cannot reach the snapshot.
        The stored total is the unrounded one, whatever the tender.
        """
        snapshot = [line.copy() for line in lines]
        if not snapshot:
            raise SaleError("Cannot complete a sale with no lines")
        if payment_method not in PAYMENT_METHODS:
            raise SaleError(f"Unknown payment method: {payment_method}")
        for line in snapshot:
            line.auto_added = False
            if line.quantity <= 0:
                raise SaleError("Sale lines must have a positive quantity", details={"product_id": line.product_id})

        totals = compute_totals(snapshot, self._igv_rate)
        now = self._clock()
        sale = Sale(
            id=uuid.uuid4().hex,
            ticket_number=self._next_ticket_number(now),
            employee_id=employee_id,
            employee_name=employee_name,
            terminal_id=terminal_id,
            lines=snapshot,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            igv_amount=totals.igv_amount,
            total=totals.total,
            payment_method=payment_method,
            status=SALE_STATUS_COMPLETED,
            created_at=now,
            session_start=session_start,
            session_end=now,
            amount_received=amount_received,
            change_given=change_given,
        )
        self._sales.append(sale)
        logger.info("Sale %s completed by %s: total %s (%s)", sale.ticket_number, employee_id, sale.total, payment_method)
        return sale

    # =========================================================================
    # REFUNDS
    # =========================================================================

    def process_refund(
        self,
        sale_id: str,
        employee_id: str,
        employee_name: str,
        lines: Iterable[CartLine],
        reason: str,
    ) -> Refund | None:
        """
        Record a refund against a sale.

        Returns None (nothing recorded) when sale_id is unknown. The reason is
        expected to be validated by the caller. Each line's total must already
        carry its share of the original discount; refund_amount is their sum.

        Raises:
            RefundError: no lines, a product not on the sale, a non-positive
                quantity, or more units than remain refundable. Nothing is
                recorded in that case.
        """
        sale = self._find_sale(sale_id)
        if sale is None:
            return None

        refund_lines = [line.copy() for line in lines]
        if not refund_lines:
            raise RefundError("Select at least one product to refund")

        remaining = self.refundable_quantities(sale_id)
        requested: dict[str, int] = {}
        for line in refund_lines:
            if line.quantity <= 0:
                raise RefundError("Refund quantities must be positive", details={"product_id": line.product_id})
            if line.product_id not in remaining:
                raise RefundError(
                    f"Product {line.product_id} is not part of sale {sale.ticket_number}",
                    details={"product_id": line.product_id},
                )
            requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

        over = [
            {"product_id": pid, "requested_quantity": qty, "refundable": remaining[pid]}
            for pid, qty in requested.items()
            if qty > remaining[pid]
        ]
        if over:
            raise RefundError("Refund exceeds the quantity left to refund", details={"items": over})

        refund = Refund(
            id=uuid.uuid4().hex,
            original_sale_id=sale.id,
            ticket_number=sale.ticket_number,
            employee_id=employee_id,
            employee_name=employee_name,
            lines=refund_lines,
            refund_amount=sum((line.total for line in refund_lines), ZERO),
            reason=reason,
            created_at=self._clock(),
        )
        self._refunds.append(refund)
        sale.status = self._status_after_refunds(sale)
        logger.info(
            "Refund %s on ticket %s by %s: %s (%s)",
            refund.id, sale.ticket_number, employee_id, refund.refund_amount, sale.status,
        )
        return refund

    def refunded_quantities(self, sale_id: str) -> dict[str, int]:
        """Cumulative refunded units per product across every refund of the sale."""
        quantities: dict[str, int] = {}
        for refund in self._refunds:
            if refund.original_sale_id != sale_id:
                continue
            for line in refund.lines:
                quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity
        return quantities

    def refunded_discounts(self, sale_id: str) -> dict[str, Decimal]:
        """Cumulative discount already given back per product for the sale."""
        discounts: dict[str, Decimal] = {}
        for refund in self.refunds_for_sale(sale_id):
            for line in refund.lines:
                discounts[line.product_id] = discounts.get(line.product_id, ZERO) + line.discount
        return discounts

    def refundable_quantities(self, sale_id: str) -> dict[str, int]:
        sale = self._find_sale(sale_id)
        if sale is None:
            return {}
        refunded = self.refunded_quantities(sale_id)
        return {
            pid: qty - refunded.get(pid, 0)
            for pid, qty in sale.sold_quantities().items()
        }

    def refunds_for_sale(self, sale_id: str) -> list[Refund]:
        return [r for r in self._refunds if r.original_sale_id == sale_id]

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_sale(self, sale_id: str) -> Sale | None:
        return self._find_sale(sale_id)

    def get_sale_by_ticket(self, ticket_number: str) -> Sale | None:
        ticket_number = (ticket_number or "").strip()
        for sale in self._sales:
            if sale.ticket_number == ticket_number:
                return sale
        return None

    @property
    def sales(self) -> list[Sale]:
        return list(self._sales)

    @property
    def refunds(self) -> list[Refund]:
        return list(self._refunds)

    def sales_between(self, start: datetime, end: datetime) -> list[Sale]:
        return [s for s in self._sales if start <= s.created_at < end]

    def refunds_between(self, start: datetime, end: datetime) -> list[Refund]:
        return [r for r in self._refunds if start <= r.created_at < end]

    def today_sales(self, today: date | None = None) -> list[Sale]:
        day = today or self._clock().date()
        return self.sales_between(*day_window(day))

    def sales_by_employee(self, employee_id: str) -> list[Sale]:
        return [s for s in self._sales if s.employee_id == employee_id]

    # =========================================================================
    # STATE
    # =========================================================================

    def to_state(self) -> dict:
        return {
            "sales": [s.to_dict() for s in self._sales],
            "refunds": [r.to_dict() for r in self._refunds],
        }

    def load_state(self, state: dict) -> None:
        self._sales = [Sale.from_dict(row) for row in state.get("sales") or []]
        self._refunds = [Refund.from_dict(row) for row in state.get("refunds") or []]
        self._last_ticket_millis = max((_ticket_millis(s.ticket_number) for s in self._sales), default=None)

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    def _find_sale(self, sale_id: str) -> Sale | None:
        for sale in self._sales:
            if sale.id == sale_id:
                return sale
        return None

    def _status_after_refunds(self, sale: Sale) -> str:
        refunded = self.refunded_quantities(sale.id)
        if not refunded:
            return SALE_STATUS_COMPLETED
        fully = all(refunded.get(pid, 0) >= qty for pid, qty in sale.sold_quantities().items())
        return SALE_STATUS_REFUNDED if fully else SALE_STATUS_PARTIAL_REFUND

    def _next_ticket_number(self, now: datetime) -> str:
        """
        Tickets are "T" + UTC milliseconds since the epoch; two sales within
        the same millisecond get consecutive numbers.
        """
        millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
        if self._last_ticket_millis is not None:
            millis = max(millis, self._last_ticket_millis + 1)
        self._last_ticket_millis = millis
        return f"T{millis}"


def _ticket_millis(ticket_number: str) -> int:
    try:
        return int(ticket_number.lstrip("T"))
    except ValueError:
        return 0
