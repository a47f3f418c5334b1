"""
Reporting Service

Read-only summaries over the sales ledger for the day-end screen.
"""

from __future__ import annotations

from datetime import date

from ..pricing import ZERO
from ..time_utils import day_window
from .sales_service import SalesLedger


def daily_summary(ledger: SalesLedger, day: date, top: int = 5) -> dict:
    """
    Revenue, ticket count, units sold, refunds and best sellers for one day.

    Revenue is the sum of recorded (unrounded) sale totals; refunds are
    reported separately, not netted into revenue.
    """
    start, end = day_window(day)
    sales = ledger.sales_between(start, end)
    refunds = ledger.refunds_between(start, end)

    revenue = sum((s.total for s in sales), ZERO)
    refunded = sum((r.refund_amount for r in refunds), ZERO)

    by_product: dict[str, dict] = {}
    items_sold = 0
    for sale in sales:
        for line in sale.lines:
            items_sold += line.quantity
            row = by_product.setdefault(line.product_id, {
                "product_id": line.product_id,
                "code": line.code,
                "description": line.description,
                "quantity": 0,
                "revenue": ZERO,
            })
            row["quantity"] += line.quantity
            row["revenue"] += line.total

    best = sorted(by_product.values(), key=lambda r: (-r["quantity"], r["code"]))[:top]

    return {
        "date": day.isoformat(),
        "sale_count": len(sales),
        "items_sold": items_sold,
        "revenue": str(revenue),
        "refund_count": len(refunds),
        "refunded": str(refunded),
        "by_payment_method": _by_payment_method(sales),
        "top_products": [{**r, "revenue": str(r["revenue"])} for r in best],
    }


def employee_summary(ledger: SalesLedger, employee_id: str) -> dict:
    sales = ledger.sales_by_employee(employee_id)
    return {
        "employee_id": employee_id,
        "sale_count": len(sales),
        "revenue": str(sum((s.total for s in sales), ZERO)),
        "items_sold": sum(line.quantity for s in sales for line in s.lines),
    }


def _by_payment_method(sales) -> dict:
    totals: dict[str, object] = {}
    for sale in sales:
        totals[sale.payment_method] = totals.get(sale.payment_method, ZERO) + sale.total
    return {method: str(amount) for method, amount in totals.items()}
