from datetime import date
from decimal import Decimal

from cashdesk.models import CartLine, PAYMENT_CARD, PAYMENT_CASH
from cashdesk.services import reporting_service


def _line(product_id, qty, price):
    line = CartLine(product_id=product_id, code=product_id.upper(), description="", quantity=qty, unit_price=Decimal(price))
    line.reset_discount()
    return line


def test_daily_summary(ledger, clock):
    first = ledger.complete_sale("u1", "Ana", "T001", [_line("a", 2, "1.00"), _line("b", 1, "5.00")], PAYMENT_CASH, clock.now)
    ledger.complete_sale("u2", "Luis", "T001", [_line("a", 3, "1.00")], PAYMENT_CARD, clock.now)
    ledger.process_refund(first.id, "u1", "Ana", [_line("b", 1, "5.00")], "Damaged")

    clock.advance(days=1)
    ledger.complete_sale("u1", "Ana", "T001", [_line("c", 9, "1.00")], PAYMENT_CARD, clock.now)

    summary = reporting_service.daily_summary(ledger, date(2026, 6, 15))

    assert summary["sale_count"] == 2
    assert summary["items_sold"] == 6
    assert Decimal(summary["revenue"]) == Decimal("8.26") + Decimal("3.54")
    assert summary["refund_count"] == 1
    assert Decimal(summary["refunded"]) == Decimal("5.00")
    assert [row["code"] for row in summary["top_products"]] == ["A", "B"]
    assert summary["top_products"][0]["quantity"] == 5
    assert set(summary["by_payment_method"]) == {"cash", "card"}


def test_empty_day(ledger):
    summary = reporting_service.daily_summary(ledger, date(2026, 1, 1))
    assert summary["sale_count"] == 0
    assert Decimal(summary["revenue"]) == 0
    assert summary["top_products"] == []


def test_employee_summary(ledger, clock):
    ledger.complete_sale("u1", "Ana", "T001", [_line("a", 2, "1.00")], PAYMENT_CASH, clock.now)
    ledger.complete_sale("u2", "Luis", "T001", [_line("a", 1, "1.00")], PAYMENT_CASH, clock.now)
    summary = reporting_service.employee_summary(ledger, "u1")
    assert summary["sale_count"] == 1
    assert summary["items_sold"] == 2
    assert Decimal(summary["revenue"]) == Decimal("2.36")
