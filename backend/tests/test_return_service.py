from decimal import Decimal

import pytest

from cashdesk.models import CartLine, PAYMENT_CASH, SALE_STATUS_PARTIAL_REFUND, SALE_STATUS_REFUNDED
from cashdesk.services.return_service import (
    EmptyRefundReasonError,
    build_refund_line,
    build_refund_lines,
    refund_sale,
)
from cashdesk.services.sales_service import RefundError

from conftest import add_product


@pytest.fixture
def sold(catalog, ledger, clock):
    add_product(catalog, "A", "2.50", stock=7)
    add_product(catalog, "B", "4.20", stock=9)
    a = CartLine(product_id="a", code="A", description="Product A", quantity=3, unit_price=Decimal("2.50"))
    a.apply_discount(Decimal("2.50"))
    b = CartLine(product_id="b", code="B", description="Product B", quantity=1, unit_price=Decimal("4.20"))
    b.reset_discount()
    return ledger.complete_sale("u1", "Ana", "T001", [a, b], PAYMENT_CASH, clock.now)


def _refund(ledger, catalog, sale, quantities, reason="Damaged"):
    return refund_sale(
        ledger, catalog,
        ticket_number=sale.ticket_number,
        employee_id="u1",
        employee_name="Ana",
        quantities=quantities,
        reason=reason,
    )


class TestRefundLines:
    def test_discount_share_is_proportional(self, sold):
        line = build_refund_line(sold.line_for("a"), 1)
        assert line.discount == Decimal("0.83")
        assert line.total == Decimal("1.67")

    def test_full_quantity_returns_whole_discount(self, sold):
        line = build_refund_line(sold.line_for("a"), 3)
        assert line.discount == Decimal("2.50")
        assert line.total == Decimal("5.00")

    def test_last_unit_takes_remaining_discount(self, sold):
        line = build_refund_line(sold.line_for("a"), 1, already_refunded=2, discount_refunded=Decimal("1.66"))
        assert line.discount == Decimal("0.84")
        assert line.total == Decimal("1.66")

    def test_zero_quantities_are_skipped(self, sold):
        lines = build_refund_lines(sold, {"a": 0, "b": 1})
        assert [line.product_id for line in lines] == ["b"]

    def test_unknown_product(self, sold):
        with pytest.raises(RefundError):
            build_refund_lines(sold, {"z": 1})

    def test_more_than_sold(self, sold):
        with pytest.raises(RefundError):
            build_refund_lines(sold, {"b": 2})


class TestRefundSale:
    def test_blank_reason_is_rejected_first(self, ledger, catalog, sold):
        with pytest.raises(EmptyRefundReasonError):
            _refund(ledger, catalog, sold, {"a": 1}, reason="   ")
        with pytest.raises(EmptyRefundReasonError):
            refund_sale(
                ledger, catalog,
                ticket_number="T0", employee_id="u1", employee_name="Ana",
                quantities={"a": 1}, reason=None,
            )
        assert ledger.refunds == []

    def test_unknown_ticket_returns_none(self, ledger, catalog):
        result = refund_sale(
            ledger, catalog,
            ticket_number="T0", employee_id="u1", employee_name="Ana",
            quantities={"a": 1}, reason="Damaged",
        )
        assert result is None
        assert ledger.refunds == []

    def test_empty_selection(self, ledger, catalog, sold):
        with pytest.raises(RefundError):
            _refund(ledger, catalog, sold, {"a": 0})

    def test_stock_is_restored(self, ledger, catalog, sold):
        refund = _refund(ledger, catalog, sold, {"a": 2, "b": 1})
        assert refund.refund_amount == Decimal("3.33") + Decimal("4.20")
        assert catalog.get("a").stock == 9
        assert catalog.get("b").stock == 10
        assert sold.status == SALE_STATUS_PARTIAL_REFUND

    def test_full_refund_by_quantities(self, ledger, catalog, sold):
        _refund(ledger, catalog, sold, {"a": 1})
        _refund(ledger, catalog, sold, {"a": 1})
        _refund(ledger, catalog, sold, {"a": 1, "b": 1})
        assert sold.status == SALE_STATUS_REFUNDED

    def test_partial_refunds_add_up_to_line_total(self, ledger, catalog, sold):
        refunds = [_refund(ledger, catalog, sold, {"a": 1}) for _ in range(3)]
        assert [r.refund_amount for r in refunds] == [Decimal("1.67"), Decimal("1.67"), Decimal("1.66")]
        assert sum(r.refund_amount for r in refunds) == sold.line_for("a").total
        assert ledger.refunded_discounts(sold.id) == {"a": Decimal("2.50")}

    def test_failed_refund_leaves_stock(self, ledger, catalog, sold):
        _refund(ledger, catalog, sold, {"b": 1})
        with pytest.raises(RefundError):
            _refund(ledger, catalog, sold, {"b": 1})
        assert catalog.get("b").stock == 10

    def test_missing_catalog_product_still_refunds(self, ledger, clock):
        from cashdesk.services.catalog_service import CatalogStore

        line = CartLine(product_id="gone", code="G", description="", quantity=1, unit_price=Decimal("1.00"))
        line.reset_discount()
        sale = ledger.complete_sale("u1", "Ana", "T001", [line], PAYMENT_CASH, clock.now)
        refund = _refund(ledger, CatalogStore(clock=clock), sale, {"gone": 1})
        assert refund is not None
        assert sale.status == SALE_STATUS_REFUNDED
