from decimal import Decimal

import pytest

from cashdesk.services.payment_service import PaymentError, take_payment


class TestTakePayment:
    def test_card_charges_unrounded_total_in_cents(self):
        result = take_payment("card", Decimal("2.3482"), Decimal("2.30"))
        assert result.amount_due == Decimal("2.35")
        assert result.amount_received == Decimal("2.35")
        assert str(result.amount_due) == "2.35"
        assert result.change == 0

    def test_cash_charges_rounded_total_and_gives_change(self):
        result = take_payment("cash", Decimal("2.3482"), Decimal("2.30"), "5")
        assert result.amount_due == Decimal("2.30")
        assert result.amount_received == Decimal("5")
        assert result.change == Decimal("2.70")

    def test_exact_cash(self):
        result = take_payment("cash", Decimal("5.90"), Decimal("5.90"), Decimal("5.90"))
        assert result.change == 0

    def test_short_cash(self):
        with pytest.raises(PaymentError) as exc:
            take_payment("cash", Decimal("5.90"), Decimal("5.90"), "5.00")
        assert exc.value.details["missing"] == "0.90"

    def test_cash_requires_amount(self):
        with pytest.raises(PaymentError):
            take_payment("cash", Decimal("5.90"), Decimal("5.90"))

    def test_unparseable_amount(self):
        with pytest.raises(PaymentError):
            take_payment("cash", Decimal("5.90"), Decimal("5.90"), "five")

    def test_unknown_method(self):
        with pytest.raises(PaymentError):
            take_payment("voucher", Decimal("5.90"), Decimal("5.90"), "10")

    def test_to_dict_uses_strings(self):
        payload = take_payment("cash", Decimal("2.3482"), Decimal("2.30"), "5").to_dict()
        assert payload == {"method": "cash", "amount_due": "2.30", "amount_received": "5", "change": "2.70"}
