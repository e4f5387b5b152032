"""Tests for vendor invoice payment status and payment guards."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from procurement_engines.payments import (
    PaymentStatus,
    payment_status,
    remaining_balance,
    validate_payment,
)
from procurement_kernel.exceptions import ValidationError

NOW = datetime(2024, 3, 1, tzinfo=UTC)
TOTAL = Decimal("1000")


class TestPaymentStatus:
    def test_paid_in_full(self):
        assert payment_status(TOTAL, TOTAL, NOW - timedelta(days=5), NOW) is PaymentStatus.PAID

    def test_overdue_wins_over_partially_paid(self):
        assert payment_status(TOTAL, Decimal("10"), NOW - timedelta(seconds=1), NOW) is PaymentStatus.OVERDUE

    def test_due_exactly_now_is_not_overdue(self):
        assert payment_status(TOTAL, Decimal("0"), NOW, NOW) is PaymentStatus.UNPAID

    def test_partially_paid(self):
        assert payment_status(TOTAL, Decimal("400"), NOW + timedelta(days=1), NOW) is PaymentStatus.PARTIALLY_PAID

    def test_unpaid_without_due_date(self):
        assert payment_status(TOTAL, Decimal("0"), None, NOW) is PaymentStatus.UNPAID


class TestValidatePayment:
    def test_valid_payment(self):
        validate_payment(Decimal("400"), TOTAL, Decimal("600"), approved_for_payment=True)
        assert remaining_balance(TOTAL, Decimal("600")) == Decimal("400")

    def test_requires_approval(self):
        with pytest.raises(ValidationError, match="not approved"):
            validate_payment(Decimal("1"), TOTAL, Decimal("0"), approved_for_payment=False)

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValidationError):
            validate_payment(amount, TOTAL, Decimal("0"), approved_for_payment=True)

    def test_cannot_exceed_remaining_balance(self):
        with pytest.raises(ValidationError, match="exceeds remaining balance"):
            validate_payment(Decimal("400.01"), TOTAL, Decimal("600"), approved_for_payment=True)
