"""
procurement_engines.payments -- vendor invoice payment status.

``payment_status`` is a pure function of (total, paid, due date, now) and is
recomputed after every recorded payment:

    PAID            paid >= total
    OVERDUE         otherwise, due date strictly before now
    PARTIALLY_PAID  otherwise, paid > 0
    UNPAID          otherwise

``validate_payment`` guards a new payment: the invoice must be approved for
payment, the amount strictly positive and no larger than what remains.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from procurement_kernel.exceptions import ValidationError

ZERO = Decimal("0")


class PaymentStatus(str, Enum):
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


def payment_status(
    total_amount: Decimal,
    paid_amount: Decimal,
    due_date: datetime | None,
    now: datetime,
) -> PaymentStatus:
    if paid_amount >= total_amount:
        return PaymentStatus.PAID
    if due_date is not None and due_date < now:
        return PaymentStatus.OVERDUE
    if paid_amount > ZERO:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.UNPAID


def remaining_balance(total_amount: Decimal, paid_amount: Decimal) -> Decimal:
    return total_amount - paid_amount


def validate_payment(
    amount: Decimal,
    total_amount: Decimal,
    paid_amount: Decimal,
    approved_for_payment: bool,
) -> None:
    if not approved_for_payment:
        raise ValidationError("Invoice is not approved for payment", field="invoice_id")
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero", field="amount")
    remaining = remaining_balance(total_amount, paid_amount)
    if amount > remaining:
        raise ValidationError(
            f"Payment amount {amount} exceeds remaining balance {remaining}",
            field="amount",
        )
