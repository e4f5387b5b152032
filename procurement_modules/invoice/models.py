"""
Vendor invoice domain enums and input payloads.

Match and payment statuses are owned by the engines
(``procurement_engines.matching.MatchStatus`` and
``procurement_engines.payments.PaymentStatus``) and re-exported here.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from procurement_engines.matching import MatchStatus
from procurement_engines.payments import PaymentStatus
from procurement_kernel.domain.decimals import RawNumber
from procurement_kernel.exceptions import ValidationError

__all__ = [
    "InvoiceInput",
    "InvoiceItemInput",
    "MatchStatus",
    "PaymentInput",
    "PaymentMethod",
    "PaymentStatus",
]


class PaymentMethod(Enum):
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    CASH = "CASH"
    MOBILE_MONEY = "MOBILE_MONEY"


@dataclass(frozen=True)
class InvoiceItemInput:
    description: str
    quantity: RawNumber
    unit_price: RawNumber
    po_item_id: UUID | None = None

    def __post_init__(self):
        if not self.description or not self.description.strip():
            raise ValidationError("description is required", field="description")


@dataclass(frozen=True)
class InvoiceInput:
    invoice_number: str
    vendor_id: UUID
    invoice_date: datetime
    items: tuple[InvoiceItemInput, ...] = field(default_factory=tuple)
    purchase_order_id: UUID | None = None
    due_date: datetime | None = None
    tax_amount: RawNumber | None = None
    notes: str | None = None

    def __post_init__(self):
        if not self.invoice_number or not self.invoice_number.strip():
            raise ValidationError("invoice_number is required", field="invoice_number")


@dataclass(frozen=True)
class PaymentInput:
    amount: RawNumber
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    paid_at: datetime | None = None
    reference: str | None = None
    notes: str | None = None
