"""Purchase order domain enums and input payloads."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from procurement_kernel.domain.decimals import RawNumber
from procurement_kernel.exceptions import ValidationError


class PurchaseOrderStatus(Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    SENT = "SENT"
    PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    RECEIVED = "RECEIVED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class PurchaseOrderItemInput:
    item_name: str
    quantity: RawNumber
    unit_price: RawNumber
    unit: str = "EA"
    description: str | None = None

    def __post_init__(self):
        if not self.item_name or not self.item_name.strip():
            raise ValidationError("item_name is required", field="item_name")


@dataclass(frozen=True)
class PurchaseOrderInput:
    vendor_id: UUID
    items: tuple[PurchaseOrderItemInput, ...] = field(default_factory=tuple)
    requisition_id: UUID | None = None
    rfq_response_id: UUID | None = None
    tax_amount: RawNumber | None = None
    discount_amount: RawNumber | None = None
    shipping_cost: RawNumber | None = None
    expected_delivery: datetime | None = None
    delivery_address: str | None = None
    payment_terms: int = 30
    notes: str | None = None


@dataclass(frozen=True)
class PurchaseOrderUpdate:
    """DRAFT-only changes.  ``items`` replaces the whole line set when given."""

    items: tuple[PurchaseOrderItemInput, ...] | None = None
    tax_amount: RawNumber | None = None
    discount_amount: RawNumber | None = None
    shipping_cost: RawNumber | None = None
    expected_delivery: datetime | None = None
    delivery_address: str | None = None
    payment_terms: int | None = None
    notes: str | None = None
