"""Goods receipt domain enums and input payloads."""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from procurement_kernel.domain.decimals import RawNumber


class GoodsReceiptStatus(Enum):
    PENDING_INSPECTION = "PENDING_INSPECTION"
    INSPECTING = "INSPECTING"
    ACCEPTED = "ACCEPTED"
    PARTIALLY_ACCEPTED = "PARTIALLY_ACCEPTED"
    REJECTED = "REJECTED"


class ItemCondition(Enum):
    GOOD = "GOOD"
    DAMAGED = "DAMAGED"
    DEFECTIVE = "DEFECTIVE"
    INCOMPLETE = "INCOMPLETE"


class InspectionResult(Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"
    CONDITIONAL = "CONDITIONAL"


@dataclass(frozen=True)
class ReceiptLineInput:
    po_item_id: UUID
    received_qty: RawNumber
    condition: ItemCondition = ItemCondition.GOOD
    notes: str | None = None


@dataclass(frozen=True)
class GoodsReceiptInput:
    purchase_order_id: UUID
    items: tuple[ReceiptLineInput, ...] = field(default_factory=tuple)
    delivery_note: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class GoodsReceiptUpdate:
    """``items`` (when given) replaces every line through undo-then-redo."""

    items: tuple[ReceiptLineInput, ...] | None = None
    delivery_note: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class InspectionInput:
    result: InspectionResult
    notes: str | None = None


@dataclass(frozen=True)
class AcceptanceLineInput:
    goods_receipt_item_id: UUID
    accepted_qty: RawNumber
    rejected_qty: RawNumber
    notes: str | None = None


@dataclass(frozen=True)
class RejectionLineInput:
    goods_receipt_item_id: UUID
    rejected_qty: RawNumber
    notes: str | None = None
