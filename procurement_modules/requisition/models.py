"""
Requisition domain enums and input payloads.

Quantities and prices in payloads are raw (``str``, ``int`` or ``Decimal``);
the service parses them with ``to_decimal`` so malformed numbers surface as
``InvalidNumberError``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from procurement_kernel.domain.decimals import RawNumber
from procurement_kernel.exceptions import ValidationError


class RequisitionStatus(Enum):
    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class RequisitionPriority(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class RequisitionType(Enum):
    STANDARD = "STANDARD"
    EMERGENCY = "EMERGENCY"


@dataclass(frozen=True)
class RequisitionItemInput:
    item_name: str
    quantity: RawNumber
    estimated_price: RawNumber
    unit: str = "EA"
    description: str | None = None

    def __post_init__(self):
        if not self.item_name or not self.item_name.strip():
            raise ValidationError("item_name is required", field="item_name")


@dataclass(frozen=True)
class RequisitionItemUpdate:
    item_name: str | None = None
    quantity: RawNumber | None = None
    estimated_price: RawNumber | None = None
    unit: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class RequisitionInput:
    title: str
    department: str | None = None
    description: str | None = None
    priority: RequisitionPriority = RequisitionPriority.MEDIUM
    requisition_type: RequisitionType = RequisitionType.STANDARD
    needed_by: datetime | None = None
    items: tuple[RequisitionItemInput, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValidationError("title is required", field="title")


@dataclass(frozen=True)
class RequisitionUpdate:
    title: str | None = None
    department: str | None = None
    description: str | None = None
    priority: RequisitionPriority | None = None
    requisition_type: RequisitionType | None = None
    needed_by: datetime | None = None
