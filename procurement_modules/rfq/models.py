"""RFQ domain enums and input payloads."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

from procurement_kernel.domain.decimals import RawNumber
from procurement_kernel.exceptions import ValidationError


class RFQStatus(Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    EVALUATING = "EVALUATING"
    AWARDED = "AWARDED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class RFQResponseStatus(Enum):
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    SHORTLISTED = "SHORTLISTED"
    SELECTED = "SELECTED"
    REJECTED = "REJECTED"


class InvitationStatus(Enum):
    INVITED = "INVITED"
    RESPONDED = "RESPONDED"


@dataclass(frozen=True)
class RFQItemInput:
    item_name: str
    quantity: RawNumber
    unit: str = "EA"
    description: str | None = None

    def __post_init__(self):
        if not self.item_name or not self.item_name.strip():
            raise ValidationError("item_name is required", field="item_name")


@dataclass(frozen=True)
class RFQInput:
    title: str
    response_deadline: datetime
    items: tuple[RFQItemInput, ...] = field(default_factory=tuple)
    description: str | None = None
    requisition_id: UUID | None = None
    validity_days: int | None = None
    delivery_terms: str | None = None
    delivery_location: str | None = None

    def __post_init__(self):
        if not self.title or not self.title.strip():
            raise ValidationError("title is required", field="title")


@dataclass(frozen=True)
class RFQUpdate:
    """DRAFT-only changes.  ``items`` replaces the whole line set when given."""

    title: str | None = None
    description: str | None = None
    response_deadline: datetime | None = None
    validity_days: int | None = None
    delivery_terms: str | None = None
    delivery_location: str | None = None
    items: tuple[RFQItemInput, ...] | None = None


@dataclass(frozen=True)
class ResponseLineInput:
    rfq_item_id: UUID
    unit_price: RawNumber
    lead_time_days: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RFQResponseInput:
    items: tuple[ResponseLineInput, ...]
    delivery_days: int | None = None
    validity_days: int | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ResponseEvaluation:
    response_id: UUID
    technical_score: RawNumber | None = None
    commercial_score: RawNumber | None = None
    overall_score: RawNumber | None = None
    notes: str | None = None
    status: RFQResponseStatus = RFQResponseStatus.UNDER_REVIEW

    def __post_init__(self):
        if self.status not in (RFQResponseStatus.UNDER_REVIEW, RFQResponseStatus.SHORTLISTED):
            raise ValidationError(
                "Evaluation may only mark a response UNDER_REVIEW or SHORTLISTED",
                field="status",
            )
