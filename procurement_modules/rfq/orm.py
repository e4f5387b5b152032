"""
SQLAlchemy ORM persistence models for requests for quotation.

Invariants enforced
-------------------
* ``rfq_number`` is unique.
* One invitation and at most one response per (rfq, vendor).
* ``RFQResponseModel.total_amount`` equals the sum of its lines'
  ``total_price`` (RFQ item quantity x quoted unit price).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, TrackedBase


class RFQModel(TrackedBase):
    __tablename__ = "rfqs"

    __table_args__ = (
        UniqueConstraint("rfq_number", name="uq_rfq_number"),
        Index("idx_rfq_status", "status"),
    )

    rfq_number: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    requisition_id: Mapped[UUID | None] = mapped_column(ForeignKey("requisitions.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="DRAFT")
    response_deadline: Mapped[datetime] = mapped_column(nullable=False)
    validity_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    delivery_terms: Mapped[str | None] = mapped_column(String(500), nullable=True)
    delivery_location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    selected_response_id: Mapped[UUID | None]
    published_at: Mapped[datetime | None]
    closed_at: Mapped[datetime | None]

    items: Mapped[list["RFQItemModel"]] = relationship(
        back_populates="rfq",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RFQItemModel.line_number",
    )
    invitations: Mapped[list["RFQInvitationModel"]] = relationship(
        back_populates="rfq",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    responses: Mapped[list["RFQResponseModel"]] = relationship(
        back_populates="rfq",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def invitation_for(self, vendor_id: UUID) -> "RFQInvitationModel | None":
        for invitation in self.invitations:
            if invitation.vendor_id == vendor_id:
                return invitation
        return None

    def __repr__(self) -> str:
        return f"<RFQModel {self.rfq_number} {self.status}>"


class RFQItemModel(Base):
    __tablename__ = "rfq_items"

    __table_args__ = (
        Index("idx_rfq_item_rfq", "rfq_id"),
    )

    rfq_id: Mapped[UUID] = mapped_column(ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")

    rfq: Mapped[RFQModel] = relationship(back_populates="items")


class RFQInvitationModel(Base):
    __tablename__ = "rfq_invitations"

    __table_args__ = (
        UniqueConstraint("rfq_id", "vendor_id", name="uq_rfq_invitation_vendor"),
        Index("idx_rfq_invitation_vendor", "vendor_id"),
    )

    rfq_id: Mapped[UUID] = mapped_column(ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="INVITED")
    invited_at: Mapped[datetime] = mapped_column(nullable=False)
    responded_at: Mapped[datetime | None]

    rfq: Mapped[RFQModel] = relationship(back_populates="invitations")


class RFQResponseModel(Base):
    __tablename__ = "rfq_responses"

    __table_args__ = (
        UniqueConstraint("rfq_id", "vendor_id", name="uq_rfq_response_vendor"),
    )

    rfq_id: Mapped[UUID] = mapped_column(ForeignKey("rfqs.id", ondelete="CASCADE"), nullable=False)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    submitted_by_id: Mapped[UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="SUBMITTED")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    delivery_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    validity_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    technical_score: Mapped[Decimal | None]
    commercial_score: Mapped[Decimal | None]
    overall_score: Mapped[Decimal | None]
    evaluation_notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(nullable=False)
    evaluated_at: Mapped[datetime | None]

    rfq: Mapped[RFQModel] = relationship(back_populates="responses")
    items: Mapped[list["RFQResponseItemModel"]] = relationship(
        back_populates="response",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<RFQResponseModel vendor={self.vendor_id} {self.status} {self.total_amount}>"


class RFQResponseItemModel(Base):
    __tablename__ = "rfq_response_items"

    __table_args__ = (
        Index("idx_rfq_response_item_response", "response_id"),
    )

    response_id: Mapped[UUID] = mapped_column(
        ForeignKey("rfq_responses.id", ondelete="CASCADE"), nullable=False
    )
    rfq_item_id: Mapped[UUID] = mapped_column(ForeignKey("rfq_items.id"), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)
    lead_time_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    response: Mapped[RFQResponseModel] = relationship(back_populates="items")
    rfq_item: Mapped[RFQItemModel] = relationship(lazy="selectin")
