"""
SQLAlchemy ORM persistence models for requisitions.

Invariants enforced
-------------------
* ``requisition_number`` is unique.
* ``total_estimate`` equals the sum of the items' ``total_price``; the
  requisition service recomputes it in the same transaction as every item
  change.
* At most one approval row per (requisition, stage).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, TrackedBase


class RequisitionModel(TrackedBase):
    """An internal request to purchase goods or services."""

    __tablename__ = "requisitions"

    __table_args__ = (
        UniqueConstraint("requisition_number", name="uq_requisition_number"),
        Index("idx_requisition_requester", "requested_by_id"),
        Index("idx_requisition_status", "status"),
        Index("idx_requisition_department", "department"),
    )

    requisition_number: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    requested_by_id: Mapped[UUID] = mapped_column(nullable=False)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="MEDIUM")
    requisition_type: Mapped[str] = mapped_column(String(20), nullable=False, default="STANDARD")
    needed_by: Mapped[datetime | None]
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="DRAFT")
    total_estimate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    current_stage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_stages: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    workflow_id: Mapped[UUID | None]
    submitted_at: Mapped[datetime | None]
    approved_at: Mapped[datetime | None]
    cancelled_at: Mapped[datetime | None]
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    items: Mapped[list["RequisitionItemModel"]] = relationship(
        back_populates="requisition",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RequisitionItemModel.line_number",
    )

    approvals: Mapped[list["RequisitionApprovalModel"]] = relationship(
        back_populates="requisition",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RequisitionApprovalModel.stage",
    )

    def approval_for_stage(self, stage: int) -> "RequisitionApprovalModel | None":
        for approval in self.approvals:
            if approval.stage == stage:
                return approval
        return None

    def __repr__(self) -> str:
        return f"<RequisitionModel {self.requisition_number} {self.status}>"


class RequisitionItemModel(Base):
    __tablename__ = "requisition_items"

    __table_args__ = (
        Index("idx_requisition_item_requisition", "requisition_id"),
    )

    requisition_id: Mapped[UUID] = mapped_column(
        ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")
    estimated_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)

    requisition: Mapped[RequisitionModel] = relationship(back_populates="items")


class RequisitionApprovalModel(Base):
    """
    One approval decision per (requisition, stage).

    ``approver_id`` is the routed approver; ``acted_by_id`` is who actually
    decided (the approver or an active delegate).
    """

    __tablename__ = "requisition_approvals"

    __table_args__ = (
        UniqueConstraint("requisition_id", "stage", name="uq_requisition_approval_stage"),
        Index("idx_requisition_approval_approver", "approver_id", "status"),
    )

    requisition_id: Mapped[UUID] = mapped_column(
        ForeignKey("requisitions.id", ondelete="CASCADE"), nullable=False
    )
    stage: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_id: Mapped[UUID] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    acted_by_id: Mapped[UUID | None]
    acted_at: Mapped[datetime | None]
    comments: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    escalated_from_id: Mapped[UUID | None]

    requisition: Mapped[RequisitionModel] = relationship(back_populates="approvals")

    def __repr__(self) -> str:
        return f"<RequisitionApprovalModel stage={self.stage} {self.status}>"
