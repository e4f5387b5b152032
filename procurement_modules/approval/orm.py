"""
SQLAlchemy ORM persistence models for approval routing.

Responsibility
--------------
Persist configurable approval workflows (tiered by amount and requisition
type) and approver delegations.

Invariants enforced
-------------------
* ``(workflow_id, stage_number)`` is unique.
* A stage names either an approver role or a specific approver.
* Money thresholds use ``Decimal`` (Numeric(38,9)).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_engines.routing import StageDef, WorkflowDef
from procurement_kernel.db.base import Base, TrackedBase
from procurement_kernel.domain.capabilities import Role


class ApprovalWorkflowModel(TrackedBase):
    """An approval workflow applied to requisitions within an amount range."""

    __tablename__ = "approval_workflows"

    __table_args__ = (
        UniqueConstraint("name", name="uq_approval_workflow_name"),
        Index("idx_approval_workflow_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    requisition_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    min_amount: Mapped[Decimal | None]
    max_amount: Mapped[Decimal | None]
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    stages: Mapped[list["ApprovalWorkflowStageModel"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ApprovalWorkflowStageModel.stage_number",
    )

    def to_def(self) -> WorkflowDef:
        return WorkflowDef(
            workflow_id=self.id,
            name=self.name,
            stages=tuple(s.to_def() for s in self.stages),
            requisition_type=self.requisition_type,
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<ApprovalWorkflowModel {self.name}>"


class ApprovalWorkflowStageModel(Base):
    __tablename__ = "approval_workflow_stages"

    __table_args__ = (
        UniqueConstraint("workflow_id", "stage_number", name="uq_workflow_stage"),
    )

    workflow_id: Mapped[UUID] = mapped_column(
        ForeignKey("approval_workflows.id", ondelete="CASCADE"), nullable=False
    )
    stage_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    approver_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    approver_id: Mapped[UUID | None]
    escalate_to_id: Mapped[UUID | None]

    workflow: Mapped[ApprovalWorkflowModel] = relationship(back_populates="stages")

    def to_def(self) -> StageDef:
        return StageDef(
            stage_number=self.stage_number,
            name=self.name,
            approver_role=Role(self.approver_role) if self.approver_role else None,
            approver_id=self.approver_id,
            escalate_to_id=self.escalate_to_id,
        )


class ApprovalDelegationModel(TrackedBase):
    """
    A time-boxed hand-over of one approver's authority to another user.

    Guarantees:
        - ``delegator_id != delegate_id``.
        - ``start_date < end_date``.
        - At most one active delegation per delegator at any instant
          (enforced by the delegation service on create).
    """

    __tablename__ = "approval_delegations"

    __table_args__ = (
        Index("idx_delegation_delegator_active", "delegator_id", "is_active"),
        Index("idx_delegation_delegate_active", "delegate_id", "is_active"),
    )

    delegator_id: Mapped[UUID] = mapped_column(nullable=False)
    delegate_id: Mapped[UUID] = mapped_column(nullable=False)
    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ApprovalDelegationModel {self.delegator_id} -> {self.delegate_id} "
            f"active={self.is_active}>"
        )
