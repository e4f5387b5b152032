"""Typed repositories for approval workflows and delegations."""

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from procurement_kernel.repositories.base import BaseRepository
from procurement_modules.approval.orm import ApprovalDelegationModel, ApprovalWorkflowModel


class ApprovalWorkflowRepository(BaseRepository[ApprovalWorkflowModel]):
    model = ApprovalWorkflowModel
    entity_name = "ApprovalWorkflow"

    def active(self) -> Sequence[ApprovalWorkflowModel]:
        return self.list_where(
            ApprovalWorkflowModel.is_active.is_(True),
            order_by=ApprovalWorkflowModel.name,
        )

    def by_name(self, name: str) -> ApprovalWorkflowModel | None:
        return self.session.execute(
            select(ApprovalWorkflowModel).where(ApprovalWorkflowModel.name == name)
        ).scalar_one_or_none()


class ApprovalDelegationRepository(BaseRepository[ApprovalDelegationModel]):
    model = ApprovalDelegationModel
    entity_name = "ApprovalDelegation"

    def active_overlapping(
        self, delegator_id: UUID, start: datetime, end: datetime
    ) -> Sequence[ApprovalDelegationModel]:
        """Active delegations of ``delegator_id`` whose window meets [start, end]."""
        stmt = (
            select(ApprovalDelegationModel)
            .where(
                ApprovalDelegationModel.delegator_id == delegator_id,
                ApprovalDelegationModel.is_active.is_(True),
                ApprovalDelegationModel.start_date <= end,
                ApprovalDelegationModel.end_date >= start,
            )
            .with_for_update()
        )
        return self.session.execute(stmt).scalars().all()

    def active_for_delegator_at(
        self, delegator_id: UUID, at: datetime
    ) -> ApprovalDelegationModel | None:
        return self.session.execute(
            select(ApprovalDelegationModel)
            .where(
                ApprovalDelegationModel.delegator_id == delegator_id,
                ApprovalDelegationModel.is_active.is_(True),
                ApprovalDelegationModel.start_date <= at,
                ApprovalDelegationModel.end_date >= at,
            )
            .order_by(ApprovalDelegationModel.start_date.desc())
            .limit(1)
        ).scalar_one_or_none()

    def active_for_delegate_at(
        self, delegate_id: UUID, at: datetime
    ) -> Sequence[ApprovalDelegationModel]:
        return self.list_where(
            ApprovalDelegationModel.delegate_id == delegate_id,
            ApprovalDelegationModel.is_active.is_(True),
            ApprovalDelegationModel.start_date <= at,
            ApprovalDelegationModel.end_date >= at,
        )

    def for_user(self, user_id: UUID) -> Sequence[ApprovalDelegationModel]:
        return self.list_where(
            (ApprovalDelegationModel.delegator_id == user_id)
            | (ApprovalDelegationModel.delegate_id == user_id),
            order_by=ApprovalDelegationModel.start_date.desc(),
        )
