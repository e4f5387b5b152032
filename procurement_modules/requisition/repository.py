from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import and_, select

from procurement_kernel.repositories.base import BaseRepository
from procurement_modules.approval.models import ApprovalStatus
from procurement_modules.requisition.models import RequisitionStatus
from procurement_modules.requisition.orm import RequisitionApprovalModel, RequisitionModel


class RequisitionRepository(BaseRepository[RequisitionModel]):
    model = RequisitionModel
    entity_name = "Requisition"

    def list_filtered(
        self,
        status: RequisitionStatus | None = None,
        requested_by_id: UUID | None = None,
    ) -> Sequence[RequisitionModel]:
        criteria = []
        if status is not None:
            criteria.append(RequisitionModel.status == status.value)
        if requested_by_id is not None:
            criteria.append(RequisitionModel.requested_by_id == requested_by_id)
        return self.list_where(*criteria, order_by=RequisitionModel.requisition_number.desc())

    def pending_for_approvers(self, approver_ids: Iterable[UUID]) -> Sequence[RequisitionModel]:
        """Requisitions whose current stage awaits one of ``approver_ids``."""
        stmt = (
            select(RequisitionModel)
            .join(
                RequisitionApprovalModel,
                and_(
                    RequisitionApprovalModel.requisition_id == RequisitionModel.id,
                    RequisitionApprovalModel.stage == RequisitionModel.current_stage,
                ),
            )
            .where(
                RequisitionModel.status == RequisitionStatus.PENDING_APPROVAL.value,
                RequisitionApprovalModel.status == ApprovalStatus.PENDING.value,
                RequisitionApprovalModel.approver_id.in_(list(approver_ids)),
            )
            .order_by(RequisitionModel.requisition_number)
        )
        return self.session.execute(stmt).scalars().unique().all()
