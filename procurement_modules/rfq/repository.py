from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select

from procurement_kernel.repositories.base import BaseRepository
from procurement_modules.rfq.models import RFQStatus
from procurement_modules.rfq.orm import RFQInvitationModel, RFQModel, RFQResponseModel


class RFQRepository(BaseRepository[RFQModel]):
    model = RFQModel
    entity_name = "RFQ"

    def list_by_status(self, status: RFQStatus | None = None) -> Sequence[RFQModel]:
        criteria = [] if status is None else [RFQModel.status == status.value]
        return self.list_where(*criteria, order_by=RFQModel.rfq_number.desc())

    def invited_for_vendor(
        self, vendor_id: UUID, statuses: Sequence[RFQStatus]
    ) -> Sequence[RFQModel]:
        return self.list_where(
            RFQModel.id.in_(
                select(RFQInvitationModel.rfq_id).where(RFQInvitationModel.vendor_id == vendor_id)
            ),
            RFQModel.status.in_([s.value for s in statuses]),
            order_by=RFQModel.response_deadline,
        )


class RFQResponseRepository(BaseRepository[RFQResponseModel]):
    model = RFQResponseModel
    entity_name = "RFQResponse"

    def for_vendor(self, rfq_id: UUID, vendor_id: UUID) -> RFQResponseModel | None:
        rows = self.list_where(
            RFQResponseModel.rfq_id == rfq_id,
            RFQResponseModel.vendor_id == vendor_id,
        )
        return rows[0] if rows else None
