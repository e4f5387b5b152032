from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select

from procurement_kernel.repositories.base import BaseRepository
from procurement_modules.purchase_order.models import PurchaseOrderStatus
from procurement_modules.purchase_order.orm import PurchaseOrderItemModel, PurchaseOrderModel


class PurchaseOrderRepository(BaseRepository[PurchaseOrderModel]):
    model = PurchaseOrderModel
    entity_name = "PurchaseOrder"

    def list_filtered(
        self,
        statuses: Sequence[PurchaseOrderStatus] | None = None,
        vendor_id: UUID | None = None,
    ) -> Sequence[PurchaseOrderModel]:
        criteria = []
        if statuses:
            criteria.append(PurchaseOrderModel.status.in_([s.value for s in statuses]))
        if vendor_id is not None:
            criteria.append(PurchaseOrderModel.vendor_id == vendor_id)
        return self.list_where(*criteria, order_by=PurchaseOrderModel.po_number.desc())

    def lock_items(self, item_ids: Sequence[UUID]) -> dict[UUID, PurchaseOrderItemModel]:
        """
        Load PO lines under SELECT ... FOR UPDATE so concurrent goods
        receipts against the same line serialize on the increment.
        """
        if not item_ids:
            return {}
        rows = self.session.execute(
            select(PurchaseOrderItemModel)
            .where(PurchaseOrderItemModel.id.in_(list(item_ids)))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {row.id: row for row in rows}
