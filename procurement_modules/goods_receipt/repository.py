from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select

from procurement_kernel.repositories.base import BaseRepository
from procurement_modules.goods_receipt.models import GoodsReceiptStatus
from procurement_modules.goods_receipt.orm import GoodsReceiptModel
from procurement_modules.purchase_order.orm import PurchaseOrderModel


class GoodsReceiptRepository(BaseRepository[GoodsReceiptModel]):
    model = GoodsReceiptModel
    entity_name = "GoodsReceipt"

    def list_filtered(
        self,
        purchase_order_id: UUID | None = None,
        status: GoodsReceiptStatus | None = None,
        vendor_id: UUID | None = None,
    ) -> Sequence[GoodsReceiptModel]:
        criteria = []
        if purchase_order_id is not None:
            criteria.append(GoodsReceiptModel.purchase_order_id == purchase_order_id)
        if status is not None:
            criteria.append(GoodsReceiptModel.status == status.value)
        if vendor_id is not None:
            criteria.append(
                GoodsReceiptModel.purchase_order_id.in_(
                    select(PurchaseOrderModel.id).where(PurchaseOrderModel.vendor_id == vendor_id)
                )
            )
        return self.list_where(*criteria, order_by=GoodsReceiptModel.grn_number.desc())

    def latest_finalized_for_order(self, purchase_order_id: UUID, limit: int) -> Sequence[GoodsReceiptModel]:
        """
        The ``limit`` most recent ACCEPTED / PARTIALLY_ACCEPTED receipts for
        an order.  ``grn_number`` breaks ties between equal timestamps.
        """
        stmt = (
            select(GoodsReceiptModel)
            .where(
                GoodsReceiptModel.purchase_order_id == purchase_order_id,
                GoodsReceiptModel.status.in_(
                    [GoodsReceiptStatus.ACCEPTED.value, GoodsReceiptStatus.PARTIALLY_ACCEPTED.value]
                ),
            )
            .order_by(GoodsReceiptModel.received_at.desc(), GoodsReceiptModel.grn_number.desc())
            .limit(limit)
        )
        return self.session.execute(stmt).scalars().all()
