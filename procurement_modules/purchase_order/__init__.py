"""
Purchase Order Module.

Orders issued to vendors: derived totals, DRAFT-only editing, approval,
dispatch, cancellation, and receipt status driven by goods receipts.
"""

from procurement_modules.purchase_order.models import (
    PurchaseOrderInput,
    PurchaseOrderItemInput,
    PurchaseOrderStatus,
    PurchaseOrderUpdate,
)
from procurement_modules.purchase_order.orm import PurchaseOrderItemModel, PurchaseOrderModel
from procurement_modules.purchase_order.service import PurchaseOrderService
from procurement_modules.purchase_order.workflows import PURCHASE_ORDER_WORKFLOW

__all__ = [
    "PURCHASE_ORDER_WORKFLOW",
    "PurchaseOrderInput",
    "PurchaseOrderItemInput",
    "PurchaseOrderItemModel",
    "PurchaseOrderModel",
    "PurchaseOrderService",
    "PurchaseOrderStatus",
    "PurchaseOrderUpdate",
]
