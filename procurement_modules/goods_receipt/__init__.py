"""
Goods Receipt Module.

Goods receipt notes (GRNs): deliveries recorded against purchase order
lines, inspected, and finalized by accepting or rejecting quantities.
"""

from procurement_modules.goods_receipt.models import (
    AcceptanceLineInput,
    GoodsReceiptInput,
    GoodsReceiptStatus,
    GoodsReceiptUpdate,
    InspectionInput,
    InspectionResult,
    ItemCondition,
    ReceiptLineInput,
    RejectionLineInput,
)
from procurement_modules.goods_receipt.orm import GoodsReceiptItemModel, GoodsReceiptModel
from procurement_modules.goods_receipt.service import GoodsReceiptService
from procurement_modules.goods_receipt.workflows import GOODS_RECEIPT_WORKFLOW

__all__ = [
    "AcceptanceLineInput",
    "GOODS_RECEIPT_WORKFLOW",
    "GoodsReceiptInput",
    "GoodsReceiptItemModel",
    "GoodsReceiptModel",
    "GoodsReceiptService",
    "GoodsReceiptStatus",
    "GoodsReceiptUpdate",
    "InspectionInput",
    "InspectionResult",
    "ItemCondition",
    "ReceiptLineInput",
    "RejectionLineInput",
]
