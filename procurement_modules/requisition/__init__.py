"""
Requisition Module.

Responsibility
--------------
Internal purchase requests: DRAFT editing with a derived total estimate,
submission into (optionally multi-stage) approval, delegate-aware approval
and rejection, escalation, cancellation, and completion when a purchase
order is raised.

Invariants enforced
-------------------
* ``total_estimate`` always equals the sum of the items' ``total_price``.
* Items are mutable only while the requisition is DRAFT.
* One approval row per (requisition, stage).
"""

from procurement_modules.requisition.models import (
    RequisitionInput,
    RequisitionItemInput,
    RequisitionItemUpdate,
    RequisitionPriority,
    RequisitionStatus,
    RequisitionType,
    RequisitionUpdate,
)
from procurement_modules.requisition.orm import (
    RequisitionApprovalModel,
    RequisitionItemModel,
    RequisitionModel,
)
from procurement_modules.requisition.service import RequisitionService
from procurement_modules.requisition.workflows import REQUISITION_WORKFLOW

__all__ = [
    "REQUISITION_WORKFLOW",
    "RequisitionApprovalModel",
    "RequisitionInput",
    "RequisitionItemInput",
    "RequisitionItemModel",
    "RequisitionItemUpdate",
    "RequisitionModel",
    "RequisitionPriority",
    "RequisitionService",
    "RequisitionStatus",
    "RequisitionType",
    "RequisitionUpdate",
]
