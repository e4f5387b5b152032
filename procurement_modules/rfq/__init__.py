"""
RFQ Module.

Requests for quotation: item lists sent to invited vendors, one priced
response per vendor, evaluation scores and the award of a single response,
which can then be raised as a purchase order.
"""

from procurement_modules.rfq.models import (
    InvitationStatus,
    ResponseEvaluation,
    ResponseLineInput,
    RFQInput,
    RFQItemInput,
    RFQResponseInput,
    RFQResponseStatus,
    RFQStatus,
    RFQUpdate,
)
from procurement_modules.rfq.orm import (
    RFQInvitationModel,
    RFQItemModel,
    RFQModel,
    RFQResponseItemModel,
    RFQResponseModel,
)
from procurement_modules.rfq.service import RFQService
from procurement_modules.rfq.workflows import RFQ_RESPONSE_WORKFLOW, RFQ_WORKFLOW

__all__ = [
    "InvitationStatus",
    "RFQInput",
    "RFQInvitationModel",
    "RFQItemInput",
    "RFQItemModel",
    "RFQModel",
    "RFQResponseInput",
    "RFQResponseItemModel",
    "RFQResponseModel",
    "RFQResponseStatus",
    "RFQService",
    "RFQStatus",
    "RFQUpdate",
    "RFQ_RESPONSE_WORKFLOW",
    "RFQ_WORKFLOW",
    "ResponseEvaluation",
    "ResponseLineInput",
]
