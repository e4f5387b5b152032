"""
Approval domain enums.

``ApprovalStatus`` is the status of one (requisition, stage) approval row.
"""

from enum import Enum


class ApprovalStatus(Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
