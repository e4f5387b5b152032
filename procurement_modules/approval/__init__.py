"""
Approval Module.

Responsibility
--------------
Approval routing for requisitions: the stage-one approver route, tiered
approval workflows (by requisition type and amount) and time-boxed approver
delegations.

Architecture position
---------------------
**Modules layer**.  Selection logic lives in ``procurement_engines.routing``;
the requisition service drives approvals and calls ``ApprovalRouter`` and
``DelegationService`` inside its own transactions.

Invariants enforced
-------------------
* Inactive users are never routed to.
* At most one active delegation per delegator at any instant -- the newest
  wins; older overlapping delegations are deactivated.
* A delegation's delegator and delegate differ and start < end.

Failure modes
-------------
* ``NoApproverFoundError`` when routing is exhausted.
* ``ValidationError`` for malformed delegations or workflows.
"""

from procurement_modules.approval.models import ApprovalStatus
from procurement_modules.approval.service import (
    ApprovalRouter,
    ApprovalWorkflowService,
    DelegationService,
)

__all__ = [
    "ApprovalRouter",
    "ApprovalStatus",
    "ApprovalWorkflowService",
    "DelegationService",
]
