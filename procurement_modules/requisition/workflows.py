"""
Requisition Workflow.

DRAFT -> PENDING_APPROVAL -> (stage by stage) -> APPROVED -> COMPLETED,
with REJECTED from any approval stage and CANCELLED from DRAFT or
PENDING_APPROVAL.  Items are editable only in DRAFT.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger
from procurement_modules.requisition.models import RequisitionStatus

logger = get_logger("modules.requisition.workflows")

HAS_ITEMS = Guard(
    name="has_items",
    description="Requisition has at least one item",
)

APPROVER_RESOLVABLE = Guard(
    name="approver_resolvable",
    description="An active approver exists for the next stage",
)

FINAL_STAGE = Guard(
    name="final_stage",
    description="The approving stage is the workflow's last stage",
)

_DRAFT = RequisitionStatus.DRAFT.value
_PENDING = RequisitionStatus.PENDING_APPROVAL.value
_APPROVED = RequisitionStatus.APPROVED.value
_REJECTED = RequisitionStatus.REJECTED.value
_CANCELLED = RequisitionStatus.CANCELLED.value
_COMPLETED = RequisitionStatus.COMPLETED.value

REQUISITION_WORKFLOW = Workflow(
    name="requisition",
    description="Purchase requisition lifecycle",
    initial_state=_DRAFT,
    states=(_DRAFT, _PENDING, _APPROVED, _REJECTED, _CANCELLED, _COMPLETED),
    transitions=(
        Transition(_DRAFT, _DRAFT, action="edit"),
        Transition(_DRAFT, _PENDING, action="submit", guard=HAS_ITEMS),
        Transition(_PENDING, _PENDING, action="approve_stage", guard=APPROVER_RESOLVABLE),
        Transition(_PENDING, _APPROVED, action="approve_final", guard=FINAL_STAGE),
        Transition(_PENDING, _REJECTED, action="reject"),
        Transition(_PENDING, _PENDING, action="escalate"),
        Transition(_PENDING, _PENDING, action="request_info"),
        Transition(_DRAFT, _CANCELLED, action="cancel"),
        Transition(_PENDING, _CANCELLED, action="cancel"),
        Transition(_APPROVED, _COMPLETED, action="complete"),
    ),
    terminal_states=(_REJECTED, _CANCELLED, _COMPLETED),
)

CLOSED_STATES = frozenset({_CANCELLED, _COMPLETED})

logger.info(
    "requisition_workflow_registered",
    extra={
        "workflow_name": REQUISITION_WORKFLOW.name,
        "state_count": len(REQUISITION_WORKFLOW.states),
        "transition_count": len(REQUISITION_WORKFLOW.transitions),
        "initial_state": REQUISITION_WORKFLOW.initial_state,
    },
)
