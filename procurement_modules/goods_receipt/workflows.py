"""
Goods Receipt Workflow.

PENDING_INSPECTION -> INSPECTING -> ACCEPTED | PARTIALLY_ACCEPTED | REJECTED.
Acceptance and rejection are also allowed straight from PENDING_INSPECTION.
The acceptance outcome picks the action: ``accept_full``, ``accept_partial``
or ``accept_none``.  Finalized receipts are never reopened.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger
from procurement_modules.goods_receipt.models import GoodsReceiptStatus

logger = get_logger("modules.goods_receipt.workflows")

LINES_BALANCED = Guard(
    name="lines_balanced",
    description="accepted_qty + rejected_qty == received_qty on every line",
)

_PENDING = GoodsReceiptStatus.PENDING_INSPECTION.value
_INSPECTING = GoodsReceiptStatus.INSPECTING.value
_ACCEPTED = GoodsReceiptStatus.ACCEPTED.value
_PARTIAL = GoodsReceiptStatus.PARTIALLY_ACCEPTED.value
_REJECTED = GoodsReceiptStatus.REJECTED.value
_OPEN = (_PENDING, _INSPECTING)

GOODS_RECEIPT_WORKFLOW = Workflow(
    name="goods_receipt",
    description="Goods receipt inspection lifecycle",
    initial_state=_PENDING,
    states=(_PENDING, _INSPECTING, _ACCEPTED, _PARTIAL, _REJECTED),
    transitions=(
        *(Transition(s, s, action="edit") for s in _OPEN),
        *(Transition(s, _INSPECTING, action="inspect") for s in _OPEN),
        *(Transition(s, _ACCEPTED, action="accept_full", guard=LINES_BALANCED) for s in _OPEN),
        *(Transition(s, _PARTIAL, action="accept_partial", guard=LINES_BALANCED) for s in _OPEN),
        *(Transition(s, _REJECTED, action="accept_none", guard=LINES_BALANCED) for s in _OPEN),
        *(Transition(s, _REJECTED, action="reject", guard=LINES_BALANCED) for s in _OPEN),
    ),
    terminal_states=(_ACCEPTED, _PARTIAL, _REJECTED),
)

FINALIZED_STATES = frozenset(GOODS_RECEIPT_WORKFLOW.terminal_states)

logger.info(
    "goods_receipt_workflow_registered",
    extra={
        "workflow_name": GOODS_RECEIPT_WORKFLOW.name,
        "state_count": len(GOODS_RECEIPT_WORKFLOW.states),
        "transition_count": len(GOODS_RECEIPT_WORKFLOW.transitions),
        "initial_state": GOODS_RECEIPT_WORKFLOW.initial_state,
    },
)
