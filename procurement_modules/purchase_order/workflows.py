"""
Purchase Order Workflow.

DRAFT -> (PENDING_APPROVAL) -> APPROVED -> SENT -> PARTIALLY_RECEIVED
-> RECEIVED -> COMPLETED.  Receipt-driven moves (``receive_partial`` /
``receive_full``) are requested only by ``recompute_receipt_status``; a
goods-receipt update can take a RECEIVED order back to PARTIALLY_RECEIVED.
Every open status may be cancelled.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger
from procurement_modules.purchase_order.models import PurchaseOrderStatus

logger = get_logger("modules.purchase_order.workflows")

ALL_LINES_RECEIVED = Guard(
    name="all_lines_received",
    description="Every PO line has received_qty >= quantity",
)

SOME_LINES_RECEIVED = Guard(
    name="some_lines_received",
    description="At least one PO line has received_qty > 0",
)

_DRAFT = PurchaseOrderStatus.DRAFT.value
_PENDING = PurchaseOrderStatus.PENDING_APPROVAL.value
_APPROVED = PurchaseOrderStatus.APPROVED.value
_SENT = PurchaseOrderStatus.SENT.value
_PARTIAL = PurchaseOrderStatus.PARTIALLY_RECEIVED.value
_RECEIVED = PurchaseOrderStatus.RECEIVED.value
_COMPLETED = PurchaseOrderStatus.COMPLETED.value
_CANCELLED = PurchaseOrderStatus.CANCELLED.value

RECEIVABLE_STATES = frozenset({_APPROVED, _SENT, _PARTIAL, _RECEIVED})
CLOSED_STATES = frozenset({_CANCELLED, _COMPLETED})

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order lifecycle",
    initial_state=_DRAFT,
    states=(_DRAFT, _PENDING, _APPROVED, _SENT, _PARTIAL, _RECEIVED, _COMPLETED, _CANCELLED),
    transitions=(
        Transition(_DRAFT, _DRAFT, action="edit"),
        Transition(_DRAFT, _PENDING, action="submit"),
        Transition(_DRAFT, _APPROVED, action="approve"),
        Transition(_PENDING, _APPROVED, action="approve"),
        Transition(_APPROVED, _SENT, action="send"),
        *(
            Transition(s, _PARTIAL, action="receive_partial", guard=SOME_LINES_RECEIVED)
            for s in (_APPROVED, _SENT, _PARTIAL, _RECEIVED)
        ),
        *(
            Transition(s, _RECEIVED, action="receive_full", guard=ALL_LINES_RECEIVED)
            for s in (_APPROVED, _SENT, _PARTIAL, _RECEIVED)
        ),
        Transition(_RECEIVED, _COMPLETED, action="complete"),
        *(
            Transition(s, _CANCELLED, action="cancel")
            for s in (_DRAFT, _PENDING, _APPROVED, _SENT, _PARTIAL, _RECEIVED)
        ),
    ),
    terminal_states=(_COMPLETED, _CANCELLED),
)

logger.info(
    "purchase_order_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)
