"""
Vendor Invoice Match Workflow.

A three-way match moves an invoice to MATCHED, PARTIAL_MATCH or MISMATCH.
Unmatched, mismatched and disputed invoices may be matched again; a MATCHED
invoice can only be disputed.  Payment status is not a workflow: it is
recomputed from amounts and the due date after every payment.
"""

from procurement_engines.matching import MatchStatus
from procurement_kernel.domain.workflow import Transition, Workflow
from procurement_kernel.logging_config import get_logger

logger = get_logger("modules.invoice.workflows")

_PENDING = MatchStatus.PENDING.value
_MATCHED = MatchStatus.MATCHED.value
_PARTIAL = MatchStatus.PARTIAL_MATCH.value
_MISMATCH = MatchStatus.MISMATCH.value
_DISPUTED = MatchStatus.DISPUTED.value
_REMATCHABLE = (_PENDING, _PARTIAL, _MISMATCH, _DISPUTED)

MATCH_ACTIONS = {
    MatchStatus.MATCHED: "match",
    MatchStatus.PARTIAL_MATCH: "match_partial",
    MatchStatus.MISMATCH: "mismatch",
}

INVOICE_MATCH_WORKFLOW = Workflow(
    name="vendor_invoice",
    description="Vendor invoice three-way match lifecycle",
    initial_state=_PENDING,
    states=(_PENDING, _MATCHED, _PARTIAL, _MISMATCH, _DISPUTED),
    transitions=(
        *(Transition(s, _MATCHED, action="match") for s in _REMATCHABLE),
        *(Transition(s, _PARTIAL, action="match_partial") for s in _REMATCHABLE),
        *(Transition(s, _MISMATCH, action="mismatch") for s in _REMATCHABLE),
        *(Transition(s, _DISPUTED, action="dispute") for s in (_PENDING, _MATCHED, _PARTIAL, _MISMATCH)),
    ),
)

DISCREPANCY_STATES = (_PARTIAL, _MISMATCH, _DISPUTED)

logger.info(
    "invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_MATCH_WORKFLOW.name,
        "state_count": len(INVOICE_MATCH_WORKFLOW.states),
        "transition_count": len(INVOICE_MATCH_WORKFLOW.transitions),
    },
)
