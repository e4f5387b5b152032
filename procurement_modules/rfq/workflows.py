"""
RFQ Workflows.

RFQ: DRAFT -> PUBLISHED -> EVALUATING -> AWARDED; DRAFT / PUBLISHED /
EVALUATING may be CLOSED; DRAFT / PUBLISHED may be CANCELLED.  Vendors are
invited in DRAFT or PUBLISHED and respond only while PUBLISHED.

Response: SUBMITTED -> UNDER_REVIEW / SHORTLISTED -> SELECTED | REJECTED.
Awarding selects one response and rejects every sibling.
"""

from procurement_kernel.domain.workflow import Guard, Transition, Workflow
from procurement_kernel.logging_config import get_logger
from procurement_modules.rfq.models import RFQResponseStatus, RFQStatus

logger = get_logger("modules.rfq.workflows")

DEADLINE_IN_FUTURE = Guard(
    name="deadline_in_future",
    description="response_deadline is after now",
)

BEFORE_DEADLINE = Guard(
    name="before_deadline",
    description="now is not after response_deadline and the vendor is invited",
)

_DRAFT = RFQStatus.DRAFT.value
_PUBLISHED = RFQStatus.PUBLISHED.value
_EVALUATING = RFQStatus.EVALUATING.value
_AWARDED = RFQStatus.AWARDED.value
_CLOSED = RFQStatus.CLOSED.value
_CANCELLED = RFQStatus.CANCELLED.value

RFQ_WORKFLOW = Workflow(
    name="rfq",
    description="Request for quotation lifecycle",
    initial_state=_DRAFT,
    states=(_DRAFT, _PUBLISHED, _EVALUATING, _AWARDED, _CLOSED, _CANCELLED),
    transitions=(
        Transition(_DRAFT, _DRAFT, action="edit"),
        Transition(_DRAFT, _PUBLISHED, action="publish", guard=DEADLINE_IN_FUTURE),
        Transition(_DRAFT, _DRAFT, action="invite"),
        Transition(_PUBLISHED, _PUBLISHED, action="invite"),
        Transition(_PUBLISHED, _PUBLISHED, action="respond", guard=BEFORE_DEADLINE),
        Transition(_PUBLISHED, _EVALUATING, action="evaluate"),
        Transition(_EVALUATING, _EVALUATING, action="evaluate"),
        Transition(_EVALUATING, _AWARDED, action="award"),
        Transition(_DRAFT, _CLOSED, action="close"),
        Transition(_PUBLISHED, _CLOSED, action="close"),
        Transition(_EVALUATING, _CLOSED, action="close"),
        Transition(_DRAFT, _CANCELLED, action="cancel"),
        Transition(_PUBLISHED, _CANCELLED, action="cancel"),
    ),
    terminal_states=(_AWARDED, _CLOSED, _CANCELLED),
)

_SUBMITTED = RFQResponseStatus.SUBMITTED.value
_REVIEW = RFQResponseStatus.UNDER_REVIEW.value
_SHORTLISTED = RFQResponseStatus.SHORTLISTED.value
_SELECTED = RFQResponseStatus.SELECTED.value
_REJECTED = RFQResponseStatus.REJECTED.value
_OPEN_RESPONSES = (_SUBMITTED, _REVIEW, _SHORTLISTED)

RFQ_RESPONSE_WORKFLOW = Workflow(
    name="rfq_response",
    description="Vendor quotation lifecycle",
    initial_state=_SUBMITTED,
    states=(_SUBMITTED, _REVIEW, _SHORTLISTED, _SELECTED, _REJECTED),
    transitions=(
        *(Transition(s, s, action="edit") for s in _OPEN_RESPONSES),
        *(Transition(s, _REVIEW, action="review") for s in _OPEN_RESPONSES),
        *(Transition(s, _SHORTLISTED, action="shortlist") for s in _OPEN_RESPONSES),
        *(Transition(s, _SELECTED, action="select") for s in _OPEN_RESPONSES),
        *(Transition(s, _REJECTED, action="reject") for s in _OPEN_RESPONSES),
    ),
    terminal_states=(_SELECTED, _REJECTED),
)

for _workflow in (RFQ_WORKFLOW, RFQ_RESPONSE_WORKFLOW):
    logger.info(
        "rfq_workflow_registered",
        extra={
            "workflow_name": _workflow.name,
            "state_count": len(_workflow.states),
            "transition_count": len(_workflow.transitions),
            "initial_state": _workflow.initial_state,
        },
    )
