"""
Typed Exception Hierarchy for the Procurement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP controllers, batch jobs, tests) must react to failures by TYPE
and CODE, never by parsing message text.  Every exception below:

  1. Has a ``code`` class attribute (machine-readable, API-safe)
  2. Stores its context as attributes (document ids, quantities, statuses)
  3. Inherits from ProcurementError so the whole family can be caught at once

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ProcurementError (base)
    |
    +-- ValidationError
    |   +-- InvalidNumberError
    |
    +-- NotFoundError
    |
    +-- ForbiddenError
    |
    +-- InvalidStateError
    |   +-- AlreadyClosedError
    |   +-- ResponseExistsError
    |
    +-- QuantityInvariantViolation
    |   +-- ExceedsRemainingQuantityError
    |
    +-- NoApproverFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                          | When Raised
------------------------------|------------------------------------------------
VALIDATION_ERROR              | Malformed input, missing required field
INVALID_NUMBER                | Non-numeric or non-finite decimal input
NOT_FOUND                     | Referenced document does not exist
FORBIDDEN                     | Permission predicate failed ("Not allowed")
INVALID_STATE                 | Operation illegal for the document's status
ALREADY_CLOSED                | Cancel on a CANCELLED/COMPLETED document
RESPONSE_EXISTS               | Vendor already responded to this RFQ
QUANTITY_INVARIANT_VIOLATION  | Negative qty, accepted + rejected != received
EXCEEDS_REMAINING_QUANTITY    | Receipt would exceed the PO line's open qty
NO_APPROVER_FOUND             | Routing exhausted every candidate approver

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        grn = receipts.create_receipt(...)
    except ExceedsRemainingQuantityError as e:
        return {"error": e.code, "po_item_id": str(e.po_item_id),
                "remaining": str(e.remaining_qty)}
    except ProcurementError as e:
        return {"error": e.code, "message": str(e)}

ForbiddenError deliberately carries no detail beyond "Not allowed".
"""

from decimal import Decimal
from uuid import UUID


class ProcurementError(Exception):
    """
    Base exception for all procurement errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_ERROR"


# Input validation


class ValidationError(ProcurementError):
    """Malformed numeric/date input or a missing required field."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidNumberError(ValidationError):
    """A monetary or quantity scalar could not be parsed as a finite decimal."""

    code: str = "INVALID_NUMBER"

    def __init__(self, raw_value: object, field: str | None = None):
        self.raw_value = raw_value
        super().__init__(f"Invalid number: {raw_value!r}", field=field)


# Lookup


class NotFoundError(ProcurementError):
    """Referenced document does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: UUID | str):
        self.entity = entity
        self.entity_id = str(entity_id)
        super().__init__(f"{entity} not found: {entity_id}")


# Permission


class ForbiddenError(ProcurementError):
    """The caller's role or identity does not permit the operation."""

    code: str = "FORBIDDEN"

    def __init__(self):
        super().__init__("Not allowed")


# State machine


class InvalidStateError(ProcurementError):
    """Operation is illegal for the document's current status."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        message: str,
        entity: str | None = None,
        current_status: str | None = None,
        action: str | None = None,
    ):
        self.entity = entity
        self.current_status = current_status
        self.action = action
        super().__init__(message)


class AlreadyClosedError(InvalidStateError):
    """Cancel requested on a document that is already CANCELLED or COMPLETED."""

    code: str = "ALREADY_CLOSED"

    def __init__(self, entity: str, entity_id: UUID | str, current_status: str):
        self.entity_id = str(entity_id)
        super().__init__(
            f"{entity} {entity_id} is already {current_status}",
            entity=entity,
            current_status=current_status,
            action="cancel",
        )


class ResponseExistsError(InvalidStateError):
    """A vendor attempted to submit a second response to the same RFQ."""

    code: str = "RESPONSE_EXISTS"

    def __init__(self, rfq_id: UUID, vendor_id: UUID):
        self.rfq_id = str(rfq_id)
        self.vendor_id = str(vendor_id)
        super().__init__(
            f"Response already exists for vendor {vendor_id} on RFQ {rfq_id}. "
            "Use the update path.",
            entity="RFQResponse",
            action="respond",
        )


# Quantities


class QuantityInvariantViolation(ProcurementError):
    """A receipt or acceptance would break the quantity invariants."""

    code: str = "QUANTITY_INVARIANT_VIOLATION"

    def __init__(self, message: str, line_ref: str | None = None):
        self.line_ref = line_ref
        super().__init__(message)


class ExceedsRemainingQuantityError(QuantityInvariantViolation):
    """Received quantity exceeds what is still open on the PO line."""

    code: str = "EXCEEDS_REMAINING_QUANTITY"

    def __init__(
        self,
        po_item_id: UUID,
        requested_qty: Decimal,
        remaining_qty: Decimal,
    ):
        self.po_item_id = str(po_item_id)
        self.requested_qty = requested_qty
        self.remaining_qty = remaining_qty
        super().__init__(
            f"Received quantity {requested_qty} exceeds remaining "
            f"{remaining_qty} for PO item {po_item_id}",
            line_ref=str(po_item_id),
        )


# Routing


class NoApproverFoundError(ProcurementError):
    """The approval routing resolver exhausted every candidate."""

    code: str = "NO_APPROVER_FOUND"

    def __init__(self, department: str | None, stage: int = 1):
        self.department = department
        self.stage = stage
        super().__init__(
            f"No active approver found for stage {stage}"
            + (f" in department {department}" if department else "")
        )
