"""
Unit tests for the typed exception hierarchy: codes and carried context.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from procurement_kernel.exceptions import (
    AlreadyClosedError,
    ExceedsRemainingQuantityError,
    ForbiddenError,
    InvalidNumberError,
    InvalidStateError,
    NoApproverFoundError,
    NotFoundError,
    ProcurementError,
    QuantityInvariantViolation,
    ResponseExistsError,
    ValidationError,
)


class TestCodes:
    @pytest.mark.parametrize(
        "exc, code",
        [
            (ValidationError("bad", field="x"), "VALIDATION_ERROR"),
            (InvalidNumberError("abc"), "INVALID_NUMBER"),
            (NotFoundError("Vendor", uuid4()), "NOT_FOUND"),
            (ForbiddenError(), "FORBIDDEN"),
            (InvalidStateError("nope"), "INVALID_STATE"),
            (AlreadyClosedError("PurchaseOrder", uuid4(), "CANCELLED"), "ALREADY_CLOSED"),
            (ResponseExistsError(uuid4(), uuid4()), "RESPONSE_EXISTS"),
            (QuantityInvariantViolation("unbalanced"), "QUANTITY_INVARIANT_VIOLATION"),
            (
                ExceedsRemainingQuantityError(uuid4(), Decimal("5"), Decimal("2")),
                "EXCEEDS_REMAINING_QUANTITY",
            ),
            (NoApproverFoundError("IT"), "NO_APPROVER_FOUND"),
        ],
    )
    def test_code_and_base(self, exc, code):
        assert exc.code == code
        assert isinstance(exc, ProcurementError)


class TestContext:
    def test_exceeds_remaining_carries_quantities(self):
        item_id = uuid4()
        exc = ExceedsRemainingQuantityError(item_id, Decimal("41"), Decimal("40"))
        assert exc.po_item_id == str(item_id)
        assert exc.requested_qty == Decimal("41")
        assert exc.remaining_qty == Decimal("40")
        assert isinstance(exc, QuantityInvariantViolation)

    def test_already_closed_is_an_invalid_state(self):
        exc = AlreadyClosedError("RFQ", "abc", "CLOSED")
        assert isinstance(exc, InvalidStateError)
        assert exc.current_status == "CLOSED"
        assert exc.action == "cancel"

    def test_invalid_number_keeps_raw_value(self):
        exc = InvalidNumberError("1.2.3", field="quantity")
        assert exc.raw_value == "1.2.3"
        assert exc.field == "quantity"
        assert "1.2.3" in str(exc)

    def test_no_approver_message(self):
        assert "department IT" in str(NoApproverFoundError("IT", stage=2))
        assert "department" not in str(NoApproverFoundError(None))
