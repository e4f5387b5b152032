"""
procurement_engines.reconciliation -- quantity and total arithmetic.

Responsibility:
    The arithmetic that keeps documents internally consistent:

    * line totals (quantity x unit price) and document sums,
    * purchase-order totals (subtotal + tax + shipping - discount),
    * goods-receipt line validation against what is still open on the
      purchase-order line,
    * receipt progress of a purchase order (none / partial / full),
    * acceptance validation (accepted + rejected == received) and the
      resulting goods-receipt outcome.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock.  Services load the
    live rows, call into this module, then persist the results.

Invariants enforced:
    - All arithmetic is Decimal; no float intermediates.
    - A receipt line never takes a PO line past its ordered quantity.
    - A finalized receipt line satisfies accepted + rejected == received with
      neither side negative.
    - ``receipt_progress`` is a pure function of the PO lines, so recomputing
      twice without an intervening change yields the same answer.

Failure modes:
    - ValidationError for a negative PO total or non-positive received qty.
    - ExceedsRemainingQuantityError when a receipt line exceeds the open qty.
    - QuantityInvariantViolation for negative or unbalanced acceptance.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from procurement_engines.tracer import traced_engine
from procurement_kernel.exceptions import (
    ExceedsRemainingQuantityError,
    QuantityInvariantViolation,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return quantity * unit_price


def sum_line_totals(totals: Iterable[Decimal]) -> Decimal:
    return sum(totals, ZERO)


@dataclass(frozen=True)
class DocumentTotals:
    """Derived money fields of a purchase order (or invoice)."""

    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total_amount: Decimal


@traced_engine("reconciliation.totals", "1.0", fingerprint_fields=("line_totals",))
def compute_document_totals(
    *,
    line_totals: Sequence[Decimal],
    tax_amount: Decimal = ZERO,
    shipping_cost: Decimal = ZERO,
    discount_amount: Decimal = ZERO,
) -> DocumentTotals:
    """
    total = subtotal + tax + shipping - discount.

    Raises:
        ValidationError: if the resulting total is negative.
    """
    subtotal = sum_line_totals(line_totals)
    total = subtotal + tax_amount + shipping_cost - discount_amount
    if total < ZERO:
        raise ValidationError("Total amount cannot be negative", field="discount_amount")
    return DocumentTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        shipping_cost=shipping_cost,
        discount_amount=discount_amount,
        total_amount=total,
    )


# ---------------------------------------------------------------------------
# Receiving
# ---------------------------------------------------------------------------


def remaining_quantity(ordered_qty: Decimal, received_qty: Decimal) -> Decimal:
    return ordered_qty - received_qty


def validate_receipt_line(
    po_item_id: UUID,
    received_qty: Decimal,
    ordered_qty: Decimal,
    already_received_qty: Decimal,
) -> None:
    """
    Check one goods-receipt line against the live PO line.

    ``already_received_qty`` must be read from the PO line inside the same
    transaction (and under its row lock), never from a cached value.
    """
    if received_qty <= ZERO:
        raise ValidationError("receivedQty must be greater than zero", field="received_qty")
    remaining = remaining_quantity(ordered_qty, already_received_qty)
    if received_qty > remaining:
        raise ExceedsRemainingQuantityError(po_item_id, received_qty, remaining)


class ReceiptProgress(str, Enum):
    NONE = "NONE"
    PARTIAL = "PARTIAL"
    FULL = "FULL"


@dataclass(frozen=True)
class OrderedLine:
    quantity: Decimal
    received_qty: Decimal


def receipt_progress(lines: Sequence[OrderedLine]) -> ReceiptProgress:
    """FULL if every line is fully received, PARTIAL if any has receipts."""
    if not lines:
        return ReceiptProgress.NONE
    if all(line.received_qty >= line.quantity for line in lines):
        return ReceiptProgress.FULL
    if any(line.received_qty > ZERO for line in lines):
        return ReceiptProgress.PARTIAL
    return ReceiptProgress.NONE


# ---------------------------------------------------------------------------
# Inspection / acceptance
# ---------------------------------------------------------------------------


def validate_acceptance(
    received_qty: Decimal,
    accepted_qty: Decimal,
    rejected_qty: Decimal,
    line_ref: str | None = None,
) -> None:
    if accepted_qty < ZERO or rejected_qty < ZERO:
        raise QuantityInvariantViolation(
            "Accepted and rejected quantities must not be negative",
            line_ref=line_ref,
        )
    if accepted_qty + rejected_qty != received_qty:
        raise QuantityInvariantViolation(
            f"acceptedQty + rejectedQty ({accepted_qty} + {rejected_qty}) "
            f"must equal receivedQty ({received_qty})",
            line_ref=line_ref,
        )


class AcceptanceOutcome(str, Enum):
    ACCEPTED = "ACCEPTED"
    PARTIALLY_ACCEPTED = "PARTIALLY_ACCEPTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class InspectedLine:
    received_qty: Decimal
    accepted_qty: Decimal
    rejected_qty: Decimal


@traced_engine("reconciliation.acceptance", "1.0", fingerprint_fields=("lines",))
def acceptance_outcome(*, lines: Sequence[InspectedLine]) -> AcceptanceOutcome:
    """
    ACCEPTED if every line is fully accepted, REJECTED if nothing was
    accepted, otherwise PARTIALLY_ACCEPTED.  Every line is validated first.
    """
    for idx, line in enumerate(lines):
        validate_acceptance(line.received_qty, line.accepted_qty, line.rejected_qty, line_ref=str(idx))
    if lines and all(line.accepted_qty == line.received_qty for line in lines):
        return AcceptanceOutcome.ACCEPTED
    if all(line.accepted_qty == ZERO for line in lines):
        return AcceptanceOutcome.REJECTED
    return AcceptanceOutcome.PARTIALLY_ACCEPTED
