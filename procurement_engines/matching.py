"""
procurement_engines.matching -- three-way match of invoice, order and receipts.

Responsibility:
    Reconcile a vendor invoice's lines against its purchase order's lines and
    the quantities accepted on that order's goods receipts, then decide
    whether the invoice is payable within a price tolerance.

    ``calculate_variances``:
        For each invoice line, resolve the PO line by ``po_item_id`` when the
        id is given and belongs to the order; otherwise fall back to a
        case-insensitive, whitespace-trimmed comparison of the invoice line
        description with the PO item name.  Unresolved lines are reported as
        unmatched and contribute no numeric variance.

            price_variance    = sum((invoice_unit - po_unit) * invoice_qty)
            quantity_variance = sum(invoice_qty - accepted_qty_for_po_line)

        Status is MATCHED when nothing is unmatched and quantity variance is
        zero, otherwise PARTIAL_MATCH.

    ``evaluate_match``:
            price_pct  = |price_variance| / max(po_total, 1) * 100
            is_matched = price_pct <= tolerance and qty variance == 0
                         and base status == MATCHED

        A MATCHED base that fails tolerance becomes MISMATCH; a PARTIAL_MATCH
        base stays PARTIAL_MATCH.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The invoice matching
    service loads the three aggregates and persists the verdict.

Invariants enforced:
    - Decimal arithmetic throughout; variances are signed.
    - Identical inputs produce identical outputs.

Known risk:
    The description fallback is heuristic.  Two PO lines whose names differ
    only in case or surrounding whitespace are indistinguishable and the
    first one wins.  Invoices should carry ``po_item_id`` wherever possible.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from procurement_engines.tracer import traced_engine
from procurement_kernel.logging_config import get_logger

logger = get_logger("engines.matching")

ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


class MatchStatus(str, Enum):
    """Match status of a vendor invoice."""

    PENDING = "PENDING"
    MATCHED = "MATCHED"
    PARTIAL_MATCH = "PARTIAL_MATCH"
    MISMATCH = "MISMATCH"
    DISPUTED = "DISPUTED"


class LineResolution(str, Enum):
    BY_ID = "BY_ID"
    BY_NAME = "BY_NAME"
    UNMATCHED = "UNMATCHED"


@dataclass(frozen=True)
class InvoiceLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    po_item_id: UUID | None = None


@dataclass(frozen=True)
class OrderLine:
    po_item_id: UUID
    item_name: str
    quantity: Decimal
    unit_price: Decimal


@dataclass(frozen=True)
class LineVariance:
    description: str
    resolution: LineResolution
    po_item_id: UUID | None
    price_variance: Decimal
    quantity_variance: Decimal


@dataclass(frozen=True)
class VarianceResult:
    price_variance: Decimal
    quantity_variance: Decimal
    status: MatchStatus
    lines: tuple[LineVariance, ...]
    unmatched_descriptions: tuple[str, ...]

    @property
    def has_unmatched(self) -> bool:
        return bool(self.unmatched_descriptions)

    @property
    def notes(self) -> str | None:
        if not self.unmatched_descriptions:
            return None
        return "Unmatched invoice lines: " + ", ".join(self.unmatched_descriptions)


@dataclass(frozen=True)
class MatchVerdict:
    variances: VarianceResult
    price_variance_percent: Decimal
    tolerance_percent: Decimal
    is_matched: bool
    status: MatchStatus


def _normalize_name(name: str | None) -> str:
    return (name or "").strip().lower()


def resolve_order_line(
    line: InvoiceLine,
    order_lines: Sequence[OrderLine],
) -> tuple[OrderLine | None, LineResolution]:
    if line.po_item_id is not None:
        for candidate in order_lines:
            if candidate.po_item_id == line.po_item_id:
                return candidate, LineResolution.BY_ID
    wanted = _normalize_name(line.description)
    for candidate in order_lines:
        if _normalize_name(candidate.item_name) == wanted:
            return candidate, LineResolution.BY_NAME
    return None, LineResolution.UNMATCHED


@traced_engine(
    "matching.variances",
    "1.0",
    fingerprint_fields=("invoice_lines", "order_lines", "accepted_by_po_item"),
)
def calculate_variances(
    *,
    invoice_lines: Sequence[InvoiceLine],
    order_lines: Sequence[OrderLine],
    accepted_by_po_item: Mapping[UUID, Decimal],
) -> VarianceResult:
    price_variance = ZERO
    quantity_variance = ZERO
    results: list[LineVariance] = []
    unmatched: list[str] = []

    for line in invoice_lines:
        order_line, resolution = resolve_order_line(line, order_lines)
        if order_line is None:
            unmatched.append(line.description)
            results.append(
                LineVariance(
                    description=line.description,
                    resolution=resolution,
                    po_item_id=None,
                    price_variance=ZERO,
                    quantity_variance=ZERO,
                )
            )
            continue

        accepted = accepted_by_po_item.get(order_line.po_item_id, ZERO)
        line_price = (line.unit_price - order_line.unit_price) * line.quantity
        line_qty = line.quantity - accepted
        price_variance += line_price
        quantity_variance += line_qty
        results.append(
            LineVariance(
                description=line.description,
                resolution=resolution,
                po_item_id=order_line.po_item_id,
                price_variance=line_price,
                quantity_variance=line_qty,
            )
        )

    status = (
        MatchStatus.MATCHED
        if not unmatched and quantity_variance == ZERO
        else MatchStatus.PARTIAL_MATCH
    )

    if unmatched:
        logger.info(
            "matching_unmatched_invoice_lines",
            extra={"unmatched_count": len(unmatched)},
        )

    return VarianceResult(
        price_variance=price_variance,
        quantity_variance=quantity_variance,
        status=status,
        lines=tuple(results),
        unmatched_descriptions=tuple(unmatched),
    )


def price_variance_percent(price_variance: Decimal, po_total: Decimal) -> Decimal:
    denominator = max(po_total, ONE)
    return abs(price_variance) / denominator * HUNDRED


@traced_engine("matching.verdict", "1.0", fingerprint_fields=("po_total", "tolerance_percent"))
def evaluate_match(
    *,
    variances: VarianceResult,
    po_total: Decimal,
    tolerance_percent: Decimal,
) -> MatchVerdict:
    pct = price_variance_percent(variances.price_variance, po_total)
    is_matched = (
        pct <= tolerance_percent
        and variances.quantity_variance == ZERO
        and variances.status == MatchStatus.MATCHED
    )
    if is_matched:
        status = MatchStatus.MATCHED
    elif variances.status == MatchStatus.MATCHED:
        status = MatchStatus.MISMATCH
    else:
        status = variances.status

    return MatchVerdict(
        variances=variances,
        price_variance_percent=pct,
        tolerance_percent=tolerance_percent,
        is_matched=is_matched,
        status=status,
    )
