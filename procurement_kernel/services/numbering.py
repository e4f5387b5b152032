"""
DocumentNumberService -- human-readable sequential document codes.

Responsibility:
    Produce codes of the form ``{PREFIX}-{YEAR}-{NNNN}`` (``REQ-2024-0007``,
    ``PO-2024-0012``, ``GRN-...``, ``RFQ-...``, ``VND-...``).  The counter is
    the highest sequence already issued for the prefix and year, plus one, so
    deleting a DRAFT document never causes its successor's code to be reissued.

Architecture position:
    Kernel > Services.  Called inside the creating service's transaction.

Known weakness:
    ``max + 1`` is not safe against two creators in the same year running
    concurrently; both may read the same maximum.  The owning tables carry a
    unique constraint on the number column, so the loser fails with an
    IntegrityError and its transaction rolls back.  No retry is attempted.
    TODO: replace with a locked counter row once concurrent creation volume
    justifies it.
"""

from enum import Enum

from sqlalchemy import Integer, cast, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.numbering")


class DocumentPrefix(Enum):
    REQUISITION = "REQ"
    PURCHASE_ORDER = "PO"
    GOODS_RECEIPT = "GRN"
    RFQ = "RFQ"
    VENDOR = "VND"


def format_document_number(prefix: DocumentPrefix, year: int, sequence: int) -> str:
    return f"{prefix.value}-{year}-{sequence:04d}"


class DocumentNumberService:
    """Allocates the next document code for a prefix within the current year."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def next_number(self, prefix: DocumentPrefix, column: InstrumentedAttribute) -> str:
        """
        Args:
            prefix: Document family.
            column: The mapped column holding codes for that family, e.g.
                ``PurchaseOrderModel.po_number``.
        """
        year = self._clock.now().year
        stem = f"{prefix.value}-{year}-"
        # the suffix may outgrow four digits, so compare it as an integer
        suffix = cast(func.substr(column, len(stem) + 1), Integer)
        highest = self._session.execute(
            select(func.max(suffix)).where(column.like(f"{stem}%"))
        ).scalar_one()
        number = format_document_number(prefix, year, (highest or 0) + 1)
        logger.debug(
            "document_number_allocated",
            extra={"prefix": prefix.value, "year": year, "number": number},
        )
        return number
