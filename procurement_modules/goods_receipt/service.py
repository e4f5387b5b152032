"""
Goods Receipt Module Service (``procurement_modules.goods_receipt.service``).

Responsibility
--------------
Records deliveries against purchase orders and finalizes them through
inspection, acceptance or rejection.  Every receipt line moves the parent
PO line's ``received_qty`` in the same transaction, after which the PO's
receipt status is recomputed.

Architecture position
---------------------
**Modules layer**.  Line validation and acceptance outcome come from
``procurement_engines.reconciliation``; the PO status recompute is
``PurchaseOrderService.recompute_receipt_status``.

Invariants enforced
-------------------
* ``received_qty <= ordered - already_received`` checked against the live
  PO line read under ``SELECT ... FOR UPDATE``.
* PO ``received_qty`` == sum of receipt line quantities for that line.
* Updating lines is a two-phase adjustment: every old line is first
  decremented from its PO line, the lines are replaced, then every new line
  is validated and incremented.  No diffing.
* Finalized lines satisfy ``accepted + rejected == received``; finalized
  receipts are never updated, re-inspected or re-accepted.

Failure modes
-------------
* ``ExceedsRemainingQuantityError`` / ``QuantityInvariantViolation``.
* ``InvalidStateError`` -- PO not receivable, receipt already finalized.
* ``ValidationError`` -- no lines, unknown PO line / receipt line ids.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_config.schema import ProcurementConfig
from procurement_engines.reconciliation import (
    AcceptanceOutcome,
    InspectedLine,
    ZERO,
    acceptance_outcome,
    validate_acceptance,
    validate_receipt_line,
)
from procurement_kernel.domain.capabilities import Actor, Capability, Role, require_capability
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.decimals import to_decimal, to_positive_decimal
from procurement_kernel.exceptions import (
    ForbiddenError,
    InvalidStateError,
    QuantityInvariantViolation,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.numbering import DocumentNumberService, DocumentPrefix
from procurement_modules.goods_receipt.models import (
    AcceptanceLineInput,
    GoodsReceiptInput,
    GoodsReceiptStatus,
    GoodsReceiptUpdate,
    InspectionInput,
    ReceiptLineInput,
    RejectionLineInput,
)
from procurement_modules.goods_receipt.orm import GoodsReceiptItemModel, GoodsReceiptModel
from procurement_modules.goods_receipt.repository import GoodsReceiptRepository
from procurement_modules.goods_receipt.workflows import GOODS_RECEIPT_WORKFLOW
from procurement_modules.purchase_order.orm import PurchaseOrderItemModel, PurchaseOrderModel
from procurement_modules.purchase_order.repository import PurchaseOrderRepository
from procurement_modules.purchase_order.service import PurchaseOrderService
from procurement_modules.purchase_order.workflows import RECEIVABLE_STATES

logger = get_logger("modules.goods_receipt.service")

_OUTCOME_ACTIONS = {
    AcceptanceOutcome.ACCEPTED: "accept_full",
    AcceptanceOutcome.PARTIALLY_ACCEPTED: "accept_partial",
    AcceptanceOutcome.REJECTED: "accept_none",
}


class GoodsReceiptService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProcurementConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProcurementConfig.with_defaults()
        self._receipts = GoodsReceiptRepository(session)
        self._orders = PurchaseOrderRepository(session)
        self._order_service = PurchaseOrderService(session, self._clock)
        self._numbers = DocumentNumberService(session, self._clock)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _assert_open(receipt: GoodsReceiptModel, action: str) -> None:
        if GOODS_RECEIPT_WORKFLOW.is_terminal(receipt.status):
            raise InvalidStateError(
                f"Goods receipt {receipt.grn_number} is already finalized",
                entity="goods_receipt",
                current_status=receipt.status,
                action=action,
            )

    def _lock_order(self, purchase_order_id: UUID) -> PurchaseOrderModel:
        order = self._orders.get_for_update(purchase_order_id)
        if order.status not in RECEIVABLE_STATES:
            raise InvalidStateError(
                f"Cannot receive goods for purchase order {order.po_number} in status {order.status}",
                entity="purchase_order",
                current_status=order.status,
                action="receive",
            )
        return order

    def _receive_lines(
        self,
        order: PurchaseOrderModel,
        lines: Sequence[ReceiptLineInput],
        locked: dict[UUID, PurchaseOrderItemModel],
    ) -> list[GoodsReceiptItemModel]:
        """Validate each line against its live PO line, then increment it."""
        if not lines:
            raise ValidationError("Goods receipt must have at least one item", field="items")
        created = []
        for line in lines:
            po_item = locked.get(line.po_item_id)
            if po_item is None or po_item.purchase_order_id != order.id:
                raise ValidationError(f"Invalid po_item_id: {line.po_item_id}", field="po_item_id")
            received = to_positive_decimal(line.received_qty, field="received_qty")
            validate_receipt_line(po_item.id, received, po_item.quantity, po_item.received_qty)
            po_item.received_qty = po_item.received_qty + received
            created.append(
                GoodsReceiptItemModel(
                    po_item_id=po_item.id,
                    item_name=po_item.item_name,
                    ordered_qty=po_item.quantity,
                    received_qty=received,
                    unit=po_item.unit,
                    condition=line.condition.value,
                    notes=line.notes,
                )
            )
        return created

    @staticmethod
    def _release_lines(
        receipt: GoodsReceiptModel, locked: dict[UUID, PurchaseOrderItemModel]
    ) -> None:
        for item in receipt.items:
            po_item = locked[item.po_item_id]
            po_item.received_qty = po_item.received_qty - item.received_qty

    def _assert_can_view(self, actor: Actor, receipt: GoodsReceiptModel) -> None:
        if actor.role is Role.VENDOR:
            order = self._orders.get_or_raise(receipt.purchase_order_id)
            if actor.vendor_id is None or actor.vendor_id != order.vendor_id:
                raise ForbiddenError()
            return
        require_capability(actor, Capability.MANAGE_RECEIVING)

    # -------------------------------------------------------------------------
    # Create / update
    # -------------------------------------------------------------------------

    def create_receipt(self, actor: Actor, payload: GoodsReceiptInput) -> GoodsReceiptModel:
        require_capability(actor, Capability.MANAGE_RECEIVING)
        if not payload.items:
            raise ValidationError("Goods receipt must have at least one item", field="items")

        try:
            logger.info("goods_receipt_create_started", extra={
                "purchase_order_id": str(payload.purchase_order_id),
                "line_count": len(payload.items),
            })
            order = self._lock_order(payload.purchase_order_id)
            locked = self._orders.lock_items([line.po_item_id for line in payload.items])
            lines = self._receive_lines(order, payload.items, locked)

            receipt = self._receipts.add(
                GoodsReceiptModel(
                    grn_number=self._numbers.next_number(
                        DocumentPrefix.GOODS_RECEIPT, GoodsReceiptModel.grn_number
                    ),
                    purchase_order_id=order.id,
                    status=GOODS_RECEIPT_WORKFLOW.initial_state,
                    received_by_id=actor.user_id,
                    received_at=self._clock.now(),
                    delivery_note=payload.delivery_note,
                    notes=payload.notes,
                    created_by_id=actor.user_id,
                    items=lines,
                )
            )
            po_status = self._order_service.recompute_receipt_status(order, actor.user_id)
            self._session.commit()

            logger.info("goods_receipt_create_committed", extra={
                "goods_receipt_id": str(receipt.id),
                "grn_number": receipt.grn_number,
                "purchase_order_id": str(order.id),
                "po_status": po_status,
            })
            return receipt
        except Exception:
            self._session.rollback()
            logger.warning("goods_receipt_create_rolled_back", exc_info=True)
            raise

    def update_receipt(
        self, actor: Actor, goods_receipt_id: UUID, update: GoodsReceiptUpdate
    ) -> GoodsReceiptModel:
        require_capability(actor, Capability.MANAGE_RECEIVING)
        receipt = self._receipts.get_or_raise(goods_receipt_id)
        self._assert_open(receipt, "edit")
        if update.items is not None and not update.items:
            raise ValidationError("Goods receipt must have at least one item", field="items")

        try:
            if update.items is not None:
                order = self._lock_order(receipt.purchase_order_id)
                locked = self._orders.lock_items(
                    list({i.po_item_id for i in receipt.items} | {line.po_item_id for line in update.items})
                )

                # Phase 1: undo every previous line.
                self._release_lines(receipt, locked)
                receipt.items.clear()
                self._session.flush()

                # Phase 2: redo with the new lines.
                receipt.items.extend(self._receive_lines(order, update.items, locked))
                po_status = self._order_service.recompute_receipt_status(order, actor.user_id)
                logger.info("goods_receipt_lines_replaced", extra={
                    "goods_receipt_id": str(goods_receipt_id),
                    "line_count": len(update.items),
                    "po_status": po_status,
                })

            if update.delivery_note is not None:
                receipt.delivery_note = update.delivery_note
            if update.notes is not None:
                receipt.notes = update.notes
            receipt.updated_by_id = actor.user_id
            self._session.commit()
            return receipt
        except Exception:
            self._session.rollback()
            logger.warning("goods_receipt_update_rolled_back", exc_info=True)
            raise

    # -------------------------------------------------------------------------
    # Inspection / finalization
    # -------------------------------------------------------------------------

    def inspect_receipt(
        self, actor: Actor, goods_receipt_id: UUID, inspection: InspectionInput
    ) -> GoodsReceiptModel:
        require_capability(actor, Capability.MANAGE_RECEIVING)
        receipt = self._receipts.get_or_raise(goods_receipt_id)
        self._assert_open(receipt, "inspect")
        try:
            receipt.status = GOODS_RECEIPT_WORKFLOW.transition(receipt.status, "inspect")
            receipt.inspected_by_id = actor.user_id
            receipt.inspected_at = self._clock.now()
            receipt.inspection_result = inspection.result.value
            receipt.inspection_notes = inspection.notes
            receipt.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("goods_receipt_inspected", extra={
                "goods_receipt_id": str(goods_receipt_id),
                "inspection_result": inspection.result.value,
            })
            return receipt
        except Exception:
            self._session.rollback()
            raise

    def accept_receipt(
        self, actor: Actor, goods_receipt_id: UUID, lines: Sequence[AcceptanceLineInput]
    ) -> GoodsReceiptModel:
        """
        Record accepted / rejected quantities for every line and finalize as
        ACCEPTED, PARTIALLY_ACCEPTED or REJECTED.
        """
        require_capability(actor, Capability.MANAGE_RECEIVING)
        receipt = self._receipts.get_or_raise(goods_receipt_id)
        self._assert_open(receipt, "accept")
        if not lines:
            raise ValidationError("No acceptance items provided", field="items")

        by_id = {item.id: item for item in receipt.items}
        decided: dict[UUID, tuple[Decimal, Decimal, str | None]] = {}
        for line in lines:
            item = by_id.get(line.goods_receipt_item_id)
            if item is None:
                raise ValidationError(
                    f"Invalid goods_receipt_item_id: {line.goods_receipt_item_id}",
                    field="goods_receipt_item_id",
                )
            if item.id in decided:
                raise ValidationError(
                    f"Duplicate goods_receipt_item_id: {item.id}", field="goods_receipt_item_id"
                )
            accepted = to_decimal(line.accepted_qty, field="accepted_qty")
            rejected = to_decimal(line.rejected_qty, field="rejected_qty")
            validate_acceptance(item.received_qty, accepted, rejected, line_ref=str(item.id))
            decided[item.id] = (accepted, rejected, line.notes)

        missing = [str(i.id) for i in receipt.items if i.id not in decided]
        if missing:
            raise QuantityInvariantViolation(
                "Every goods receipt line needs accepted and rejected quantities",
                line_ref=missing[0],
            )

        outcome = acceptance_outcome(
            lines=[
                InspectedLine(
                    received_qty=item.received_qty,
                    accepted_qty=decided[item.id][0],
                    rejected_qty=decided[item.id][1],
                )
                for item in receipt.items
            ]
        )
        new_status = GOODS_RECEIPT_WORKFLOW.transition(receipt.status, _OUTCOME_ACTIONS[outcome])

        try:
            for item in receipt.items:
                accepted, rejected, notes = decided[item.id]
                item.accepted_qty = accepted
                item.rejected_qty = rejected
                if notes is not None:
                    item.notes = notes
            receipt.status = new_status
            receipt.finalized_at = self._clock.now()
            receipt.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("goods_receipt_accepted", extra={
                "goods_receipt_id": str(goods_receipt_id),
                "outcome": outcome.value,
            })
            return receipt
        except Exception:
            self._session.rollback()
            raise

    def reject_receipt(
        self,
        actor: Actor,
        goods_receipt_id: UUID,
        lines: Sequence[RejectionLineInput] | None = None,
        reason: str | None = None,
    ) -> GoodsReceiptModel:
        """
        Finalize as REJECTED.  Without ``lines`` every line is fully
        rejected; with ``lines`` each listed rejected quantity must equal the
        line's received quantity, and unlisted lines are fully rejected.
        """
        require_capability(actor, Capability.MANAGE_RECEIVING)
        receipt = self._receipts.get_or_raise(goods_receipt_id)
        self._assert_open(receipt, "reject")

        by_id = {item.id: item for item in receipt.items}
        detail: dict[UUID, RejectionLineInput] = {}
        for line in lines or ():
            item = by_id.get(line.goods_receipt_item_id)
            if item is None:
                raise ValidationError(
                    f"Invalid goods_receipt_item_id: {line.goods_receipt_item_id}",
                    field="goods_receipt_item_id",
                )
            rejected = to_decimal(line.rejected_qty, field="rejected_qty")
            validate_acceptance(item.received_qty, ZERO, rejected, line_ref=str(item.id))
            detail[item.id] = line
        new_status = GOODS_RECEIPT_WORKFLOW.transition(receipt.status, "reject")

        try:
            for item in receipt.items:
                item.accepted_qty = ZERO
                item.rejected_qty = item.received_qty
                if item.id in detail and detail[item.id].notes is not None:
                    item.notes = detail[item.id].notes
            receipt.status = new_status
            receipt.finalized_at = self._clock.now()
            if reason:
                receipt.inspection_notes = reason
            receipt.updated_by_id = actor.user_id
            self._session.commit()
            logger.info("goods_receipt_rejected", extra={
                "goods_receipt_id": str(goods_receipt_id),
                "line_detail": bool(detail),
            })
            return receipt
        except Exception:
            self._session.rollback()
            raise

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_receipt(self, actor: Actor, goods_receipt_id: UUID) -> GoodsReceiptModel:
        receipt = self._receipts.get_or_raise(goods_receipt_id)
        self._assert_can_view(actor, receipt)
        return receipt

    def list_receipts(
        self,
        actor: Actor,
        purchase_order_id: UUID | None = None,
        status: GoodsReceiptStatus | None = None,
    ) -> Sequence[GoodsReceiptModel]:
        vendor_id = None
        if actor.role is Role.VENDOR:
            if actor.vendor_id is None:
                raise ForbiddenError()
            vendor_id = actor.vendor_id
        else:
            require_capability(actor, Capability.MANAGE_RECEIVING)
        return self._receipts.list_filtered(
            purchase_order_id=purchase_order_id, status=status, vendor_id=vendor_id
        )

    def accepted_quantity_by_po_item(
        self, purchase_order_id: UUID, window: int | None = None
    ) -> dict[UUID, Decimal]:
        """
        Accepted quantity per PO line across the ``window`` most recent
        finalized receipts (default ``grn_match_window``).
        """
        totals: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
        receipts = self._receipts.latest_finalized_for_order(
            purchase_order_id, window or self._config.grn_match_window
        )
        for receipt in receipts:
            for item in receipt.items:
                totals[item.po_item_id] += item.accepted_qty
        return dict(totals)
