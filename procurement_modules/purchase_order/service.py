"""
Purchase Order Module Service (``procurement_modules.purchase_order.service``).

Responsibility
--------------
Creates purchase orders (directly, from an approved requisition, or from a
selected RFQ response), keeps their derived money fields consistent, drives
the approval / dispatch / cancellation lifecycle, and recomputes receipt
status after goods receipts change ``received_qty``.

Architecture position
---------------------
**Modules layer**.  Totals come from
``procurement_engines.reconciliation.compute_document_totals``; receipt
progress from ``receipt_progress``; status moves from
``PURCHASE_ORDER_WORKFLOW``.

Invariants enforced
-------------------
* ``total_amount = subtotal + tax + shipping - discount >= 0``.
* Only DRAFT orders are editable; ``update`` with items replaces the line set
  and recomputes every derived field in the same transaction.
* ``recompute_receipt_status`` is idempotent: it only writes when the
  derived status differs from the stored one.

Failure modes
-------------
* ``ValidationError`` -- no items, negative total, unknown requisition.
* ``NotFoundError`` -- vendor, order or RFQ response missing.
* ``InvalidStateError`` -- illegal transition, blacklisted vendor, RFQ
  response not selected.
* ``AlreadyClosedError`` -- cancel on CANCELLED / COMPLETED.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_engines.reconciliation import (
    OrderedLine,
    ReceiptProgress,
    compute_document_totals,
    line_total,
    receipt_progress,
)
from procurement_kernel.domain.capabilities import Actor, Capability, Role, require_capability
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.decimals import (
    ZERO,
    to_decimal_or_zero,
    to_non_negative_decimal,
    to_positive_decimal,
)
from procurement_kernel.exceptions import (
    AlreadyClosedError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.repositories.users import UserRepository
from procurement_kernel.services.notifications import (
    LoggingNotifier,
    NotificationType,
    Notifier,
    dispatch_notification,
)
from procurement_kernel.services.numbering import DocumentNumberService, DocumentPrefix
from procurement_modules.purchase_order.models import (
    PurchaseOrderInput,
    PurchaseOrderItemInput,
    PurchaseOrderStatus,
    PurchaseOrderUpdate,
)
from procurement_modules.purchase_order.orm import PurchaseOrderItemModel, PurchaseOrderModel
from procurement_modules.purchase_order.repository import PurchaseOrderRepository
from procurement_modules.purchase_order.workflows import CLOSED_STATES, PURCHASE_ORDER_WORKFLOW
from procurement_modules.requisition.models import RequisitionStatus
from procurement_modules.requisition.repository import RequisitionRepository
from procurement_modules.requisition.service import RequisitionService
from procurement_modules.rfq.models import RFQResponseStatus
from procurement_modules.rfq.repository import RFQResponseRepository
from procurement_modules.vendor.models import VendorStatus
from procurement_modules.vendor.repository import VendorRepository

logger = get_logger("modules.purchase_order.service")


class PurchaseOrderService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._notifier = notifier or LoggingNotifier()
        self._orders = PurchaseOrderRepository(session)
        self._vendors = VendorRepository(session)
        self._requisitions = RequisitionRepository(session)
        self._responses = RFQResponseRepository(session)
        self._users = UserRepository(session)
        self._numbers = DocumentNumberService(session, self._clock)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _build_items(items: Sequence[PurchaseOrderItemInput]) -> list[PurchaseOrderItemModel]:
        rows = []
        for line_number, item in enumerate(items, start=1):
            quantity = to_positive_decimal(item.quantity, field="quantity")
            unit_price = to_non_negative_decimal(item.unit_price, field="unit_price")
            rows.append(
                PurchaseOrderItemModel(
                    line_number=line_number,
                    item_name=item.item_name.strip(),
                    description=item.description,
                    quantity=quantity,
                    unit=item.unit,
                    unit_price=unit_price,
                    total_price=line_total(quantity, unit_price),
                )
            )
        return rows

    @staticmethod
    def _apply_totals(order: PurchaseOrderModel) -> None:
        totals = compute_document_totals(
            line_totals=[item.total_price for item in order.items],
            tax_amount=order.tax_amount,
            shipping_cost=order.shipping_cost,
            discount_amount=order.discount_amount,
        )
        order.subtotal = totals.subtotal
        order.total_amount = totals.total_amount

    def _assert_can_view(self, actor: Actor, order: PurchaseOrderModel) -> None:
        if actor.role is Role.VENDOR:
            if actor.vendor_id is None or actor.vendor_id != order.vendor_id:
                raise ForbiddenError()
            return
        require_capability(actor, Capability.MANAGE_POS)

    def _load_vendor(self, vendor_id: UUID):
        vendor = self._vendors.get_or_raise(vendor_id)
        if vendor.status == VendorStatus.BLACKLISTED.value:
            raise InvalidStateError(
                f"Vendor {vendor.vendor_code} is blacklisted",
                entity="vendor",
                current_status=vendor.status,
                action="order",
            )
        return vendor

    def _persist_new_order(self, actor: Actor, order: PurchaseOrderModel) -> PurchaseOrderModel:
        """Number, total and insert ``order``; close out its requisition if approved."""
        # must run before add(): the lookup autoflushes the pending order
        requisition = None
        if order.requisition_id is not None:
            requisition = self._requisitions.get(order.requisition_id)
            if requisition is None:
                raise ValidationError("Invalid requisition_id", field="requisition_id")

        order.po_number = self._numbers.next_number(
            DocumentPrefix.PURCHASE_ORDER, PurchaseOrderModel.po_number
        )
        order.status = PURCHASE_ORDER_WORKFLOW.initial_state
        order.created_by_id = actor.user_id
        self._apply_totals(order)
        self._orders.add(order)

        if requisition is not None and requisition.status == RequisitionStatus.APPROVED.value:
            RequisitionService(self._session, self._clock).mark_completed(requisition, actor.user_id)
        return order

    # -------------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------------

    def create_purchase_order(self, actor: Actor, payload: PurchaseOrderInput) -> PurchaseOrderModel:
        require_capability(actor, Capability.MANAGE_POS)
        if not payload.items:
            raise ValidationError("Purchase order must have at least one item", field="items")

        try:
            logger.info("purchase_order_create_started", extra={
                "vendor_id": str(payload.vendor_id),
                "item_count": len(payload.items),
                "requisition_id": str(payload.requisition_id) if payload.requisition_id else None,
            })
            self._load_vendor(payload.vendor_id)
            if payload.rfq_response_id is not None:
                self._responses.get_or_raise(payload.rfq_response_id)

            order = PurchaseOrderModel(
                vendor_id=payload.vendor_id,
                requisition_id=payload.requisition_id,
                rfq_response_id=payload.rfq_response_id,
                tax_amount=to_decimal_or_zero(payload.tax_amount, field="tax_amount"),
                discount_amount=to_decimal_or_zero(payload.discount_amount, field="discount_amount"),
                shipping_cost=to_decimal_or_zero(payload.shipping_cost, field="shipping_cost"),
                expected_delivery=payload.expected_delivery,
                delivery_address=payload.delivery_address,
                payment_terms=payload.payment_terms,
                notes=payload.notes,
                items=self._build_items(payload.items),
            )
            self._persist_new_order(actor, order)
            self._session.commit()

            logger.info("purchase_order_create_committed", extra={
                "purchase_order_id": str(order.id),
                "po_number": order.po_number,
                "total_amount": str(order.total_amount),
            })
            return order
        except Exception:
            self._session.rollback()
            logger.warning("purchase_order_create_rolled_back", exc_info=True)
            raise

    def create_from_rfq_response(self, actor: Actor, response_id: UUID) -> PurchaseOrderModel:
        """
        Raise a DRAFT order from a SELECTED RFQ response.  Lines are the
        RFQ items' quantities priced at the response's unit prices.
        """
        require_capability(actor, Capability.MANAGE_POS)
        response = self._responses.get_or_raise(response_id)
        if response.status != RFQResponseStatus.SELECTED.value:
            raise InvalidStateError(
                "Only a selected RFQ response can become a purchase order",
                entity="rfq_response",
                current_status=response.status,
                action="create_po",
            )

        try:
            self._load_vendor(response.vendor_id)
            items = [
                PurchaseOrderItemInput(
                    item_name=line.rfq_item.item_name,
                    description=line.rfq_item.description,
                    quantity=line.rfq_item.quantity,
                    unit=line.rfq_item.unit,
                    unit_price=line.unit_price,
                )
                for line in response.items
            ]
            if not items:
                raise ValidationError("RFQ response has no priced items", field="items")

            order = PurchaseOrderModel(
                vendor_id=response.vendor_id,
                requisition_id=response.rfq.requisition_id,
                rfq_response_id=response.id,
                delivery_address=response.rfq.delivery_location,
                tax_amount=ZERO,
                shipping_cost=ZERO,
                discount_amount=ZERO,
                items=self._build_items(items),
            )
            self._persist_new_order(actor, order)
            self._session.commit()

            logger.info("purchase_order_created_from_rfq", extra={
                "purchase_order_id": str(order.id),
                "po_number": order.po_number,
                "rfq_response_id": str(response_id),
                "total_amount": str(order.total_amount),
            })
            return order
        except Exception:
            self._session.rollback()
            raise

    def get_purchase_order(self, actor: Actor, purchase_order_id: UUID) -> PurchaseOrderModel:
        order = self._orders.get_or_raise(purchase_order_id)
        self._assert_can_view(actor, order)
        return order

    def list_purchase_orders(
        self,
        actor: Actor,
        statuses: Sequence[PurchaseOrderStatus] | None = None,
        vendor_id: UUID | None = None,
    ) -> Sequence[PurchaseOrderModel]:
        """Vendors only ever see their own orders."""
        if actor.role is Role.VENDOR:
            if actor.vendor_id is None:
                raise ForbiddenError()
            vendor_id = actor.vendor_id
        else:
            require_capability(actor, Capability.MANAGE_POS)
        return self._orders.list_filtered(statuses=statuses, vendor_id=vendor_id)

    # -------------------------------------------------------------------------
    # DRAFT editing
    # -------------------------------------------------------------------------

    def update_purchase_order(
        self, actor: Actor, purchase_order_id: UUID, update: PurchaseOrderUpdate
    ) -> PurchaseOrderModel:
        require_capability(actor, Capability.MANAGE_POS)
        order = self._orders.get_or_raise(purchase_order_id)
        PURCHASE_ORDER_WORKFLOW.transition(order.status, "edit")
        if update.items is not None and not update.items:
            raise ValidationError("Purchase order must have at least one item", field="items")

        try:
            if update.items is not None:
                order.items.clear()
                self._session.flush()
                order.items.extend(self._build_items(update.items))
            if update.tax_amount is not None:
                order.tax_amount = to_decimal_or_zero(update.tax_amount, field="tax_amount")
            if update.discount_amount is not None:
                order.discount_amount = to_decimal_or_zero(update.discount_amount, field="discount_amount")
            if update.shipping_cost is not None:
                order.shipping_cost = to_decimal_or_zero(update.shipping_cost, field="shipping_cost")
            if update.expected_delivery is not None:
                order.expected_delivery = update.expected_delivery
            if update.delivery_address is not None:
                order.delivery_address = update.delivery_address
            if update.payment_terms is not None:
                order.payment_terms = update.payment_terms
            if update.notes is not None:
                order.notes = update.notes
            self._apply_totals(order)
            order.updated_by_id = actor.user_id
            self._session.commit()

            logger.info("purchase_order_updated", extra={
                "purchase_order_id": str(purchase_order_id),
                "total_amount": str(order.total_amount),
                "items_replaced": update.items is not None,
            })
            return order
        except Exception:
            self._session.rollback()
            raise

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _move(self, actor: Actor, order: PurchaseOrderModel, action: str) -> str:
        new_status = PURCHASE_ORDER_WORKFLOW.transition(order.status, action)
        previous = order.status
        order.status = new_status
        order.updated_by_id = actor.user_id
        logger.info("purchase_order_status_changed", extra={
            "purchase_order_id": str(order.id),
            "action": action,
            "from_status": previous,
            "to_status": new_status,
        })
        return new_status

    def submit_for_approval(self, actor: Actor, purchase_order_id: UUID) -> PurchaseOrderModel:
        require_capability(actor, Capability.MANAGE_POS)
        order = self._orders.get_or_raise(purchase_order_id)
        try:
            self._move(actor, order, "submit")
            self._session.commit()
            return order
        except Exception:
            self._session.rollback()
            raise

    def approve_purchase_order(self, actor: Actor, purchase_order_id: UUID) -> PurchaseOrderModel:
        require_capability(actor, Capability.MANAGE_POS)
        order = self._orders.get_or_raise(purchase_order_id)
        try:
            self._move(actor, order, "approve")
            order.approved_by_id = actor.user_id
            order.approved_at = self._clock.now()
            self._session.commit()
            return order
        except Exception:
            self._session.rollback()
            raise

    def send_purchase_order(self, actor: Actor, purchase_order_id: UUID) -> PurchaseOrderModel:
        require_capability(actor, Capability.MANAGE_POS)
        order = self._orders.get_or_raise(purchase_order_id)
        try:
            self._move(actor, order, "send")
            order.sent_at = self._clock.now()
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        for user in self._vendor_contacts(order.vendor_id):
            dispatch_notification(
                self._notifier,
                user,
                NotificationType.PO_SENT,
                "Purchase order issued",
                f"Purchase order {order.po_number} has been sent to you",
                reference_id=order.id,
            )
        return order

    def _vendor_contacts(self, vendor_id: UUID) -> list[UUID]:
        return [u.id for u in self._users.for_vendor(vendor_id)]

    def cancel_purchase_order(
        self, actor: Actor, purchase_order_id: UUID, reason: str | None = None
    ) -> PurchaseOrderModel:
        require_capability(actor, Capability.MANAGE_POS)
        order = self._orders.get_or_raise(purchase_order_id)
        if order.status in CLOSED_STATES:
            raise AlreadyClosedError("PurchaseOrder", purchase_order_id, order.status)
        try:
            self._move(actor, order, "cancel")
            order.cancelled_at = self._clock.now()
            if reason:
                order.notes = f"{order.notes}\n{reason}" if order.notes else reason
            self._session.commit()
            return order
        except Exception:
            self._session.rollback()
            raise

    def complete_purchase_order(self, actor: Actor, purchase_order_id: UUID) -> PurchaseOrderModel:
        require_capability(actor, Capability.MANAGE_POS)
        order = self._orders.get_or_raise(purchase_order_id)
        try:
            self._move(actor, order, "complete")
            self._session.commit()
            return order
        except Exception:
            self._session.rollback()
            raise

    # -------------------------------------------------------------------------
    # Receipt status
    # -------------------------------------------------------------------------

    def recompute_receipt_status(self, order: PurchaseOrderModel, actor_id: UUID) -> str:
        """
        RECEIVED when every line is fully received, PARTIALLY_RECEIVED when
        any line has receipts, otherwise unchanged.  Runs inside the caller's
        transaction; does not commit.
        """
        progress = receipt_progress(
            [OrderedLine(quantity=i.quantity, received_qty=i.received_qty) for i in order.items]
        )
        if progress is ReceiptProgress.FULL:
            target = PurchaseOrderStatus.RECEIVED.value
            action = "receive_full"
        elif progress is ReceiptProgress.PARTIAL:
            target = PurchaseOrderStatus.PARTIALLY_RECEIVED.value
            action = "receive_partial"
        else:
            return order.status

        if order.status != target:
            previous = order.status
            order.status = PURCHASE_ORDER_WORKFLOW.transition(order.status, action)
            order.updated_by_id = actor_id
            logger.info("purchase_order_receipt_status_changed", extra={
                "purchase_order_id": str(order.id),
                "from_status": previous,
                "to_status": order.status,
            })
        return order.status
