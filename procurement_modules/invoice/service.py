"""
Vendor Invoice Module Service (``procurement_modules.invoice.service``).

Responsibility
--------------
Captures vendor invoices, reconciles them against their purchase order and
accepted goods receipts (three-way match), approves them for payment and
records payments against them.

Architecture position
---------------------
**Modules layer**.  Variance and verdict arithmetic come from
``procurement_engines.matching``; payment guards and status from
``procurement_engines.payments``.  Accepted quantities are read through
``GoodsReceiptService.accepted_quantity_by_po_item``.

Invariants enforced
-------------------
* An invoice linked to a PO must share the PO's vendor.
* ``approved_for_payment`` is set by a MATCHED verdict or by an explicit
  approval of a MATCHED invoice; nothing else sets it.
* ``paid_amount <= total_amount``; a rejected payment leaves the invoice
  untouched.
* ``payment_status`` is recomputed after every payment.

Failure modes
-------------
* ``ValidationError`` -- no lines, vendor mismatch, matching an invoice with
  no PO, bad payment amount, due window out of range.
* ``InvalidStateError`` -- approving a non-MATCHED invoice, re-matching a
  MATCHED invoice, disputing a disputed one.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from procurement_config.schema import ProcurementConfig
from procurement_engines.matching import (
    InvoiceLine,
    MatchStatus,
    MatchVerdict,
    OrderLine,
    VarianceResult,
    calculate_variances,
    evaluate_match,
)
from procurement_engines.payments import PaymentStatus, payment_status, validate_payment
from procurement_engines.reconciliation import compute_document_totals, line_total
from procurement_kernel.domain.capabilities import Actor, Capability, Role, require_capability
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.decimals import (
    to_decimal,
    to_decimal_or_zero,
    to_non_negative_decimal,
    to_positive_decimal,
)
from procurement_kernel.exceptions import ForbiddenError, InvalidStateError, ValidationError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.repositories.users import UserRepository
from procurement_kernel.services.notifications import (
    LoggingNotifier,
    NotificationType,
    Notifier,
    dispatch_notification,
)
from procurement_modules.goods_receipt.service import GoodsReceiptService
from procurement_modules.invoice.models import InvoiceInput, InvoiceItemInput, PaymentInput
from procurement_modules.invoice.orm import (
    VendorInvoiceItemModel,
    VendorInvoiceModel,
    VendorPaymentModel,
)
from procurement_modules.invoice.repository import InvoiceRepository, PaymentRepository
from procurement_modules.invoice.workflows import (
    DISCREPANCY_STATES,
    INVOICE_MATCH_WORKFLOW,
    MATCH_ACTIONS,
)
from procurement_modules.purchase_order.repository import PurchaseOrderRepository
from procurement_modules.vendor.repository import VendorRepository

logger = get_logger("modules.invoice.service")


def _assert_can_view(actor: Actor, invoice: VendorInvoiceModel) -> None:
    if actor.role is Role.VENDOR:
        if actor.vendor_id is None or actor.vendor_id != invoice.vendor_id:
            raise ForbiddenError()
        return
    require_capability(actor, Capability.MANAGE_INVOICES)


def _vendor_scope(actor: Actor) -> UUID | None:
    """Vendors are restricted to their own documents; staff need ManageInvoices."""
    if actor.role is Role.VENDOR:
        if actor.vendor_id is None:
            raise ForbiddenError()
        return actor.vendor_id
    require_capability(actor, Capability.MANAGE_INVOICES)
    return None


class InvoiceService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        config: ProcurementConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._notifier = notifier or LoggingNotifier()
        self._config = config or ProcurementConfig.with_defaults()
        self._invoices = InvoiceRepository(session)
        self._orders = PurchaseOrderRepository(session)
        self._vendors = VendorRepository(session)
        self._users = UserRepository(session)
        self._receipts = GoodsReceiptService(session, self._clock, self._config)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _build_items(items: Sequence[InvoiceItemInput]) -> list[VendorInvoiceItemModel]:
        rows = []
        for line_number, item in enumerate(items, start=1):
            quantity = to_positive_decimal(item.quantity, field="quantity")
            unit_price = to_non_negative_decimal(item.unit_price, field="unit_price")
            rows.append(
                VendorInvoiceItemModel(
                    line_number=line_number,
                    description=item.description.strip(),
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=line_total(quantity, unit_price),
                    po_item_id=item.po_item_id,
                )
            )
        return rows

    def _notify_vendor(
        self, invoice: VendorInvoiceModel, type: NotificationType, title: str, message: str
    ) -> None:
        for user in self._users.for_vendor(invoice.vendor_id):
            dispatch_notification(
                self._notifier, user.id, type, title, message, reference_id=invoice.id
            )

    # -------------------------------------------------------------------------
    # Create / read
    # -------------------------------------------------------------------------

    def create_invoice(self, actor: Actor, payload: InvoiceInput) -> VendorInvoiceModel:
        require_capability(actor, Capability.MANAGE_INVOICES)
        if not payload.items:
            raise ValidationError("Invoice must have at least one item", field="items")

        vendor = self._vendors.get_or_raise(payload.vendor_id)
        if payload.purchase_order_id is not None:
            order = self._orders.get_or_raise(payload.purchase_order_id)
            if order.vendor_id != vendor.id:
                raise ValidationError(
                    "Invoice vendor must match PO vendor", field="vendor_id"
                )
            line_ids = {item.id for item in order.items}
            for item in payload.items:
                if item.po_item_id is not None and item.po_item_id not in line_ids:
                    raise ValidationError(
                        f"Invalid po_item_id: {item.po_item_id}", field="po_item_id"
                    )
        elif any(item.po_item_id is not None for item in payload.items):
            raise ValidationError(
                "po_item_id requires a linked purchase order", field="po_item_id"
            )

        if self._invoices.by_number(vendor.id, payload.invoice_number.strip()) is not None:
            raise ValidationError(
                f"Invoice {payload.invoice_number} already exists for this vendor",
                field="invoice_number",
            )

        items = self._build_items(payload.items)
        totals = compute_document_totals(
            line_totals=[item.total_price for item in items],
            tax_amount=to_decimal_or_zero(payload.tax_amount, field="tax_amount"),
        )
        due_date = payload.due_date or payload.invoice_date + timedelta(
            days=self._config.default_due_window_days
        )

        try:
            invoice = self._invoices.add(
                VendorInvoiceModel(
                    invoice_number=payload.invoice_number.strip(),
                    vendor_id=vendor.id,
                    purchase_order_id=payload.purchase_order_id,
                    invoice_date=payload.invoice_date,
                    due_date=due_date,
                    subtotal=totals.subtotal,
                    tax_amount=totals.tax_amount,
                    total_amount=totals.total_amount,
                    match_status=INVOICE_MATCH_WORKFLOW.initial_state,
                    approved_for_payment=False,
                    paid_amount=Decimal("0"),
                    payment_status=PaymentStatus.UNPAID.value,
                    notes=payload.notes,
                    created_by_id=actor.user_id,
                    items=items,
                )
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("invoice_created", extra={
            "invoice_id": str(invoice.id),
            "invoice_number": invoice.invoice_number,
            "vendor_id": str(invoice.vendor_id),
            "total_amount": str(invoice.total_amount),
        })
        return invoice

    def get_invoice(self, actor: Actor, invoice_id: UUID) -> VendorInvoiceModel:
        invoice = self._invoices.get_or_raise(invoice_id)
        _assert_can_view(actor, invoice)
        return invoice

    def list_invoices(
        self,
        actor: Actor,
        match_status: MatchStatus | None = None,
        payment_status: PaymentStatus | None = None,
    ) -> Sequence[VendorInvoiceModel]:
        vendor_id = _vendor_scope(actor)
        return self._invoices.list_filtered(
            match_statuses=[match_status] if match_status else None,
            payment_status=payment_status,
            vendor_id=vendor_id,
        )

    def list_pending_match(self, actor: Actor) -> Sequence[VendorInvoiceModel]:
        require_capability(actor, Capability.MANAGE_INVOICES)
        return self._invoices.list_filtered(match_statuses=[MatchStatus.PENDING])

    def list_discrepancies(self, actor: Actor) -> Sequence[VendorInvoiceModel]:
        require_capability(actor, Capability.MANAGE_INVOICES)
        return self._invoices.list_filtered(
            match_statuses=[MatchStatus(s) for s in DISCREPANCY_STATES]
        )

    # -------------------------------------------------------------------------
    # Three-way match
    # -------------------------------------------------------------------------

    def _variances_for(self, invoice: VendorInvoiceModel) -> tuple[VarianceResult, Decimal]:
        if invoice.purchase_order_id is None:
            raise ValidationError(
                "Invoice must be linked to a purchase order for matching",
                field="purchase_order_id",
            )
        order = self._orders.get_or_raise(invoice.purchase_order_id)
        accepted = self._receipts.accepted_quantity_by_po_item(order.id)
        variances = calculate_variances(
            invoice_lines=[
                InvoiceLine(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    po_item_id=item.po_item_id,
                )
                for item in invoice.items
            ],
            order_lines=[
                OrderLine(
                    po_item_id=item.id,
                    item_name=item.item_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in order.items
            ],
            accepted_by_po_item=accepted,
        )
        return variances, order.total_amount

    def calculate_variances(self, actor: Actor, invoice_id: UUID) -> VarianceResult:
        """Read-only variance computation; nothing is persisted."""
        require_capability(actor, Capability.MANAGE_INVOICES)
        invoice = self._invoices.get_or_raise(invoice_id)
        variances, _ = self._variances_for(invoice)
        return variances

    def perform_three_way_match(
        self,
        actor: Actor,
        invoice_id: UUID,
        tolerance_percent: Decimal | str | None = None,
    ) -> MatchVerdict:
        """
        Match the invoice against its PO and accepted receipts and persist the
        verdict.  A MATCHED verdict also approves the invoice for payment.
        """
        require_capability(actor, Capability.MANAGE_INVOICES)
        tolerance = (
            self._config.match_tolerance_percent
            if tolerance_percent is None
            else to_decimal(tolerance_percent, field="tolerance_percent")
        )
        if tolerance < 0:
            raise ValidationError("tolerance_percent cannot be negative", field="tolerance_percent")

        try:
            invoice = self._invoices.get_for_update(invoice_id)
            variances, po_total = self._variances_for(invoice)
            verdict = evaluate_match(
                variances=variances, po_total=po_total, tolerance_percent=tolerance
            )
            now = self._clock.now()

            invoice.match_status = INVOICE_MATCH_WORKFLOW.transition(
                invoice.match_status, MATCH_ACTIONS[verdict.status]
            )
            invoice.price_variance = variances.price_variance
            invoice.quantity_variance = variances.quantity_variance
            invoice.price_variance_percent = verdict.price_variance_percent
            invoice.discrepancy_notes = variances.notes
            invoice.matched_at = now
            invoice.matched_by_id = actor.user_id
            invoice.updated_by_id = actor.user_id
            if verdict.is_matched:
                invoice.approved_for_payment = True
                invoice.approved_by_id = actor.user_id
                invoice.approved_at = now
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("invoice_matched", extra={
            "invoice_id": str(invoice.id),
            "match_status": invoice.match_status,
            "price_variance": str(variances.price_variance),
            "quantity_variance": str(variances.quantity_variance),
            "price_variance_percent": str(verdict.price_variance_percent),
            "is_matched": verdict.is_matched,
        })
        if verdict.is_matched:
            self._notify_vendor(
                invoice,
                NotificationType.INVOICE_MATCHED,
                "Invoice matched",
                f"Invoice {invoice.invoice_number} matched and is approved for payment",
            )
        return verdict

    # -------------------------------------------------------------------------
    # Approval / dispute
    # -------------------------------------------------------------------------

    def approve_for_payment(self, actor: Actor, invoice_id: UUID) -> VendorInvoiceModel:
        require_capability(actor, Capability.PROCESS_PAYMENTS)
        invoice = self._invoices.get_or_raise(invoice_id)
        if invoice.approved_for_payment:
            return invoice
        if invoice.match_status != MatchStatus.MATCHED.value:
            raise InvalidStateError(
                f"Invoice {invoice.invoice_number} must be MATCHED before approval for payment",
                entity="vendor_invoice",
                current_status=invoice.match_status,
                action="approve_for_payment",
            )
        try:
            invoice.approved_for_payment = True
            invoice.approved_by_id = actor.user_id
            invoice.approved_at = self._clock.now()
            invoice.updated_by_id = actor.user_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("invoice_approved_for_payment", extra={"invoice_id": str(invoice.id)})
        return invoice

    def dispute_invoice(
        self, actor: Actor, invoice_id: UUID, reason: str | None = None
    ) -> VendorInvoiceModel:
        """Mark the invoice DISPUTED; it is no longer payable until re-matched."""
        require_capability(actor, Capability.MANAGE_INVOICES)
        invoice = self._invoices.get_or_raise(invoice_id)
        target = INVOICE_MATCH_WORKFLOW.transition(invoice.match_status, "dispute")
        try:
            invoice.match_status = target
            invoice.approved_for_payment = False
            if reason:
                invoice.discrepancy_notes = reason
            invoice.updated_by_id = actor.user_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("invoice_disputed", extra={"invoice_id": str(invoice.id)})
        self._notify_vendor(
            invoice,
            NotificationType.INVOICE_DISPUTED,
            "Invoice disputed",
            f"Invoice {invoice.invoice_number} has been disputed"
            + (f": {reason}" if reason else ""),
        )
        return invoice


class PaymentService:
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProcurementConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProcurementConfig.with_defaults()
        self._invoices = InvoiceRepository(session)
        self._payments = PaymentRepository(session)

    def record_payment(
        self, actor: Actor, invoice_id: UUID, payload: PaymentInput
    ) -> VendorPaymentModel:
        require_capability(actor, Capability.PROCESS_PAYMENTS)
        amount = to_decimal(payload.amount, field="amount")

        try:
            invoice = self._invoices.get_for_update(invoice_id)
            validate_payment(
                amount,
                invoice.total_amount,
                invoice.paid_amount,
                invoice.approved_for_payment,
            )
            now = self._clock.now()
            payment = self._payments.add(
                VendorPaymentModel(
                    invoice_id=invoice.id,
                    amount=amount,
                    method=payload.method.value,
                    reference=payload.reference,
                    paid_at=payload.paid_at or now,
                    processed_by_id=actor.user_id,
                    notes=payload.notes,
                )
            )
            invoice.paid_amount = invoice.paid_amount + amount
            status = payment_status(invoice.total_amount, invoice.paid_amount, invoice.due_date, now)
            invoice.payment_status = status.value
            if status is PaymentStatus.PAID:
                invoice.paid_at = now
            invoice.updated_by_id = actor.user_id
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("payment_recorded", extra={
            "invoice_id": str(invoice.id),
            "amount": str(amount),
            "paid_amount": str(invoice.paid_amount),
            "payment_status": invoice.payment_status,
        })
        return payment

    def list_payments(
        self, actor: Actor, invoice_id: UUID | None = None
    ) -> Sequence[VendorPaymentModel]:
        vendor_id = _vendor_scope(actor)
        return self._payments.list_filtered(invoice_id=invoice_id, vendor_id=vendor_id)

    def list_due_payments(
        self, actor: Actor, within_days: int | None = None
    ) -> Sequence[VendorInvoiceModel]:
        """Approved invoices with an open balance due within ``within_days``."""
        require_capability(actor, Capability.MANAGE_INVOICES)
        days = self._config.default_due_window_days if within_days is None else within_days
        if not 1 <= days <= self._config.due_payment_window_days_max:
            raise ValidationError(
                f"within_days must be between 1 and {self._config.due_payment_window_days_max}",
                field="within_days",
            )
        return self._invoices.approved_due_by(self._clock.now() + timedelta(days=days))
