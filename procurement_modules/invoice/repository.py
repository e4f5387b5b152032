from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from procurement_engines.matching import MatchStatus
from procurement_engines.payments import PaymentStatus
from procurement_kernel.repositories.base import BaseRepository
from procurement_modules.invoice.orm import VendorInvoiceModel, VendorPaymentModel


class InvoiceRepository(BaseRepository[VendorInvoiceModel]):
    model = VendorInvoiceModel
    entity_name = "VendorInvoice"

    def list_filtered(
        self,
        match_statuses: Sequence[MatchStatus] | None = None,
        payment_status: PaymentStatus | None = None,
        vendor_id: UUID | None = None,
    ) -> Sequence[VendorInvoiceModel]:
        criteria = []
        if match_statuses:
            criteria.append(VendorInvoiceModel.match_status.in_([s.value for s in match_statuses]))
        if payment_status is not None:
            criteria.append(VendorInvoiceModel.payment_status == payment_status.value)
        if vendor_id is not None:
            criteria.append(VendorInvoiceModel.vendor_id == vendor_id)
        return self.list_where(*criteria, order_by=VendorInvoiceModel.invoice_date.desc())

    def by_number(self, vendor_id: UUID, invoice_number: str) -> VendorInvoiceModel | None:
        rows = self.list_where(
            VendorInvoiceModel.vendor_id == vendor_id,
            VendorInvoiceModel.invoice_number == invoice_number,
        )
        return rows[0] if rows else None

    def approved_due_by(self, until: datetime) -> Sequence[VendorInvoiceModel]:
        """Approved invoices with an open balance due on or before ``until``."""
        return self.list_where(
            VendorInvoiceModel.approved_for_payment.is_(True),
            VendorInvoiceModel.payment_status.in_(
                [
                    PaymentStatus.UNPAID.value,
                    PaymentStatus.PARTIALLY_PAID.value,
                    PaymentStatus.OVERDUE.value,
                ]
            ),
            VendorInvoiceModel.due_date <= until,
            order_by=VendorInvoiceModel.due_date,
        )


class PaymentRepository(BaseRepository[VendorPaymentModel]):
    model = VendorPaymentModel
    entity_name = "VendorPayment"

    def list_filtered(
        self, invoice_id: UUID | None = None, vendor_id: UUID | None = None
    ) -> Sequence[VendorPaymentModel]:
        criteria = []
        if invoice_id is not None:
            criteria.append(VendorPaymentModel.invoice_id == invoice_id)
        if vendor_id is not None:
            criteria.append(
                VendorPaymentModel.invoice_id.in_(
                    select(VendorInvoiceModel.id).where(VendorInvoiceModel.vendor_id == vendor_id)
                )
            )
        return self.list_where(*criteria, order_by=VendorPaymentModel.paid_at.desc())
