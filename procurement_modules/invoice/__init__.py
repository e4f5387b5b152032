"""
Invoice Module.

Vendor invoices, their three-way match against purchase orders and accepted
goods receipts, approval for payment, and the payments settling them.
"""

from procurement_modules.invoice.models import (
    InvoiceInput,
    InvoiceItemInput,
    MatchStatus,
    PaymentInput,
    PaymentMethod,
    PaymentStatus,
)
from procurement_modules.invoice.orm import (
    VendorInvoiceItemModel,
    VendorInvoiceModel,
    VendorPaymentModel,
)
from procurement_modules.invoice.service import InvoiceService, PaymentService
from procurement_modules.invoice.workflows import INVOICE_MATCH_WORKFLOW

__all__ = [
    "INVOICE_MATCH_WORKFLOW",
    "InvoiceInput",
    "InvoiceItemInput",
    "InvoiceService",
    "MatchStatus",
    "PaymentInput",
    "PaymentMethod",
    "PaymentService",
    "PaymentStatus",
    "VendorInvoiceItemModel",
    "VendorInvoiceModel",
    "VendorPaymentModel",
]
