"""
SQLAlchemy ORM persistence models for vendor invoices and payments.

Invariants enforced
-------------------
* (vendor_id, invoice_number) is unique.
* ``paid_amount <= total_amount``; ``paid_amount`` equals the sum of the
  invoice's payments.
* ``payment_status`` is recomputed from (total, paid, due date, now) after
  every payment.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, TrackedBase


class VendorInvoiceModel(TrackedBase):
    __tablename__ = "vendor_invoices"

    __table_args__ = (
        UniqueConstraint("vendor_id", "invoice_number", name="uq_vendor_invoice_number"),
        Index("idx_invoice_match_status", "match_status"),
        Index("idx_invoice_payment_due", "payment_status", "due_date"),
        CheckConstraint("paid_amount <= total_amount", name="ck_invoice_not_overpaid"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    purchase_order_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=True
    )
    invoice_date: Mapped[datetime] = mapped_column(nullable=False)
    due_date: Mapped[datetime] = mapped_column(nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    match_status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    price_variance: Mapped[Decimal | None]
    quantity_variance: Mapped[Decimal | None]
    price_variance_percent: Mapped[Decimal | None]
    discrepancy_notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    matched_at: Mapped[datetime | None]
    matched_by_id: Mapped[UUID | None]

    approved_for_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approved_by_id: Mapped[UUID | None]
    approved_at: Mapped[datetime | None]

    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="UNPAID")
    paid_at: Mapped[datetime | None]
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    items: Mapped[list["VendorInvoiceItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="VendorInvoiceItemModel.line_number",
    )
    payments: Mapped[list["VendorPaymentModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="VendorPaymentModel.paid_at",
    )

    def __repr__(self) -> str:
        return (
            f"<VendorInvoiceModel {self.invoice_number} {self.match_status} "
            f"{self.paid_amount}/{self.total_amount}>"
        )


class VendorInvoiceItemModel(Base):
    __tablename__ = "vendor_invoice_items"

    __table_args__ = (
        Index("idx_invoice_item_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("vendor_invoices.id", ondelete="CASCADE"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)
    po_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("purchase_order_items.id"), nullable=True
    )

    invoice: Mapped[VendorInvoiceModel] = relationship(back_populates="items")


class VendorPaymentModel(Base):
    __tablename__ = "vendor_payments"

    __table_args__ = (
        Index("idx_payment_invoice", "invoice_id"),
        CheckConstraint("amount > 0", name="ck_payment_positive"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("vendor_invoices.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    method: Mapped[str] = mapped_column(String(30), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[datetime] = mapped_column(nullable=False)
    processed_by_id: Mapped[UUID] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    invoice: Mapped[VendorInvoiceModel] = relationship(back_populates="payments")

    def __repr__(self) -> str:
        return f"<VendorPaymentModel {self.amount} {self.method}>"
