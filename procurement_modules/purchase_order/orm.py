"""
SQLAlchemy ORM persistence models for purchase orders.

Invariants enforced
-------------------
* ``po_number`` is unique.
* ``total_amount = subtotal + tax_amount + shipping_cost - discount_amount``
  and is never negative; the service derives all money fields together.
* ``PurchaseOrderItemModel.received_qty`` is a running total maintained by
  goods receipts under a row lock and never exceeds ``quantity``.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, TrackedBase


class PurchaseOrderModel(TrackedBase):
    """An order issued to a vendor."""

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_po_number"),
        Index("idx_po_vendor", "vendor_id"),
        Index("idx_po_status", "status"),
        Index("idx_po_requisition", "requisition_id"),
        CheckConstraint("total_amount >= 0", name="ck_po_total_non_negative"),
    )

    po_number: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_id: Mapped[UUID] = mapped_column(ForeignKey("vendors.id"), nullable=False)
    requisition_id: Mapped[UUID | None] = mapped_column(ForeignKey("requisitions.id"), nullable=True)
    rfq_response_id: Mapped[UUID | None]
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="DRAFT")

    subtotal: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    shipping_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    expected_delivery: Mapped[datetime | None]
    delivery_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    payment_terms: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    approved_by_id: Mapped[UUID | None]
    approved_at: Mapped[datetime | None]
    sent_at: Mapped[datetime | None]
    cancelled_at: Mapped[datetime | None]

    items: Mapped[list["PurchaseOrderItemModel"]] = relationship(
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderItemModel.line_number",
    )

    def item_by_id(self, item_id: UUID) -> "PurchaseOrderItemModel | None":
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number} {self.status} {self.total_amount}>"


class PurchaseOrderItemModel(Base):
    __tablename__ = "purchase_order_items"

    __table_args__ = (
        Index("idx_po_item_po", "purchase_order_id"),
        CheckConstraint("received_qty >= 0", name="ck_po_item_received_non_negative"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    total_price: Mapped[Decimal] = mapped_column(nullable=False)
    received_qty: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    purchase_order: Mapped[PurchaseOrderModel] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<PurchaseOrderItemModel {self.item_name} {self.received_qty}/{self.quantity}>"
