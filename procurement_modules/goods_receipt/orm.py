"""
SQLAlchemy ORM persistence models for goods receipts (GRNs).

Invariants enforced
-------------------
* ``grn_number`` is unique.
* ``received_qty > 0`` on every line.
* Finalized lines satisfy ``accepted_qty + rejected_qty == received_qty``;
  the service validates this before the status leaves the open states.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement_kernel.db.base import Base, TrackedBase


class GoodsReceiptModel(TrackedBase):
    """A delivery recorded against a purchase order."""

    __tablename__ = "goods_receipts"

    __table_args__ = (
        UniqueConstraint("grn_number", name="uq_grn_number"),
        Index("idx_grn_po", "purchase_order_id", "status"),
    )

    grn_number: Mapped[str] = mapped_column(String(50), nullable=False)
    purchase_order_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_orders.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="PENDING_INSPECTION")
    received_by_id: Mapped[UUID] = mapped_column(nullable=False)
    received_at: Mapped[datetime] = mapped_column(nullable=False)
    delivery_note: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    inspected_by_id: Mapped[UUID | None]
    inspected_at: Mapped[datetime | None]
    inspection_result: Mapped[str | None] = mapped_column(String(20), nullable=True)
    inspection_notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    finalized_at: Mapped[datetime | None]

    items: Mapped[list["GoodsReceiptItemModel"]] = relationship(
        back_populates="goods_receipt",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<GoodsReceiptModel {self.grn_number} {self.status}>"


class GoodsReceiptItemModel(Base):
    __tablename__ = "goods_receipt_items"

    __table_args__ = (
        Index("idx_grn_item_grn", "goods_receipt_id"),
        Index("idx_grn_item_po_item", "po_item_id"),
        CheckConstraint("received_qty > 0", name="ck_grn_item_received_positive"),
        CheckConstraint("accepted_qty >= 0", name="ck_grn_item_accepted_non_negative"),
        CheckConstraint("rejected_qty >= 0", name="ck_grn_item_rejected_non_negative"),
    )

    goods_receipt_id: Mapped[UUID] = mapped_column(
        ForeignKey("goods_receipts.id", ondelete="CASCADE"), nullable=False
    )
    po_item_id: Mapped[UUID] = mapped_column(ForeignKey("purchase_order_items.id"), nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    ordered_qty: Mapped[Decimal] = mapped_column(nullable=False)
    received_qty: Mapped[Decimal] = mapped_column(nullable=False)
    accepted_qty: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    rejected_qty: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="EA")
    condition: Mapped[str] = mapped_column(String(20), nullable=False, default="GOOD")
    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    goods_receipt: Mapped[GoodsReceiptModel] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<GoodsReceiptItemModel {self.item_name} received={self.received_qty} "
            f"accepted={self.accepted_qty} rejected={self.rejected_qty}>"
        )
