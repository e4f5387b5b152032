"""
UserModel -- the people who request, approve, receive and pay.

Only the fields the procurement engine reads are modeled: role and
department drive approval routing, ``is_active`` removes departed users from
routing, and ``vendor_id`` links a VENDOR-role login to its vendor record.
"""

from uuid import UUID

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base
from procurement_kernel.domain.capabilities import Actor, Role


class UserModel(Base):
    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_user_email"),
        Index("idx_user_role_active", "role", "is_active"),
        Index("idx_user_department", "department"),
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    vendor_id: Mapped[UUID | None]

    def to_actor(self) -> Actor:
        return Actor(user_id=self.id, role=Role(self.role), vendor_id=self.vendor_id)

    def __repr__(self) -> str:
        return f"<UserModel {self.email} {self.role}>"
