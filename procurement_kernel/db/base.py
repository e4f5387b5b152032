"""
Declarative bases shared by every procurement ORM model.

Column conventions applied through ``Base.type_annotation_map``:

* ``UUID`` ids are stored as 36-char strings, generated with uuid4.
* Money and quantities are ``Numeric(38, 9)``. Floats never reach a column.
* ``datetime`` is always UTC-aware when it comes back from the database,
  including on SQLite which stores it naive.

This module imports nothing from the rest of the kernel.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID kept as text so PostgreSQL and SQLite share one schema."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """Aware datetimes in, aware datetimes out, normalized to UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        # naive values are taken to be UTC already
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)

    def process_bind_param(self, value, dialect):
        return None if value is None else self._as_utc(value)

    def process_result_value(self, value, dialect):
        return None if value is None else self._as_utc(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Documents that record who created and last touched them.

    ``created_at`` and ``updated_at`` are stamped by the database server.
    Business timestamps (approved_at, finalized_at, paid dates) come from the
    injected Clock instead and live on the concrete models.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by_id: Mapped[UUID]
    updated_by_id: Mapped[UUID | None]
