"""
Module: procurement_kernel.repositories.base
Responsibility: Generic typed repository over one aggregate root.  Each
    procurement aggregate (requisition, purchase order, goods receipt, ...)
    declares a subclass bound to its ORM model and adds its own queries.
Architecture position: Kernel > Repositories.  May import from db/ and
    exceptions.  Services own the transaction; repositories never commit.

Invariants enforced:
    - Repositories may add() and flush() but MUST NOT commit or roll back.
    - ``get_or_raise`` is the single place a missing id becomes NotFoundError.
    - ``get_for_update`` takes a row lock (SELECT ... FOR UPDATE) on backends
      that support it; SQLite ignores the clause.
"""

from abc import ABC
from collections.abc import Sequence
from typing import ClassVar, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement_kernel.db.base import Base
from procurement_kernel.exceptions import NotFoundError

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(ABC, Generic[ModelType]):
    """
    Abstract base class for aggregate repositories.

    Subclasses set ``model`` and ``entity_name``.
    """

    model: ClassVar[type[Base]]
    entity_name: ClassVar[str] = "Document"

    def __init__(self, session: Session):
        self.session = session

    def get(self, entity_id: UUID) -> ModelType | None:
        return self.session.get(self.model, entity_id)

    def get_or_raise(self, entity_id: UUID) -> ModelType:
        entity = self.get(entity_id)
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    def get_for_update(self, entity_id: UUID) -> ModelType:
        entity = self.session.execute(
            select(self.model)
            .where(self.model.id == entity_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    def add(self, entity: ModelType) -> ModelType:
        self.session.add(entity)
        self.session.flush()
        return entity

    def delete(self, entity: ModelType) -> None:
        self.session.delete(entity)
        self.session.flush()

    def list_where(self, *criteria, order_by=None, limit: int | None = None) -> Sequence[ModelType]:
        stmt = select(self.model).where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.execute(stmt).scalars().all()
