"""
BaseRepository -- abstract base for ledger data access.

Responsibility:
    Common lookups and inserts shared by every repository.  Repositories are
    stateless: every call receives the UnitOfWork it runs in, so an engine
    decides exactly which writes share a transaction.

Architecture position:
    Kernel > Repositories.  May import from db/, models/ and domain/.
    MUST NOT import from services/ or selectors/.

Invariants enforced:
    - Repositories flush, never commit or roll back.  The engine that opened
      the UnitOfWork owns commit/rollback.
    - Every lookup is tenant-scoped.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.base import Base
from ledger_kernel.db.unit_of_work import UnitOfWork

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(ABC, Generic[ModelType]):
    """
    Abstract base class for repositories.

    Contract:
        Subclasses set ``model`` to their ORM class; the model must carry a
        ``tenant_id`` column.

    Non-goals:
        - Does NOT manage transaction lifecycle.
    """

    model: type[ModelType]

    def get(
        self,
        uow: UnitOfWork,
        entity_id: UUID,
        tenant_id: str,
        *,
        for_update: bool = False,
    ) -> ModelType | None:
        stmt = select(self.model).where(
            self.model.id == entity_id,
            self.model.tenant_id == tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return uow.session.execute(stmt).scalar_one_or_none()

    def get_many(
        self,
        uow: UnitOfWork,
        entity_ids: list[UUID],
        tenant_id: str,
        *,
        for_update: bool = False,
    ) -> dict[UUID, ModelType]:
        """
        Fetch several rows in one query, keyed by id.

        With ``for_update`` the rows are locked in id order so that two
        writers locking overlapping sets cannot deadlock.
        """
        if not entity_ids:
            return {}
        stmt = (
            select(self.model)
            .where(
                self.model.id.in_(set(entity_ids)),
                self.model.tenant_id == tenant_id,
            )
            .order_by(self.model.id)
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return {row.id: row for row in uow.session.execute(stmt).scalars()}

    def add(self, uow: UnitOfWork, entity: ModelType) -> ModelType:
        uow.session.add(entity)
        uow.flush()
        return entity

    def add_all(self, uow: UnitOfWork, entities: list[ModelType]) -> list[ModelType]:
        uow.session.add_all(entities)
        uow.flush()
        return entities
