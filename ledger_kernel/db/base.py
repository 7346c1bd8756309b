"""
Declarative base for the ledger's ORM models.

Conventions every table follows:
    - ``id`` is a uuid4 primary key, stored as a 36-character string so the
      same schema works on PostgreSQL and SQLite.
    - ``Decimal`` annotations map to NUMERIC(18, 2); no monetary column is
      ever a float.
    - ``datetime`` annotations are timezone aware.
    - Mutable rows extend TrackedBase and carry created_at / updated_at.

This module is the bottom of the kernel's import graph: it imports nothing
from models/, repositories/, services/ or selectors/.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from ledger_kernel.domain.money import MONEY_DECIMAL_PLACES


class UUIDString(TypeDecorator):
    """uuid.UUID in Python, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, MONEY_DECIMAL_PLACES),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Rows that change after insert.

    ``updated_at`` is refreshed by ORM flushes and by the Core UPDATE
    statements the repositories issue for conditional balance and
    compare-and-set due item writes.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
