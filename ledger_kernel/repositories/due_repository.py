"""
Module: ledger_kernel.repositories.due_repository
Responsibility: Data access for StudentDue headers, DueItem lines and
    DueAdjustment rows.
Architecture position: Kernel > Repositories.

Invariants enforced:
    - Due item amount writes are absolute compare-and-set updates guarded by
      the values the caller read; a zero-row update reports a concurrent
      change instead of silently overwriting it.
    - original_amount is written once, at insert.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import bindparam, func, select, update

from ledger_kernel.db.unit_of_work import UnitOfWork
from ledger_kernel.domain.calendar import BillingMonth
from ledger_kernel.domain.dtos import FeeLineTemplate
from ledger_kernel.domain.enums import (
    DueAdjustmentStatus,
    DueAdjustmentType,
    DueItemStatus,
)
from ledger_kernel.models.due import DueAdjustment, DueItem, StudentDue
from ledger_kernel.repositories.base import BaseRepository


class StudentDueRepository(BaseRepository[StudentDue]):
    """Billing month headers."""

    model = StudentDue

    def existing_month_keys(
        self, uow: UnitOfWork, student_id: UUID
    ) -> set[tuple[int, int]]:
        """(month, year) of every StudentDue already stored for the student."""
        rows = uow.session.execute(
            select(StudentDue.month, StudentDue.year).where(
                StudentDue.student_id == student_id
            )
        )
        return {(month, year) for month, year in rows}

    def latest_month(self, uow: UnitOfWork, student_id: UUID) -> BillingMonth | None:
        row = uow.session.execute(
            select(StudentDue.year, StudentDue.month)
            .where(StudentDue.student_id == student_id)
            .order_by(StudentDue.year.desc(), StudentDue.month.desc())
            .limit(1)
        ).first()
        if row is None:
            return None
        return BillingMonth(year=row.year, month=row.month)

    def count_for_student(self, uow: UnitOfWork, student_id: UUID) -> int:
        return uow.session.execute(
            select(func.count())
            .select_from(StudentDue)
            .where(StudentDue.student_id == student_id)
        ).scalar_one()

    def find(
        self, uow: UnitOfWork, student_id: UUID, month: int, year: int
    ) -> StudentDue | None:
        return uow.session.execute(
            select(StudentDue).where(
                StudentDue.student_id == student_id,
                StudentDue.month == month,
                StudentDue.year == year,
            )
        ).scalar_one_or_none()

    def create(
        self, uow: UnitOfWork, tenant_id: str, student_id: UUID, month: BillingMonth
    ) -> StudentDue:
        return self.add(
            uow,
            StudentDue(
                tenant_id=tenant_id,
                student_id=student_id,
                month=month.month,
                year=month.year,
            ),
        )

    def get_or_create(
        self,
        uow: UnitOfWork,
        tenant_id: str,
        student_id: UUID,
        month: BillingMonth,
    ) -> tuple[StudentDue, bool]:
        existing = self.find(uow, student_id, month.month, month.year)
        if existing is not None:
            return existing, False
        return self.create(uow, tenant_id, student_id, month), True


class DueItemRepository(BaseRepository[DueItem]):
    """Billed due item lines."""

    model = DueItem

    def create_from_lines(
        self,
        uow: UnitOfWork,
        due: StudentDue,
        lines: Iterable[FeeLineTemplate],
    ) -> list[DueItem]:
        """One PENDING due item per fee line, in template order."""
        items = [
            DueItem(
                tenant_id=due.tenant_id,
                due_id=due.id,
                title=line.name,
                description=line.description,
                original_amount=line.amount.amount,
                final_amount=line.amount.amount,
                paid_amount=Decimal("0"),
                status=DueItemStatus.PENDING,
                category_id=line.category_id,
            )
            for line in lines
        ]
        return self.add_all(uow, items)

    def create_single(
        self,
        uow: UnitOfWork,
        due: StudentDue,
        *,
        title: str,
        amount: Decimal,
        description: str | None = None,
        category_id: str | None = None,
    ) -> DueItem:
        return self.add(
            uow,
            DueItem(
                tenant_id=due.tenant_id,
                due_id=due.id,
                title=title,
                description=description,
                original_amount=amount,
                final_amount=amount,
                paid_amount=Decimal("0"),
                status=DueItemStatus.PENDING,
                category_id=category_id,
            ),
        )

    def student_id_for(self, uow: UnitOfWork, due_item_ids: list[UUID]) -> dict[UUID, UUID]:
        """Owning student of each due item."""
        if not due_item_ids:
            return {}
        rows = uow.session.execute(
            select(DueItem.id, StudentDue.student_id)
            .join(StudentDue, StudentDue.id == DueItem.due_id)
            .where(DueItem.id.in_(set(due_item_ids)))
        )
        return {item_id: student_id for item_id, student_id in rows}

    def list_for_student(
        self, uow: UnitOfWork, student_id: UUID, tenant_id: str
    ) -> list[tuple[DueItem, StudentDue]]:
        rows = uow.session.execute(
            select(DueItem, StudentDue)
            .join(StudentDue, StudentDue.id == DueItem.due_id)
            .where(
                StudentDue.student_id == student_id,
                DueItem.tenant_id == tenant_id,
            )
            .order_by(StudentDue.year, StudentDue.month, DueItem.created_at, DueItem.id)
        )
        return [(item, due) for item, due in rows]

    def compare_and_set_final(
        self,
        uow: UnitOfWork,
        due_item_id: UUID,
        *,
        expected_final: Decimal,
        new_final: Decimal,
        new_status: DueItemStatus,
    ) -> bool:
        """Set final_amount and status iff final_amount is still expected_final."""
        result = uow.session.execute(
            update(DueItem)
            .where(
                DueItem.id == due_item_id,
                DueItem.final_amount == expected_final,
            )
            .values(final_amount=new_final, status=new_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def compare_and_set_paid(
        self,
        uow: UnitOfWork,
        due_item_id: UUID,
        *,
        expected_paid: Decimal,
        expected_final: Decimal,
        new_paid: Decimal,
        new_status: DueItemStatus,
    ) -> bool:
        """
        Set paid_amount and status iff both paid and final amounts are
        unchanged since the caller read them.
        """
        result = uow.session.execute(
            update(DueItem)
            .where(
                DueItem.id == due_item_id,
                DueItem.paid_amount == expected_paid,
                DueItem.final_amount == expected_final,
            )
            .values(paid_amount=new_paid, status=new_status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def set_final_amounts(
        self, uow: UnitOfWork, new_finals: list[tuple[DueItem, Decimal]]
    ) -> int:
        """
        Batched final-amount update: one executemany statement for all items.

        The in-session DueItem objects are expired so that later reads see
        the stored values.  Returns the number of items written.
        """
        if not new_finals:
            return 0
        table = DueItem.__table__
        stmt = (
            update(table)
            .where(table.c.id == bindparam("b_id"))
            .values(final_amount=bindparam("b_final", type_=table.c.final_amount.type))
        )
        uow.session.execute(
            stmt,
            [
                {"b_id": item.id, "b_final": final}
                for item, final in new_finals
            ],
        )
        for item, _ in new_finals:
            uow.session.expire(item)
        return len(new_finals)


class DueAdjustmentRepository(BaseRepository[DueAdjustment]):
    """Append-only adjustment rows."""

    model = DueAdjustment

    def create(
        self,
        uow: UnitOfWork,
        *,
        tenant_id: str,
        due_item_id: UUID,
        title: str,
        amount: Decimal,
        adjustment_type: DueAdjustmentType,
        reason: str | None,
        applied_by: str,
        category_id: str | None = None,
    ) -> DueAdjustment:
        return self.add(
            uow,
            DueAdjustment(
                tenant_id=tenant_id,
                due_item_id=due_item_id,
                title=title,
                amount=amount,
                adjustment_type=adjustment_type,
                status=DueAdjustmentStatus.ACTIVE,
                reason=reason,
                applied_by=applied_by,
                category_id=category_id,
            ),
        )

    def insert_many(self, uow: UnitOfWork, rows: list[dict]) -> int:
        """Batched insert of adjustment rows (one statement)."""
        if not rows:
            return 0
        uow.session.add_all([DueAdjustment(**row) for row in rows])
        uow.flush()
        return len(rows)

    def list_for_item(
        self, uow: UnitOfWork, due_item_id: UUID, tenant_id: str
    ) -> list[DueAdjustment]:
        return list(
            uow.session.execute(
                select(DueAdjustment)
                .where(
                    DueAdjustment.due_item_id == due_item_id,
                    DueAdjustment.tenant_id == tenant_id,
                )
                .order_by(DueAdjustment.created_at, DueAdjustment.id)
            ).scalars()
        )
