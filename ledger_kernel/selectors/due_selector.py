"""
Module: ledger_kernel.selectors.due_selector
Responsibility: Read-only access to due items, their billing months and
    their adjustment history.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Adjustments are listed oldest first, so replaying them over the
      original amount reproduces the final amount.
"""

from uuid import UUID

from ledger_kernel.domain.dtos import AdjustmentInfo, DueItemInfo
from ledger_kernel.domain.enums import DueItemStatus
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.models.due import DueItem, StudentDue
from ledger_kernel.repositories.due_repository import (
    DueAdjustmentRepository,
    DueItemRepository,
)
from ledger_kernel.selectors.base import BaseSelector


class DueSelector(BaseSelector):
    """Queries over due items and adjustments."""

    def __init__(self, uow):
        super().__init__(uow)
        self._items = DueItemRepository()
        self._adjustments = DueAdjustmentRepository()

    def adjustments_for(self, due_item_id: UUID, tenant_id: str) -> list[AdjustmentInfo]:
        return [
            AdjustmentInfo.from_model(adj)
            for adj in self._adjustments.list_for_item(self.uow, due_item_id, tenant_id)
        ]

    def due_item(
        self, due_item_id: UUID, tenant_id: str, *, with_adjustments: bool = True
    ) -> DueItemInfo | None:
        """A due item with its billing month and, by default, its adjustments."""
        item = self._items.get(self.uow, due_item_id, tenant_id)
        if item is None:
            return None
        adjustments = (
            self.adjustments_for(item.id, tenant_id) if with_adjustments else []
        )
        return self._to_info(item, item.due, adjustments)

    def student_due_items(
        self,
        student_id: UUID,
        tenant_id: str,
        *,
        status: DueItemStatus | None = None,
    ) -> list[DueItemInfo]:
        """Every due item of a student, by billing month."""
        rows = self._items.list_for_student(self.uow, student_id, tenant_id)
        infos = [self._to_info(item, due, []) for item, due in rows]
        if status is not None:
            infos = [info for info in infos if info.status == status]
        return infos

    def outstanding_total(self, student_id: UUID, tenant_id: str) -> MoneyAmount:
        return MoneyAmount.total(
            info.outstanding
            for info in self.student_due_items(student_id, tenant_id)
        )

    def billed_months(self, student_id: UUID, tenant_id: str) -> list[str]:
        """Billing months of the student as "m/yyyy", chronological."""
        seen: dict[str, None] = {}
        for _, due in self._items.list_for_student(self.uow, student_id, tenant_id):
            seen[f"{due.month}/{due.year}"] = None
        return list(seen)

    @staticmethod
    def _to_info(
        item: DueItem, due: StudentDue, adjustments: list[AdjustmentInfo]
    ) -> DueItemInfo:
        return DueItemInfo(
            id=item.id,
            tenant_id=item.tenant_id,
            due_id=due.id,
            student_id=due.student_id,
            month=due.month,
            year=due.year,
            title=item.title,
            description=item.description,
            original_amount=MoneyAmount.of(item.original_amount),
            final_amount=MoneyAmount.of(item.final_amount),
            paid_amount=MoneyAmount.of(item.paid_amount),
            status=DueItemStatus(item.status),
            category_id=item.category_id,
            adjustments=tuple(adjustments),
        )
