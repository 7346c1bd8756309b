"""
DueAdjustmentService -- discounts, waivers, fines and late fees on due items.

Responsibility:
    Writes a DueAdjustment row and moves the owning DueItem's final amount
    by the adjustment's signed effect, in one unit of work.  Also provides
    the batched late-fee path used while dues are being generated.

Architecture position:
    Kernel > Services -- imperative shell.
    apply_adjustment() is a top-level operation (owns its unit of work).
    apply_late_fees() runs inside DueGenerationEngine's unit of work.

Invariants enforced:
    DUE_ITEM_AMOUNT -- final = original + sum(FINE, LATE_FEE)
        - sum(DISCOUNT, WAIVER).  The adjustment row and the due item update
        commit together or not at all.
    - A decrease never drives final_amount below zero.
    - status is recomputed in the same write; OVERDUE/WAIVED are kept.

Failure modes:
    - DueItemNotFoundError: due item missing in the tenant.
    - InvalidAmountError: amount <= 0, or a decrease below zero.
    - ValidationFailureError: unknown adjustment type.
    - ConcurrentModificationError: final amount changed between read and
      write (compare-and-set lost).
"""

from datetime import date
from uuid import UUID

from ledger_kernel.db.unit_of_work import UnitOfWork, UnitOfWorkFactory
from ledger_kernel.domain.calendar import BillingMonth
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import AdjustmentInfo, FeeLineTemplate
from ledger_kernel.domain.enums import DueAdjustmentStatus, DueAdjustmentType
from ledger_kernel.domain.late_fee import build_late_fee_adjustment
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.domain.status import status_after_adjustment
from ledger_kernel.exceptions import (
    ConcurrentModificationError,
    DueItemNotFoundError,
    InvalidAmountError,
    ValidationFailureError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.due import DueItem
from ledger_kernel.repositories.due_repository import (
    DueAdjustmentRepository,
    DueItemRepository,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.cache import (
    CacheInvalidator,
    CacheTags,
    NullCacheInvalidator,
    invalidate_after_commit,
)

logger = get_logger("services.due_adjustment")


def default_adjustment_title(adjustment_type: DueAdjustmentType) -> str:
    return adjustment_type.value.replace("_", " ").title()


class DueAdjustmentService(BaseService):
    """
    Applies adjustments to due items.

    Contract:
        Every successful call leaves exactly one new ACTIVE DueAdjustment and
        a DueItem whose final amount reflects it.

    Non-goals:
        - Adjustments are never edited or reversed in place; a correcting
          adjustment of the opposite kind is written instead.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Clock | None = None,
        cache: CacheInvalidator | None = None,
    ):
        super().__init__(uow_factory, clock)
        self.cache = cache or NullCacheInvalidator()
        self._items = DueItemRepository()
        self._adjustments = DueAdjustmentRepository()

    def apply_adjustment(
        self,
        due_item_id: UUID,
        adjustment_type: DueAdjustmentType | str,
        amount: MoneyAmount,
        reason: str | None,
        applied_by: str,
        tenant_id: str,
        title: str | None = None,
        category_id: str | None = None,
    ) -> AdjustmentInfo:
        """
        Apply one adjustment and update the due item's final amount.

        Preconditions:
            amount > 0.
        Postconditions:
            The adjustment and the new final amount are committed together.

        Raises:
            DueItemNotFoundError, InvalidAmountError, ValidationFailureError,
            ConcurrentModificationError.
        """
        try:
            kind = DueAdjustmentType(adjustment_type)
        except ValueError as e:
            raise ValidationFailureError(
                f"Unknown adjustment type: {adjustment_type!r}"
            ) from e

        amount = MoneyAmount.of(amount)
        if not amount.is_positive:
            raise InvalidAmountError(amount.amount, "adjustment amount must be positive")

        with self.uow_factory("apply_adjustment") as uow:
            item = self._items.get(uow, due_item_id, tenant_id, for_update=True)
            if item is None:
                raise DueItemNotFoundError(str(due_item_id))

            final = MoneyAmount.of(item.final_amount)
            paid = MoneyAmount.of(item.paid_amount)
            new_final = final + amount if kind.increases_amount else final - amount

            if new_final.is_negative:
                logger.warning(
                    "adjustment_rejected_negative_final",
                    extra={
                        "due_item_id": str(due_item_id),
                        "final_amount": str(final),
                        "amount": str(amount),
                    },
                )
                raise InvalidAmountError(
                    amount.amount,
                    f"{kind.value} would reduce final amount {final} below zero",
                )

            new_status = status_after_adjustment(item.status, paid, new_final)

            adjustment = self._adjustments.create(
                uow,
                tenant_id=tenant_id,
                due_item_id=item.id,
                title=title or default_adjustment_title(kind),
                amount=amount.amount,
                adjustment_type=kind,
                reason=reason,
                applied_by=applied_by,
                category_id=category_id,
            )

            # INVARIANT: DUE_ITEM_AMOUNT -- same unit of work as the row above
            if not self._items.compare_and_set_final(
                uow,
                item.id,
                expected_final=item.final_amount,
                new_final=new_final.amount,
                new_status=new_status,
            ):
                raise ConcurrentModificationError("DueItem", str(item.id))

            info = AdjustmentInfo.from_model(adjustment)
            student_id = item.due.student_id
            uow.commit()

        logger.info(
            "due_adjustment_applied",
            extra={
                "due_item_id": str(due_item_id),
                "adjustment_id": str(info.id),
                "adjustment_type": kind.value,
                "amount": str(amount),
                "final_amount": str(new_final),
                "status": new_status.value,
                "applied_by": applied_by,
            },
        )
        invalidate_after_commit(
            self.cache, CacheTags.for_dues(tenant_id, [student_id]), logger
        )
        return info

    def apply_late_fees(
        self,
        uow: UnitOfWork,
        lines: list[tuple[DueItem, FeeLineTemplate, BillingMonth]],
        reference_date: date,
    ) -> int:
        """
        Batched LATE_FEE path for freshly generated due items.

        Computes every late fee up front, then issues one batched insert for
        the adjustments and one batched update of the due items' final
        amounts.  Runs inside the caller's unit of work and never commits.

        Returns:
            Number of late-fee adjustments written.
        """
        rows: list[dict] = []
        new_finals: list[tuple[DueItem, MoneyAmount]] = []

        for item, line, month in lines:
            draft = build_late_fee_adjustment(line, month, reference_date)
            if draft is None:
                continue
            rows.append(
                {
                    "tenant_id": item.tenant_id,
                    "due_item_id": item.id,
                    "title": draft.title,
                    "amount": draft.amount.amount,
                    "adjustment_type": draft.adjustment_type,
                    "status": DueAdjustmentStatus.ACTIVE,
                    "reason": draft.reason,
                    "applied_by": draft.applied_by,
                    "category_id": line.category_id,
                }
            )
            new_finals.append(
                (item, MoneyAmount.of(item.final_amount) + draft.amount)
            )

        if not rows:
            return 0

        self._adjustments.insert_many(uow, rows)
        self._items.set_final_amounts(
            uow, [(item, final.amount) for item, final in new_finals]
        )

        logger.info(
            "late_fees_applied",
            extra={
                "count": len(rows),
                "reference_date": reference_date.isoformat(),
            },
        )
        return len(rows)
