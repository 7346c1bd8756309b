"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that cross the service boundary:
    payment allocations and receipts, due items and adjustments, account
    and journal views, generation parameters and summaries.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of database access.  from_model() class methods exist as boundary
    converters but are only invoked from repositories and selectors.

Invariants enforced:
    - Monetary fields are MoneyAmount, never raw Decimal or float.
    - Services return DTOs, never ORM entities.

Failure modes:
    - TypeError / ValueError from MoneyAmount on malformed amounts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.enums import (
    AccountType,
    DueAdjustmentStatus,
    DueAdjustmentType,
    DueItemStatus,
    FeeFrequency,
    FeeTargetType,
    LateFeeFrequency,
    PaymentMethod,
    TransactionType,
)
from ledger_kernel.domain.money import MoneyAmount

if TYPE_CHECKING:
    from ledger_kernel.models.account import LedgerTransaction as LedgerTransactionModel
    from ledger_kernel.models.account import TenantAccount as TenantAccountModel
    from ledger_kernel.models.due import DueAdjustment as DueAdjustmentModel
    from ledger_kernel.models.fee_structure import FeeItem as FeeItemModel


# ---------------------------------------------------------------------------
# Fee structure / generation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeeLineTemplate:
    """
    One line of a fee structure, as billed every generated month.

    ``frequency`` is informational; every active line is billed for every
    generated month.
    """

    name: str
    amount: MoneyAmount
    frequency: FeeFrequency = FeeFrequency.MONTHLY
    position: int = 0
    description: str | None = None
    category_id: str | None = None
    late_fee_enabled: bool = False
    late_fee_amount: MoneyAmount | None = None
    late_fee_frequency: LateFeeFrequency | None = None
    late_fee_grace_days: int = 0

    @classmethod
    def from_model(cls, model: FeeItemModel) -> FeeLineTemplate:
        return cls(
            name=model.name,
            amount=MoneyAmount.of(model.amount),
            frequency=FeeFrequency(model.frequency),
            position=model.position,
            description=model.description,
            category_id=model.category_id,
            late_fee_enabled=model.late_fee_enabled,
            late_fee_amount=(
                MoneyAmount.of(model.late_fee_amount)
                if model.late_fee_amount is not None
                else None
            ),
            late_fee_frequency=(
                LateFeeFrequency(model.late_fee_frequency)
                if model.late_fee_frequency
                else None
            ),
            late_fee_grace_days=model.late_fee_grace_days or 0,
        )


@dataclass(frozen=True)
class GenerationParams:
    """Explicit per-student parameters for batch generation."""

    student_id: UUID
    tenant_id: str
    admission_date: date
    target_date: date
    fee_structure_id: UUID | None = None
    reference_date: date | None = None


@dataclass(frozen=True)
class DueCreationResult:
    """Summary of one student's generation run."""

    message: str
    created_dues_count: int
    skipped_dues_count: int
    total_due_items_created: int
    months_created: tuple[str, ...] = ()
    months_skipped: tuple[str, ...] = ()
    late_fees_applied: int = 0


@dataclass(frozen=True)
class EnsureDuesResult:
    needs_update: bool
    dues_created: int
    message: str
    success: bool = True


@dataclass(frozen=True)
class BatchError:
    student_id: str
    error: str
    code: str | None = None


@dataclass(frozen=True)
class BatchGenerationResult:
    """Aggregate outcome of a multi-student generation run."""

    students_processed: int
    students_updated: int
    total_dues_created: int
    errors: tuple[BatchError, ...] = ()

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class FeeAdditionTarget:
    """Who receives an ad-hoc fee: a class, a section or one student."""

    target_type: FeeTargetType
    class_id: str | None = None
    section_id: str | None = None
    student_id: UUID | None = None


@dataclass(frozen=True)
class FeeDetails:
    title: str
    amount: MoneyAmount
    month: int
    year: int
    category_id: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class FeeAdditionResult:
    students_affected: int
    dues_created: int
    due_items_created: int
    cache_tags: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return f"Fee added successfully to {self.students_affected} student(s)"


# ---------------------------------------------------------------------------
# Due items / adjustments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdjustmentInfo:
    id: UUID
    tenant_id: str
    due_item_id: UUID
    title: str
    amount: MoneyAmount
    adjustment_type: DueAdjustmentType
    status: DueAdjustmentStatus
    reason: str | None
    applied_by: str
    category_id: str | None = None
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> MoneyAmount:
        """Effect on the due item's final amount."""
        if self.adjustment_type.increases_amount:
            return self.amount
        return -self.amount

    @classmethod
    def from_model(cls, model: DueAdjustmentModel) -> AdjustmentInfo:
        return cls(
            id=model.id,
            tenant_id=model.tenant_id,
            due_item_id=model.due_item_id,
            title=model.title,
            amount=MoneyAmount.of(model.amount),
            adjustment_type=DueAdjustmentType(model.adjustment_type),
            status=DueAdjustmentStatus(model.status),
            reason=model.reason,
            applied_by=model.applied_by,
            category_id=model.category_id,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class DueItemInfo:
    """A due item with its billing month and (optionally) its adjustments."""

    id: UUID
    tenant_id: str
    due_id: UUID
    student_id: UUID
    month: int
    year: int
    title: str
    description: str | None
    original_amount: MoneyAmount
    final_amount: MoneyAmount
    paid_amount: MoneyAmount
    status: DueItemStatus
    category_id: str | None = None
    adjustments: tuple[AdjustmentInfo, ...] = ()

    @property
    def outstanding(self) -> MoneyAmount:
        remaining = self.final_amount - self.paid_amount
        return remaining if remaining.is_positive else MoneyAmount.zero()


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PaymentAllocation:
    """
    One line of a payment batch: an amount paid toward one due item into
    one account.
    """

    tenant_id: str
    student_id: UUID
    collected_by: str
    due_item_id: UUID
    account_id: UUID
    amount: MoneyAmount
    month: int
    year: int
    reason: str | None = None
    category_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", MoneyAmount.of(self.amount))


@dataclass(frozen=True)
class PaymentLineInfo:
    id: UUID
    due_item_id: UUID
    account_id: UUID
    amount: MoneyAmount
    method: PaymentMethod
    month: int
    year: int
    reason: str | None = None


@dataclass(frozen=True)
class ReceiptInfo:
    """Aggregate receipt for one payment batch."""

    id: UUID
    tenant_id: str
    student_id: UUID
    total_amount: MoneyAmount
    collected_by: str
    transaction_date: datetime
    print_count: int = 0
    lines: tuple[PaymentLineInfo, ...] = ()


@dataclass(frozen=True)
class PaymentResult:
    receipt: ReceiptInfo
    updated_due_items_count: int
    created_transactions_count: int
    created_payments_count: int
    total_amount: MoneyAmount
    cache_tags: tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Accounts / journal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountInfo:
    id: UUID
    tenant_id: str
    title: str
    account_type: AccountType
    balance: MoneyAmount

    @classmethod
    def from_model(cls, model: TenantAccountModel) -> AccountInfo:
        return cls(
            id=model.id,
            tenant_id=model.tenant_id,
            title=model.title,
            account_type=AccountType(model.account_type),
            balance=MoneyAmount.of(model.balance),
        )


@dataclass(frozen=True)
class TransactionInfo:
    """An immutable journal entry."""

    id: UUID
    tenant_id: str
    account_id: UUID
    transaction_type: TransactionType
    amount: MoneyAmount
    label: str
    transaction_by: str
    note: str | None = None
    counter_account_id: UUID | None = None
    category_id: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: LedgerTransactionModel) -> TransactionInfo:
        return cls(
            id=model.id,
            tenant_id=model.tenant_id,
            account_id=model.account_id,
            transaction_type=TransactionType(model.transaction_type),
            amount=MoneyAmount.of(model.amount),
            label=model.label,
            transaction_by=model.transaction_by,
            note=model.note,
            counter_account_id=model.counter_account_id,
            category_id=model.category_id,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class AccountMovement:
    """Result of a deposit, withdrawal, transfer, income or expense."""

    account: AccountInfo
    transaction: TransactionInfo
    counter_account: AccountInfo | None = None
    cache_tags: tuple[str, ...] = ()
