"""
Ledger Invariants Contract.

These invariants are structural law for the tenant ledger.  No setting or
policy may switch them off.  Enforcement is distributed across
DueAdjustmentService, PaymentProcessingEngine, AccountLedgerService, the
repositories' conditional updates, CHECK constraints and the ORM
immutability listeners.  The checker functions below recompute each law
from stored data; tests and AccountSelector use them for reconciliation.
"""

from collections.abc import Iterable
from enum import Enum, unique
from uuid import UUID

from ledger_kernel.domain.dtos import AdjustmentInfo, ReceiptInfo, TransactionInfo
from ledger_kernel.domain.enums import DueAdjustmentStatus, TransactionType
from ledger_kernel.domain.money import MoneyAmount


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the ledger kernel."""

    DUE_ITEM_AMOUNT = "due_item_amount"
    """final = original + sum(FINE, LATE_FEE) - sum(DISCOUNT, WAIVER).
    Enforced by DueAdjustmentService writing the adjustment row and the
    due item update in one unit of work."""

    RECEIPT_SUM = "receipt_sum"
    """A receipt's total equals the sum of its payment lines.  Enforced by
    PaymentProcessingEngine."""

    NON_NEGATIVE_BALANCE = "non_negative_balance"
    """No expense, withdrawal or outgoing transfer drives a balance below
    zero.  Enforced by the conditional decrement and a CHECK constraint."""

    JOURNAL_PAIRING = "journal_pairing"
    """Every balance mutation has exactly one journal entry in the same
    unit of work."""

    APPEND_ONLY_HISTORY = "append_only_history"
    """Journal entries and adjustments are never updated or deleted.
    Enforced by ledger_kernel.db.immutability."""

    IDEMPOTENT_GENERATION = "idempotent_generation"
    """At most one StudentDue per (student, month, year).  Enforced by the
    set-difference algorithm and uq_student_due_month."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "ledger_config",
    "scripts",
)


def expected_final_amount(
    original: MoneyAmount, adjustments: Iterable[AdjustmentInfo]
) -> MoneyAmount:
    """Final amount implied by the original amount and active adjustments."""
    return original + MoneyAmount.total(
        adj.signed_amount
        for adj in adjustments
        if adj.status == DueAdjustmentStatus.ACTIVE
    )


def receipt_sum_holds(receipt: ReceiptInfo) -> bool:
    return receipt.total_amount == MoneyAmount.total(line.amount for line in receipt.lines)


def journal_balance(
    account_id: UUID, transactions: Iterable[TransactionInfo]
) -> MoneyAmount:
    """
    Balance of ``account_id`` reconstructed from the journal.

    INCOME and DEPOSIT add, EXPENSE and WITHDRAWAL subtract.  A
    FUND_TRANSFER subtracts from its source and adds to its counter account.
    """
    balance = MoneyAmount.zero()
    for txn in transactions:
        kind = TransactionType(txn.transaction_type)
        if kind in (TransactionType.INCOME, TransactionType.DEPOSIT):
            if txn.account_id == account_id:
                balance = balance + txn.amount
        elif kind in (TransactionType.EXPENSE, TransactionType.WITHDRAWAL):
            if txn.account_id == account_id:
                balance = balance - txn.amount
        elif kind == TransactionType.FUND_TRANSFER:
            if txn.account_id == account_id:
                balance = balance - txn.amount
            if txn.counter_account_id == account_id:
                balance = balance + txn.amount
    return balance
