"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for tenant cash accounts and the immutable
    journal of balance movements.
Architecture position: Kernel > Models.  May import from db/ and domain/enums.

Invariants enforced:
    - balance >= 0 (ck_tenant_account_balance_non_negative) backs the
      conditional decrement issued by AccountRepository.
    - Every balance mutation is paired with exactly one LedgerTransaction
      in the same unit of work (enforced by the services).
    - LedgerTransaction rows are never updated or deleted (ORM listeners).

Failure modes:
    - IntegrityError if a write would push a balance below zero.
    - ImmutabilityViolationError on journal edits.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.enums import AccountType, TransactionType


class TenantAccount(TrackedBase):
    """A tenant-owned cash, bank or wallet account."""

    __tablename__ = "tenant_accounts"

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_tenant_account_balance_non_negative"),
        Index("idx_tenant_account_tenant", "tenant_id"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(
        "type",
        String(20),
        default=AccountType.CASH,
        nullable=False,
    )

    balance: Mapped[Decimal] = mapped_column(
        default=Decimal("0"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<TenantAccount {self.id} {self.title!r} balance={self.balance}>"


class LedgerTransaction(TrackedBase):
    """
    Immutable journal entry for one balance movement.

    Guarantees:
        - amount is positive; transaction_type gives the direction.
        - A FUND_TRANSFER is attributed to its source account and names the
          destination in counter_account_id.
    """

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_ledger_transaction_amount_positive"),
        Index("idx_ledger_txn_account", "account_id"),
        Index("idx_ledger_txn_counter_account", "counter_account_id"),
        Index("idx_ledger_txn_tenant_type", "tenant_id", "type"),
    )

    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    transaction_type: Mapped[TransactionType] = mapped_column(
        "type",
        String(20),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    label: Mapped[str] = mapped_column(String(255), nullable=False)

    note: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("tenant_accounts.id"),
        nullable=False,
    )

    # Destination of a FUND_TRANSFER
    counter_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("tenant_accounts.id"),
        nullable=True,
    )

    category_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    transaction_by: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<LedgerTransaction {self.transaction_type} {self.amount}>"
