"""
Module: ledger_kernel.repositories.account_repository
Responsibility: Data access for tenant accounts and their journal.
Architecture position: Kernel > Repositories.

Invariants enforced:
    - Balance changes are single atomic UPDATE statements evaluated by the
      database (``balance = balance +/- :amount``), never read-modify-write
      in Python.
    - A decrement only happens when the balance covers it
      (``WHERE balance - :amount >= 0``); the caller learns the outcome from
      the affected row count.

Failure modes:
    - The methods report outcomes as booleans; mapping to
      InsufficientBalanceError / AccountNotFoundError is the service's job.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update

from ledger_kernel.domain.money import MONEY_DECIMAL_PLACES
from ledger_kernel.db.unit_of_work import UnitOfWork
from ledger_kernel.domain.enums import AccountType, TransactionType
from ledger_kernel.models.account import LedgerTransaction, TenantAccount
from ledger_kernel.repositories.base import BaseRepository


def _rounded(expr):
    # Keeps stored balances on the 2dp grid on backends without native decimals
    return func.round(expr, MONEY_DECIMAL_PLACES)


class TenantAccountRepository(BaseRepository[TenantAccount]):
    """Tenant accounts and atomic balance movements."""

    model = TenantAccount

    def create(
        self,
        uow: UnitOfWork,
        *,
        tenant_id: str,
        title: str,
        account_type: AccountType,
    ) -> TenantAccount:
        return self.add(
            uow,
            TenantAccount(
                tenant_id=tenant_id,
                title=title,
                account_type=account_type,
                balance=Decimal("0"),
            ),
        )

    def increment(
        self, uow: UnitOfWork, account_id: UUID, tenant_id: str, amount: Decimal
    ) -> bool:
        """``balance = balance + amount``.  False when the row is missing."""
        result = uow.session.execute(
            update(TenantAccount)
            .where(
                TenantAccount.id == account_id,
                TenantAccount.tenant_id == tenant_id,
            )
            .values(balance=_rounded(TenantAccount.balance + amount))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def decrement_if_sufficient(
        self, uow: UnitOfWork, account_id: UUID, tenant_id: str, amount: Decimal
    ) -> bool:
        """
        ``balance = balance - amount`` only when the balance covers it.

        False when the balance is insufficient or the row is missing.
        """
        result = uow.session.execute(
            update(TenantAccount)
            .where(
                TenantAccount.id == account_id,
                TenantAccount.tenant_id == tenant_id,
                _rounded(TenantAccount.balance - amount) >= 0,
            )
            .values(balance=_rounded(TenantAccount.balance - amount))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def current_balance(
        self, uow: UnitOfWork, account_id: UUID, tenant_id: str
    ) -> Decimal | None:
        """Balance as stored right now (bypasses the identity map)."""
        return uow.session.execute(
            select(TenantAccount.balance).where(
                TenantAccount.id == account_id,
                TenantAccount.tenant_id == tenant_id,
            )
        ).scalar_one_or_none()

    def refreshed(
        self, uow: UnitOfWork, account_id: UUID, tenant_id: str
    ) -> TenantAccount | None:
        """Reload the account so that in-session objects see SQL-side updates."""
        return uow.session.execute(
            select(TenantAccount)
            .where(
                TenantAccount.id == account_id,
                TenantAccount.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_for_tenant(self, uow: UnitOfWork, tenant_id: str) -> list[TenantAccount]:
        return list(
            uow.session.execute(
                select(TenantAccount)
                .where(TenantAccount.tenant_id == tenant_id)
                .order_by(TenantAccount.title, TenantAccount.id)
            ).scalars()
        )


class LedgerTransactionRepository(BaseRepository[LedgerTransaction]):
    """Append-only journal."""

    model = LedgerTransaction

    def record(
        self,
        uow: UnitOfWork,
        *,
        tenant_id: str,
        transaction_type: TransactionType,
        amount: Decimal,
        label: str,
        account_id: UUID,
        transaction_by: str,
        note: str | None = None,
        counter_account_id: UUID | None = None,
        category_id: str | None = None,
    ) -> LedgerTransaction:
        return self.add(
            uow,
            LedgerTransaction(
                tenant_id=tenant_id,
                transaction_type=transaction_type,
                amount=amount,
                label=label,
                account_id=account_id,
                transaction_by=transaction_by,
                note=note,
                counter_account_id=counter_account_id,
                category_id=category_id,
            ),
        )

    def list_for_tenant(
        self,
        uow: UnitOfWork,
        tenant_id: str,
        *,
        account_id: UUID | None = None,
        transaction_type: TransactionType | None = None,
    ) -> list[LedgerTransaction]:
        stmt = select(LedgerTransaction).where(LedgerTransaction.tenant_id == tenant_id)
        if account_id is not None:
            stmt = stmt.where(
                (LedgerTransaction.account_id == account_id)
                | (LedgerTransaction.counter_account_id == account_id)
            )
        if transaction_type is not None:
            stmt = stmt.where(LedgerTransaction.transaction_type == transaction_type)
        stmt = stmt.order_by(LedgerTransaction.created_at, LedgerTransaction.id)
        return list(uow.session.execute(stmt).scalars())
