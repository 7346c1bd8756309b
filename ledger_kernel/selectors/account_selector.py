"""
Module: ledger_kernel.selectors.account_selector
Responsibility: Read-only access to tenant accounts and the journal, and
    reconciliation of stored balances against the journal.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - The journal-derived balance is computed by
      ledger_kernel.invariants.journal_balance(); a stored balance that
      disagrees with it means a movement bypassed the journal.
"""

from dataclasses import dataclass
from uuid import UUID

from ledger_kernel.domain.dtos import AccountInfo, TransactionInfo
from ledger_kernel.domain.enums import TransactionType
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.invariants import journal_balance
from ledger_kernel.repositories.account_repository import (
    LedgerTransactionRepository,
    TenantAccountRepository,
)
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class BalanceReconciliation:
    """Stored balance next to the balance rebuilt from the journal."""

    account_id: UUID
    stored_balance: MoneyAmount
    journal_balance: MoneyAmount

    @property
    def difference(self) -> MoneyAmount:
        return self.stored_balance - self.journal_balance

    @property
    def is_balanced(self) -> bool:
        return self.difference.is_zero


class AccountSelector(BaseSelector):
    """Queries over accounts and journal entries."""

    def __init__(self, uow):
        super().__init__(uow)
        self._accounts = TenantAccountRepository()
        self._journal = LedgerTransactionRepository()

    def account(self, account_id: UUID, tenant_id: str) -> AccountInfo | None:
        account = self._accounts.get(self.uow, account_id, tenant_id)
        return AccountInfo.from_model(account) if account is not None else None

    def accounts(self, tenant_id: str) -> list[AccountInfo]:
        return [
            AccountInfo.from_model(a)
            for a in self._accounts.list_for_tenant(self.uow, tenant_id)
        ]

    def journal(
        self,
        tenant_id: str,
        *,
        account_id: UUID | None = None,
        transaction_type: TransactionType | None = None,
    ) -> list[TransactionInfo]:
        """
        Journal entries of the tenant, oldest first.

        With ``account_id`` a transfer is included on both of its accounts.
        """
        return [
            TransactionInfo.from_model(t)
            for t in self._journal.list_for_tenant(
                self.uow,
                tenant_id,
                account_id=account_id,
                transaction_type=transaction_type,
            )
        ]

    def journal_balance(self, account_id: UUID, tenant_id: str) -> MoneyAmount:
        return journal_balance(
            account_id, self.journal(tenant_id, account_id=account_id)
        )

    def reconcile(self, account_id: UUID, tenant_id: str) -> BalanceReconciliation | None:
        stored = self._accounts.current_balance(self.uow, account_id, tenant_id)
        if stored is None:
            return None
        return BalanceReconciliation(
            account_id=account_id,
            stored_balance=MoneyAmount.of(stored),
            journal_balance=self.journal_balance(account_id, tenant_id),
        )
