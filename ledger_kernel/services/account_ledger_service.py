"""
AccountLedgerService -- tenant cash accounts and their journal.

Responsibility:
    Opens accounts and moves money into, out of and between them.  Every
    movement writes exactly one immutable LedgerTransaction in the same
    unit of work as the balance change.

Architecture position:
    Kernel > Services -- imperative shell.
    One UnitOfWork per public call.

Invariants enforced:
    NON_NEGATIVE_BALANCE -- decrements are a single conditional UPDATE
        (``balance = balance - :amt WHERE balance - :amt >= 0``); zero rows
        affected means the balance did not cover the amount.  Two concurrent
        withdrawals can never both pass against a stale balance.
    JOURNAL_PAIRING -- one journal entry per movement; a transfer writes
        one FUND_TRANSFER entry on the source with the destination as
        counter account.

Failure modes:
    - AccountNotFoundError: account missing in the tenant.
    - InsufficientBalanceError: decrement not covered by the balance.
    - InvalidAmountError: amount <= 0 (or negative opening balance).
    - ValidationFailureError: transfer to the same account.
    - ConcurrentModificationError: an account vanished mid-call, or the
      database chose this transfer as a deadlock victim.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import OperationalError

from ledger_kernel.db.unit_of_work import UnitOfWork, UnitOfWorkFactory
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import AccountInfo, AccountMovement, TransactionInfo
from ledger_kernel.domain.enums import AccountType, TransactionType
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ConcurrentModificationError,
    InsufficientBalanceError,
    InvalidAmountError,
    ValidationFailureError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import LedgerTransaction, TenantAccount
from ledger_kernel.repositories.account_repository import (
    LedgerTransactionRepository,
    TenantAccountRepository,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.cache import (
    CacheInvalidator,
    CacheTags,
    NullCacheInvalidator,
    invalidate_after_commit,
)

logger = get_logger("services.account_ledger")


def _is_deadlock(exc: OperationalError) -> bool:
    return "deadlock" in str(exc).lower()


def _positive(amount: MoneyAmount | Decimal | int | str) -> MoneyAmount:
    value = MoneyAmount.of(amount)
    if not value.is_positive:
        raise InvalidAmountError(value.amount, "amount must be positive")
    return value


class AccountLedgerService(BaseService):
    """
    Deposits, withdrawals, transfers, income and expenses.

    Contract:
        Each call returns an AccountMovement holding the account as stored
        after the change and the journal entry written for it.

    Guarantees:
        - Balance and journal entry commit together.
        - Balances never go below zero, under any interleaving.

    Non-goals:
        - Does NOT edit or delete journal entries.
        - Does NOT close accounts.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Clock | None = None,
        cache: CacheInvalidator | None = None,
    ):
        super().__init__(uow_factory, clock)
        self.cache = cache or NullCacheInvalidator()
        self._accounts = TenantAccountRepository()
        self._journal = LedgerTransactionRepository()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def open_account(
        self,
        tenant_id: str,
        title: str,
        account_type: AccountType | str,
        actor: str,
        opening_balance: MoneyAmount | Decimal | int | str = 0,
    ) -> AccountInfo:
        """
        Create an account.  A positive opening balance is booked as a
        DEPOSIT entry in the same unit of work.
        """
        kind = AccountType(account_type)
        opening = MoneyAmount.of(opening_balance)
        if opening.is_negative:
            raise InvalidAmountError(opening.amount, "opening balance cannot be negative")

        with self.uow_factory("open_account") as uow:
            account = self._accounts.create(
                uow, tenant_id=tenant_id, title=title, account_type=kind
            )
            if opening.is_positive:
                self._accounts.increment(uow, account.id, tenant_id, opening.amount)
                self._journal.record(
                    uow,
                    tenant_id=tenant_id,
                    transaction_type=TransactionType.DEPOSIT,
                    amount=opening.amount,
                    label=f"Opening balance of {title}",
                    account_id=account.id,
                    transaction_by=actor,
                )
            info = AccountInfo.from_model(self._reload(uow, account.id, tenant_id))
            uow.commit()

        logger.info(
            "account_opened",
            extra={
                "account_id": str(info.id),
                "tenant_id": tenant_id,
                "account_type": kind.value,
                "opening_balance": str(opening),
            },
        )
        invalidate_after_commit(
            self.cache, CacheTags.for_account_movement(tenant_id, [info.id]), logger
        )
        return info

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def deposit(
        self,
        account_id: UUID,
        amount: MoneyAmount | Decimal | int | str,
        actor: str,
        tenant_id: str,
        note: str | None = None,
    ) -> AccountMovement:
        amount = _positive(amount)
        with self.uow_factory("deposit") as uow:
            account = self._require(uow, account_id, tenant_id)
            self._credit(uow, account, amount)
            entry = self._journal.record(
                uow,
                tenant_id=tenant_id,
                transaction_type=TransactionType.DEPOSIT,
                amount=amount.amount,
                label=f"Deposit to {account.title}",
                account_id=account.id,
                transaction_by=actor,
                note=note or f"{amount} deposit to {account.title}",
            )
            movement = self._movement(uow, account.id, tenant_id, entry)
            uow.commit()

        return self._finish("deposit_recorded", movement, actor)

    def withdraw(
        self,
        account_id: UUID,
        amount: MoneyAmount | Decimal | int | str,
        actor: str,
        tenant_id: str,
        note: str | None = None,
    ) -> AccountMovement:
        """
        Take money out of an account.

        Raises:
            AccountNotFoundError, InvalidAmountError,
            InsufficientBalanceError (balance left unchanged).
        """
        amount = _positive(amount)
        with self.uow_factory("withdraw") as uow:
            account = self._require(uow, account_id, tenant_id)
            self._debit(uow, account, amount, "withdrawal")
            entry = self._journal.record(
                uow,
                tenant_id=tenant_id,
                transaction_type=TransactionType.WITHDRAWAL,
                amount=amount.amount,
                label=f"Withdrawal from {account.title}",
                account_id=account.id,
                transaction_by=actor,
                note=note or f"{amount} withdrawal from {account.title}",
            )
            movement = self._movement(uow, account.id, tenant_id, entry)
            uow.commit()

        return self._finish("withdrawal_recorded", movement, actor)

    def transfer(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: MoneyAmount | Decimal | int | str,
        actor: str,
        tenant_id: str,
        note: str | None = None,
    ) -> AccountMovement:
        """
        Move money between two accounts of one tenant.

        Writes a single FUND_TRANSFER entry attributed to the source account
        with the destination as counter account.

        Raises:
            ValidationFailureError: Source and destination are the same.
            AccountNotFoundError, InvalidAmountError,
            InsufficientBalanceError.
        """
        amount = _positive(amount)
        if str(from_account_id) == str(to_account_id):
            raise ValidationFailureError("Cannot transfer to the same account")

        try:
            with self.uow_factory("transfer") as uow:
                # Both rows are locked in id order, so opposing transfers
                # between the same pair queue instead of deadlocking.
                locked = self._accounts.get_many(
                    uow, [from_account_id, to_account_id], tenant_id, for_update=True
                )
                source = locked.get(from_account_id)
                if source is None:
                    raise AccountNotFoundError(str(from_account_id))
                destination = locked.get(to_account_id)
                if destination is None:
                    raise AccountNotFoundError(str(to_account_id))

                self._debit(uow, source, amount, "transfer")
                self._credit(uow, destination, amount)

                # INVARIANT: JOURNAL_PAIRING -- exactly one entry per transfer
                entry = self._journal.record(
                    uow,
                    tenant_id=tenant_id,
                    transaction_type=TransactionType.FUND_TRANSFER,
                    amount=amount.amount,
                    label=f"Fund Transfer {source.title} -> {destination.title}",
                    account_id=source.id,
                    transaction_by=actor,
                    note=note
                    or f"{amount} transfer from {source.title} to {destination.title}",
                    counter_account_id=destination.id,
                )
                movement = self._movement(
                    uow, source.id, tenant_id, entry, counter_account_id=destination.id
                )
                uow.commit()
        except OperationalError as e:
            if not _is_deadlock(e):
                raise
            logger.warning(
                "transfer_deadlock",
                extra={
                    "from_account_id": str(from_account_id),
                    "to_account_id": str(to_account_id),
                },
            )
            raise ConcurrentModificationError("TenantAccount", str(from_account_id)) from e

        return self._finish("transfer_recorded", movement, actor)

    def record_income(
        self,
        account_id: UUID,
        amount: MoneyAmount | Decimal | int | str,
        actor: str,
        tenant_id: str,
        label: str,
        note: str | None = None,
        category_id: str | None = None,
    ) -> AccountMovement:
        """Free-standing INCOME entry with the matching balance increase."""
        amount = _positive(amount)
        with self.uow_factory("record_income") as uow:
            account = self._require(uow, account_id, tenant_id)
            self._credit(uow, account, amount)
            entry = self._journal.record(
                uow,
                tenant_id=tenant_id,
                transaction_type=TransactionType.INCOME,
                amount=amount.amount,
                label=label,
                account_id=account.id,
                transaction_by=actor,
                note=note,
                category_id=category_id,
            )
            movement = self._movement(uow, account.id, tenant_id, entry)
            uow.commit()

        return self._finish("income_recorded", movement, actor)

    def record_expense(
        self,
        account_id: UUID,
        amount: MoneyAmount | Decimal | int | str,
        actor: str,
        tenant_id: str,
        label: str,
        note: str | None = None,
        category_id: str | None = None,
    ) -> AccountMovement:
        """Free-standing EXPENSE entry; the balance must cover it."""
        amount = _positive(amount)
        with self.uow_factory("record_expense") as uow:
            account = self._require(uow, account_id, tenant_id)
            self._debit(uow, account, amount, "expense")
            entry = self._journal.record(
                uow,
                tenant_id=tenant_id,
                transaction_type=TransactionType.EXPENSE,
                amount=amount.amount,
                label=label,
                account_id=account.id,
                transaction_by=actor,
                note=note,
                category_id=category_id,
            )
            movement = self._movement(uow, account.id, tenant_id, entry)
            uow.commit()

        return self._finish("expense_recorded", movement, actor)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require(self, uow: UnitOfWork, account_id: UUID, tenant_id: str) -> TenantAccount:
        account = self._accounts.get(uow, account_id, tenant_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def _credit(self, uow: UnitOfWork, account: TenantAccount, amount: MoneyAmount) -> None:
        if not self._accounts.increment(uow, account.id, account.tenant_id, amount.amount):
            raise ConcurrentModificationError("TenantAccount", str(account.id))

    def _debit(
        self,
        uow: UnitOfWork,
        account: TenantAccount,
        amount: MoneyAmount,
        operation: str,
    ) -> None:
        # INVARIANT: NON_NEGATIVE_BALANCE -- check and write are one statement
        if self._accounts.decrement_if_sufficient(
            uow, account.id, account.tenant_id, amount.amount
        ):
            return
        available = self._accounts.current_balance(uow, account.id, account.tenant_id)
        if available is None:
            raise ConcurrentModificationError("TenantAccount", str(account.id))
        available = MoneyAmount.of(available)
        logger.warning(
            f"{operation}_rejected",
            extra={
                "account_id": str(account.id),
                "account_title": account.title,
                "requested": str(amount),
                "available": str(available),
            },
        )
        raise InsufficientBalanceError(
            str(account.id),
            account.title,
            amount.amount,
            available.amount,
            operation=operation,
        )

    def _reload(self, uow: UnitOfWork, account_id: UUID, tenant_id: str) -> TenantAccount:
        account = self._accounts.refreshed(uow, account_id, tenant_id)
        if account is None:
            raise ConcurrentModificationError("TenantAccount", str(account_id))
        return account

    def _movement(
        self,
        uow: UnitOfWork,
        account_id: UUID,
        tenant_id: str,
        entry: LedgerTransaction,
        counter_account_id: UUID | None = None,
    ) -> AccountMovement:
        account_ids = [account_id]
        counter = None
        if counter_account_id is not None:
            counter = AccountInfo.from_model(
                self._reload(uow, counter_account_id, tenant_id)
            )
            account_ids.append(counter_account_id)
        return AccountMovement(
            account=AccountInfo.from_model(self._reload(uow, account_id, tenant_id)),
            transaction=TransactionInfo.from_model(entry),
            counter_account=counter,
            cache_tags=CacheTags.for_account_movement(tenant_id, account_ids),
        )

    def _finish(self, event: str, movement: AccountMovement, actor: str) -> AccountMovement:
        entry = movement.transaction
        with LogContext.bind(tenant_id=entry.tenant_id, actor=actor):
            logger.info(
                event,
                extra={
                    "account_id": str(entry.account_id),
                    "counter_account_id": (
                        str(entry.counter_account_id)
                        if entry.counter_account_id
                        else None
                    ),
                    "transaction_id": str(entry.id),
                    "transaction_type": entry.transaction_type.value,
                    "amount": str(entry.amount),
                    "balance": str(movement.account.balance),
                },
            )
        invalidate_after_commit(self.cache, movement.cache_tags, logger)
        return movement
