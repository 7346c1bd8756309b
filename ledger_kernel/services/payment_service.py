"""
PaymentProcessingEngine -- atomic multi-item payment processing.

Responsibility:
    Turns one batch of payment allocations into a receipt, one payment line
    and one INCOME journal entry per allocation, the paid amount and status
    of every touched due item, and the balance of every receiving account.
    Everything commits together or nothing does.

Architecture position:
    Kernel > Services -- imperative shell.
    Owns one UnitOfWork per process_payment() call.

Invariants enforced:
    RECEIPT_SUM -- receipt.total_amount == sum of its payment lines.
    JOURNAL_PAIRING -- one INCOME entry per payment line, same account and
        amount.
    - Due items and accounts are locked FOR UPDATE in id order on backends
      that support row locks; due item writes are compare-and-set and
      balance writes are atomic SQL increments everywhere.
    - Over-payment is rejected unless the engine runs with the
      ALLOW_CREDIT policy.

Failure modes:
    - ValidationFailureError: empty batch.
    - InvalidAmountError: non-positive allocation amount.
    - InconsistentBatchError: allocations disagree on tenant, student or
      collector, or a due item belongs to another student.
    - DueItemNotFoundError / AccountNotFoundError: referenced row missing.
    - OverpaymentError: allocation exceeds the outstanding amount.
    - ConcurrentModificationError: a row vanished or changed between the
      fetch and the write; the whole batch is rolled back.
    - ReceiptNotFoundError: record_receipt_print() on an unknown receipt.
"""

from collections import defaultdict
from uuid import UUID

from ledger_kernel.db.unit_of_work import UnitOfWorkFactory
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import (
    PaymentAllocation,
    PaymentLineInfo,
    PaymentResult,
    ReceiptInfo,
)
from ledger_kernel.domain.enums import (
    OverpaymentPolicy,
    PaymentMethod,
    TransactionType,
    payment_method_for,
)
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.domain.status import status_after_payment
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ConcurrentModificationError,
    DueItemNotFoundError,
    InconsistentBatchError,
    InvalidAmountError,
    OverpaymentError,
    ReceiptNotFoundError,
    ValidationFailureError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.repositories.account_repository import (
    LedgerTransactionRepository,
    TenantAccountRepository,
)
from ledger_kernel.repositories.due_repository import DueItemRepository
from ledger_kernel.repositories.payment_repository import (
    PaymentTransactionRepository,
    StudentPaymentRepository,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.cache import (
    CacheInvalidator,
    CacheTags,
    NullCacheInvalidator,
    invalidate_after_commit,
)

logger = get_logger("services.payment")

DEFAULT_PAYMENT_TIMEOUT_SECONDS = 30.0

PAYMENT_JOURNAL_LABEL = "Student Payment"
DEFAULT_PAYMENT_NOTE = "Fee Collection"

# Fields every allocation of one batch must agree on
_BATCH_CONTEXT_FIELDS = ("tenant_id", "student_id", "collected_by")


def _check_batch_consistency(allocations: list[PaymentAllocation]) -> None:
    first = allocations[0]
    for allocation in allocations[1:]:
        for field_name in _BATCH_CONTEXT_FIELDS:
            expected = getattr(first, field_name)
            received = getattr(allocation, field_name)
            if str(expected) != str(received):
                raise InconsistentBatchError(field_name, expected, received)


class PaymentProcessingEngine(BaseService):
    """
    Processes payment batches.

    Contract:
        process_payment() receives allocations for ONE student collected by
        ONE person in ONE tenant, and returns a PaymentResult built before
        commit from the rows it wrote.

    Guarantees:
        - Two allocations to the same due item compose: the second sees the
          paid amount produced by the first.
        - Each receiving account gets one increment per batch, summed over
          its allocations.
        - Cache invalidation happens after commit and never fails the
          payment.

    Non-goals:
        - Does NOT refund or reverse payments.
        - Does NOT split one allocation across due items.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        clock: Clock | None = None,
        cache: CacheInvalidator | None = None,
        overpayment_policy: OverpaymentPolicy | str = OverpaymentPolicy.REJECT,
        payment_timeout_seconds: float | None = DEFAULT_PAYMENT_TIMEOUT_SECONDS,
    ):
        super().__init__(uow_factory, clock)
        self.cache = cache or NullCacheInvalidator()
        self.overpayment_policy = OverpaymentPolicy(overpayment_policy)
        self.payment_timeout_seconds = payment_timeout_seconds
        self._items = DueItemRepository()
        self._accounts = TenantAccountRepository()
        self._journal = LedgerTransactionRepository()
        self._receipts = PaymentTransactionRepository()
        self._lines = StudentPaymentRepository()

    def process_payment(self, allocations: list[PaymentAllocation]) -> PaymentResult:
        """
        Record one payment batch atomically.

        Preconditions (checked before any write):
            Non-empty batch, positive amounts, shared tenant/student/
            collector, every due item and account present in the tenant.

        Raises:
            ValidationFailureError, InvalidAmountError,
            InconsistentBatchError, DueItemNotFoundError,
            AccountNotFoundError, OverpaymentError,
            ConcurrentModificationError.
        """
        allocations = list(allocations)
        if not allocations:
            raise ValidationFailureError("Payment batch must contain at least one allocation")
        for allocation in allocations:
            if not allocation.amount.is_positive:
                raise InvalidAmountError(
                    allocation.amount.amount, "payment amount must be positive"
                )
        _check_batch_consistency(allocations)

        first = allocations[0]
        tenant_id = first.tenant_id
        student_id = first.student_id
        collected_by = first.collected_by
        total = MoneyAmount.total(a.amount for a in allocations)

        with LogContext.bind(
            tenant_id=tenant_id, student_id=str(student_id), actor=collected_by
        ), self.uow_factory(
            "process_payment", statement_timeout_seconds=self.payment_timeout_seconds
        ) as uow:
            due_item_ids = list(dict.fromkeys(a.due_item_id for a in allocations))
            account_ids = list(dict.fromkeys(a.account_id for a in allocations))

            items = self._items.get_many(uow, due_item_ids, tenant_id, for_update=True)
            for due_item_id in due_item_ids:
                if due_item_id not in items:
                    raise DueItemNotFoundError(str(due_item_id))

            accounts = self._accounts.get_many(
                uow, account_ids, tenant_id, for_update=True
            )
            for account_id in account_ids:
                if account_id not in accounts:
                    raise AccountNotFoundError(str(account_id))

            owners = self._items.student_id_for(uow, due_item_ids)
            for due_item_id in due_item_ids:
                owner = owners.get(due_item_id)
                if str(owner) != str(student_id):
                    raise InconsistentBatchError("student_id", student_id, owner)

            # Running paid amount per due item, so allocations compose
            new_paid: dict[UUID, MoneyAmount] = {
                item_id: MoneyAmount.of(item.paid_amount)
                for item_id, item in items.items()
            }
            account_increments: dict[UUID, MoneyAmount] = defaultdict(MoneyAmount.zero)

            for allocation in allocations:
                item = items[allocation.due_item_id]
                final = MoneyAmount.of(item.final_amount)
                outstanding = final - new_paid[item.id]
                if (
                    self.overpayment_policy is OverpaymentPolicy.REJECT
                    and allocation.amount > outstanding
                ):
                    logger.warning(
                        "overpayment_rejected",
                        extra={
                            "due_item_id": str(item.id),
                            "requested": str(allocation.amount),
                            "outstanding": str(outstanding),
                        },
                    )
                    raise OverpaymentError(
                        str(item.id),
                        item.title,
                        allocation.amount.amount,
                        max(outstanding, MoneyAmount.zero()).amount,
                    )
                new_paid[item.id] = new_paid[item.id] + allocation.amount
                account_increments[allocation.account_id] = (
                    account_increments[allocation.account_id] + allocation.amount
                )

            receipt = self._receipts.create_receipt(
                uow,
                tenant_id=tenant_id,
                student_id=student_id,
                total_amount=total.amount,
                collected_by=collected_by,
                transaction_date=self.clock.now(),
            )

            for item_id in due_item_ids:
                item = items[item_id]
                paid = new_paid[item_id]
                status = status_after_payment(paid, MoneyAmount.of(item.final_amount))
                if not self._items.compare_and_set_paid(
                    uow,
                    item_id,
                    expected_paid=item.paid_amount,
                    expected_final=item.final_amount,
                    new_paid=paid.amount,
                    new_status=status,
                ):
                    raise ConcurrentModificationError("DueItem", str(item_id))

            for account_id, increment in account_increments.items():
                if not self._accounts.increment(
                    uow, account_id, tenant_id, increment.amount
                ):
                    raise ConcurrentModificationError("TenantAccount", str(account_id))

            lines: list[PaymentLineInfo] = []
            journal_count = 0
            for allocation in allocations:
                method: PaymentMethod = payment_method_for(
                    accounts[allocation.account_id].account_type
                )
                # INVARIANT: JOURNAL_PAIRING -- one INCOME entry per line
                self._journal.record(
                    uow,
                    tenant_id=tenant_id,
                    transaction_type=TransactionType.INCOME,
                    amount=allocation.amount.amount,
                    label=PAYMENT_JOURNAL_LABEL,
                    account_id=allocation.account_id,
                    transaction_by=collected_by,
                    note=allocation.reason or DEFAULT_PAYMENT_NOTE,
                    category_id=allocation.category_id,
                )
                journal_count += 1
                line = self._lines.create_line(
                    uow,
                    tenant_id=tenant_id,
                    receipt_id=receipt.id,
                    due_item_id=allocation.due_item_id,
                    account_id=allocation.account_id,
                    amount=allocation.amount.amount,
                    method=method,
                    month=allocation.month,
                    year=allocation.year,
                    reason=allocation.reason,
                    category_id=allocation.category_id,
                )
                lines.append(
                    PaymentLineInfo(
                        id=line.id,
                        due_item_id=line.due_item_id,
                        account_id=line.account_id,
                        amount=allocation.amount,
                        method=method,
                        month=line.month,
                        year=line.year,
                        reason=line.reason,
                    )
                )

            receipt_info = ReceiptInfo(
                id=receipt.id,
                tenant_id=tenant_id,
                student_id=student_id,
                total_amount=total,
                collected_by=collected_by,
                transaction_date=receipt.transaction_date,
                print_count=0,
                lines=tuple(lines),
            )
            uow.commit()

        tags = CacheTags.for_payment(tenant_id, student_id, account_ids, receipt_info.id)
        result = PaymentResult(
            receipt=receipt_info,
            updated_due_items_count=len(due_item_ids),
            created_transactions_count=journal_count,
            created_payments_count=len(lines),
            total_amount=total,
            cache_tags=tags,
        )
        logger.info(
            "payment_processed",
            extra={
                "receipt_id": str(receipt_info.id),
                "tenant_id": tenant_id,
                "student_id": str(student_id),
                "total_amount": str(total),
                "allocations": len(allocations),
                "due_items": result.updated_due_items_count,
                "accounts": len(account_ids),
            },
        )
        invalidate_after_commit(self.cache, tags, logger)
        return result

    def record_receipt_print(self, receipt_id: UUID, tenant_id: str) -> int:
        """
        Count one more print of a receipt.

        Returns:
            The new print count.

        Raises:
            ReceiptNotFoundError: No such receipt in the tenant.
        """
        with self.uow_factory("record_receipt_print") as uow:
            if not self._receipts.increment_print_count(uow, receipt_id, tenant_id):
                raise ReceiptNotFoundError(str(receipt_id))
            receipt = self._receipts.get(uow, receipt_id, tenant_id, for_update=True)
            print_count = receipt.print_count
            uow.commit()

        logger.info(
            "receipt_printed",
            extra={"receipt_id": str(receipt_id), "print_count": print_count},
        )
        invalidate_after_commit(
            self.cache,
            (
                CacheTags.payment_transactions(tenant_id),
                CacheTags.payment_transaction(receipt_id),
            ),
            logger,
        )
        return print_count
