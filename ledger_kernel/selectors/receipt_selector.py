"""
Module: ledger_kernel.selectors.receipt_selector
Responsibility: Read-only access to payment receipts and their lines.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from ledger_kernel.domain.dtos import PaymentLineInfo, ReceiptInfo
from ledger_kernel.domain.enums import PaymentMethod
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.models.payment import PaymentTransaction
from ledger_kernel.repositories.payment_repository import (
    PaymentTransactionRepository,
    StudentPaymentRepository,
)
from ledger_kernel.selectors.base import BaseSelector


class ReceiptSelector(BaseSelector):
    """Queries over receipts (payment transactions)."""

    def __init__(self, uow):
        super().__init__(uow)
        self._receipts = PaymentTransactionRepository()
        self._lines = StudentPaymentRepository()

    def receipt(self, receipt_id: UUID, tenant_id: str) -> ReceiptInfo | None:
        receipt = self._receipts.get(self.uow, receipt_id, tenant_id)
        if receipt is None:
            return None
        return self._to_info(receipt)

    def receipts_for_student(self, student_id: UUID, tenant_id: str) -> list[ReceiptInfo]:
        return [
            self._to_info(receipt)
            for receipt in self._receipts.list_for_student(self.uow, student_id, tenant_id)
        ]

    def _to_info(self, receipt: PaymentTransaction) -> ReceiptInfo:
        lines = tuple(
            PaymentLineInfo(
                id=line.id,
                due_item_id=line.due_item_id,
                account_id=line.account_id,
                amount=MoneyAmount.of(line.amount),
                method=PaymentMethod(line.method),
                month=line.month,
                year=line.year,
                reason=line.reason,
            )
            for line in self._lines.lines_for_receipt(
                self.uow, receipt.id, receipt.tenant_id
            )
        )
        return ReceiptInfo(
            id=receipt.id,
            tenant_id=receipt.tenant_id,
            student_id=receipt.student_id,
            total_amount=MoneyAmount.of(receipt.total_amount),
            collected_by=receipt.collected_by,
            transaction_date=receipt.transaction_date,
            print_count=receipt.print_count,
            lines=lines,
        )
