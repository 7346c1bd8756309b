"""Repositories for the ledger kernel (data access, explicit unit of work)."""

from ledger_kernel.repositories.account_repository import (
    LedgerTransactionRepository,
    TenantAccountRepository,
)
from ledger_kernel.repositories.due_repository import (
    DueAdjustmentRepository,
    DueItemRepository,
    StudentDueRepository,
)
from ledger_kernel.repositories.payment_repository import (
    PaymentTransactionRepository,
    StudentPaymentRepository,
)
from ledger_kernel.repositories.student_repository import (
    FeeStructureRepository,
    StudentRepository,
)

__all__ = [
    "DueAdjustmentRepository",
    "DueItemRepository",
    "FeeStructureRepository",
    "LedgerTransactionRepository",
    "PaymentTransactionRepository",
    "StudentDueRepository",
    "StudentPaymentRepository",
    "StudentRepository",
    "TenantAccountRepository",
]
