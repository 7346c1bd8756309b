"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import LedgerTransaction, TenantAccount
from ledger_kernel.models.due import DueAdjustment, DueItem, StudentDue
from ledger_kernel.models.fee_structure import FeeItem, FeeStructure
from ledger_kernel.models.payment import PaymentTransaction, StudentPayment
from ledger_kernel.models.student import Student

__all__ = [
    "DueAdjustment",
    "DueItem",
    "FeeItem",
    "FeeStructure",
    "LedgerTransaction",
    "PaymentTransaction",
    "Student",
    "StudentDue",
    "StudentPayment",
    "TenantAccount",
]
