"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.account_selector import AccountSelector, BalanceReconciliation
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.due_selector import DueSelector
from ledger_kernel.selectors.receipt_selector import ReceiptSelector

__all__ = [
    "AccountSelector",
    "BalanceReconciliation",
    "BaseSelector",
    "DueSelector",
    "ReceiptSelector",
]
