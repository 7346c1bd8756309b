"""
Ledger Kernel - tenant financial ledger for institution management.

Provides:
- Idempotent recurring due generation per billing month
- Due adjustments (discounts, waivers, fines, late fees)
- Atomic multi-item payment processing with aggregate receipts
- Cash account deposits, withdrawals and fund transfers
- Fixed-point decimal arithmetic for every monetary value
"""

__version__ = "0.1.0"
