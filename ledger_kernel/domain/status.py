"""
Due item status derivation.

``status`` on a due item is a cached projection of its paid and final
amounts.  It is recomputed in the same write whenever either changes.

    PAID     paid >= final
    PARTIAL  0 < paid < final
    PENDING  otherwise

OVERDUE and WAIVED are terminal states set outside automatic derivation:
adjustments keep them, payments always derive PAID or PARTIAL.
"""

from ledger_kernel.domain.enums import TERMINAL_DUE_STATUSES, DueItemStatus
from ledger_kernel.domain.money import MoneyAmount


def derive_status(paid: MoneyAmount, final: MoneyAmount) -> DueItemStatus:
    if paid >= final:
        return DueItemStatus.PAID
    if paid.is_positive:
        return DueItemStatus.PARTIAL
    return DueItemStatus.PENDING


def status_after_adjustment(
    current: DueItemStatus | str,
    paid: MoneyAmount,
    final: MoneyAmount,
) -> DueItemStatus:
    current = DueItemStatus(current)
    if current in TERMINAL_DUE_STATUSES:
        return current
    return derive_status(paid, final)


def status_after_payment(paid: MoneyAmount, final: MoneyAmount) -> DueItemStatus:
    """Status once a positive allocation has been added to ``paid``."""
    if paid >= final:
        return DueItemStatus.PAID
    return DueItemStatus.PARTIAL
