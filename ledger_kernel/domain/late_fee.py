"""
LateFeeCalculator -- pure late-fee computation for generated dues.

Responsibility:
    Decides whether a fee line billed for a given month is late relative to
    a reference date and, if so, how large the LATE_FEE adjustment is.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Called by DueAdjustmentService.apply_late_fees() while dues are being
    generated.  Never recomputed afterwards.

Rules:
    due date        = last day of the billed month + grace days
    effective date  = due date + 1 day
    applies         iff late fees are enabled, the configured amount is
                    positive and effective date <= reference date
    days overdue    = max(0, reference date - effective date) in days

    Amount by frequency (whole elapsed units since the effective date,
    minimum 1):
        ONE_TIME   flat amount
        DAILY      amount * days
        WEEKLY     amount * (days // 7)
        MONTHLY    amount * whole months
        QUARTERLY  amount * (whole months // 3)
        ANNUAL     amount * (whole months // 12)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from ledger_kernel.domain.calendar import BillingMonth, whole_months_between
from ledger_kernel.domain.dtos import FeeLineTemplate
from ledger_kernel.domain.enums import DueAdjustmentType, LateFeeFrequency
from ledger_kernel.domain.money import MoneyAmount

SYSTEM_ACTOR = "SYSTEM"


@dataclass(frozen=True)
class LateFeeCalculation:
    """Outcome of evaluating one fee line against one billing month."""

    should_apply: bool
    amount: MoneyAmount
    days_overdue: int
    due_date: date
    effective_date: date


@dataclass(frozen=True)
class LateFeeAdjustmentDraft:
    """A LATE_FEE adjustment ready to be persisted against a due item."""

    title: str
    amount: MoneyAmount
    reason: str
    applied_by: str = SYSTEM_ACTOR
    adjustment_type: DueAdjustmentType = DueAdjustmentType.LATE_FEE


def due_date_for(month: BillingMonth, grace_days: int = 0) -> date:
    return month.last_day + timedelta(days=grace_days)


def effective_date_for(month: BillingMonth, grace_days: int = 0) -> date:
    """Day the late fee starts to apply (the day after the due date)."""
    return due_date_for(month, grace_days) + timedelta(days=1)


def _multiplier(
    frequency: LateFeeFrequency, effective: date, reference: date
) -> int:
    days = (reference - effective).days
    if frequency == LateFeeFrequency.ONE_TIME:
        return 1
    if frequency == LateFeeFrequency.DAILY:
        units = days
    elif frequency == LateFeeFrequency.WEEKLY:
        units = days // 7
    elif frequency == LateFeeFrequency.MONTHLY:
        units = whole_months_between(effective, reference)
    elif frequency == LateFeeFrequency.QUARTERLY:
        units = whole_months_between(effective, reference) // 3
    elif frequency == LateFeeFrequency.ANNUAL:
        units = whole_months_between(effective, reference) // 12
    else:
        raise ValueError(f"Unhandled late fee frequency: {frequency!r}")
    return max(1, units)


def calculate_late_fee(
    line: FeeLineTemplate,
    month: BillingMonth,
    reference_date: date,
) -> LateFeeCalculation:
    """
    Evaluate the late fee owed on ``line`` for ``month`` as of reference_date.

    A line without late fees, or with a non-positive late fee amount, never
    applies.
    """
    grace = line.late_fee_grace_days or 0
    due = due_date_for(month, grace)
    effective = effective_date_for(month, grace)

    enabled = (
        line.late_fee_enabled
        and line.late_fee_amount is not None
        and line.late_fee_amount.is_positive
    )
    if not enabled or effective > reference_date:
        return LateFeeCalculation(
            should_apply=False,
            amount=MoneyAmount.zero(),
            days_overdue=0,
            due_date=due,
            effective_date=effective,
        )

    frequency = LateFeeFrequency(line.late_fee_frequency or LateFeeFrequency.ONE_TIME)
    amount = line.late_fee_amount * _multiplier(frequency, effective, reference_date)
    return LateFeeCalculation(
        should_apply=True,
        amount=amount,
        days_overdue=max(0, (reference_date - effective).days),
        due_date=due,
        effective_date=effective,
    )


def build_late_fee_adjustment(
    line: FeeLineTemplate,
    month: BillingMonth,
    reference_date: date,
) -> LateFeeAdjustmentDraft | None:
    """Late-fee adjustment for a freshly generated due item, or None."""
    calc = calculate_late_fee(line, month, reference_date)
    if not calc.should_apply or not calc.amount.is_positive:
        return None

    frequency = LateFeeFrequency(line.late_fee_frequency or LateFeeFrequency.ONE_TIME)
    return LateFeeAdjustmentDraft(
        title=f"Late Fee - {line.name} ({frequency.value.lower()})",
        amount=calc.amount,
        reason=(
            f"Late payment for {month.label}. "
            f"{calc.days_overdue} days overdue."
        ),
    )
