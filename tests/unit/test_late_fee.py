"""
Unit tests for late-fee computation.

Jan 2024 with 5 grace days: due 2024-02-05, effective 2024-02-06.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.calendar import BillingMonth
from ledger_kernel.domain.dtos import FeeLineTemplate
from ledger_kernel.domain.enums import DueAdjustmentType, LateFeeFrequency
from ledger_kernel.domain.late_fee import (
    SYSTEM_ACTOR,
    build_late_fee_adjustment,
    calculate_late_fee,
    due_date_for,
    effective_date_for,
)
from ledger_kernel.domain.money import MoneyAmount

JANUARY = BillingMonth(2024, 1)


def _line(
    amount="10.00",
    frequency=LateFeeFrequency.ONE_TIME,
    grace_days=5,
    enabled=True,
):
    return FeeLineTemplate(
        name="Tuition",
        amount=MoneyAmount("500.00"),
        late_fee_enabled=enabled,
        late_fee_amount=MoneyAmount(amount) if amount is not None else None,
        late_fee_frequency=frequency,
        late_fee_grace_days=grace_days,
    )


class TestDates:
    def test_due_date_adds_grace_to_month_end(self):
        assert due_date_for(JANUARY, 5) == date(2024, 2, 5)

    def test_effective_date_is_day_after_due(self):
        assert effective_date_for(JANUARY, 5) == date(2024, 2, 6)

    def test_no_grace(self):
        assert effective_date_for(BillingMonth(2024, 2), 0) == date(2024, 3, 1)


class TestApplicability:
    def test_before_effective_date(self):
        calc = calculate_late_fee(_line(), JANUARY, date(2024, 2, 5))
        assert not calc.should_apply
        assert calc.amount.is_zero

    def test_on_effective_date(self):
        calc = calculate_late_fee(_line(), JANUARY, date(2024, 2, 6))
        assert calc.should_apply
        assert calc.days_overdue == 0

    def test_disabled_line(self):
        assert not calculate_late_fee(_line(enabled=False), JANUARY, date(2024, 6, 1)).should_apply

    def test_zero_amount(self):
        assert not calculate_late_fee(_line(amount="0"), JANUARY, date(2024, 6, 1)).should_apply

    def test_missing_amount(self):
        assert not calculate_late_fee(_line(amount=None), JANUARY, date(2024, 6, 1)).should_apply


class TestAmounts:
    REFERENCE = date(2024, 3, 15)  # 38 days after 2024-02-06

    @pytest.mark.parametrize(
        "frequency, expected",
        [
            (LateFeeFrequency.ONE_TIME, "10.00"),
            (LateFeeFrequency.DAILY, "380.00"),
            (LateFeeFrequency.WEEKLY, "50.00"),
            (LateFeeFrequency.MONTHLY, "10.00"),
            (LateFeeFrequency.QUARTERLY, "10.00"),
            (LateFeeFrequency.ANNUAL, "10.00"),
        ],
    )
    def test_multiplier_by_frequency(self, frequency, expected):
        calc = calculate_late_fee(_line(frequency=frequency), JANUARY, self.REFERENCE)
        assert calc.amount == MoneyAmount(expected)
        assert calc.days_overdue == 38

    def test_monthly_counts_whole_months(self):
        calc = calculate_late_fee(
            _line(frequency=LateFeeFrequency.MONTHLY), JANUARY, date(2024, 5, 6)
        )
        assert calc.amount == MoneyAmount("30.00")

    def test_quarterly_counts_whole_quarters(self):
        calc = calculate_late_fee(
            _line(frequency=LateFeeFrequency.QUARTERLY), JANUARY, date(2024, 8, 6)
        )
        assert calc.amount == MoneyAmount("20.00")

    def test_daily_on_effective_date_is_at_least_one_unit(self):
        calc = calculate_late_fee(
            _line(frequency=LateFeeFrequency.DAILY), JANUARY, date(2024, 2, 6)
        )
        assert calc.amount == MoneyAmount("10.00")


class TestDraft:
    def test_draft_fields(self):
        draft = build_late_fee_adjustment(
            _line(frequency=LateFeeFrequency.DAILY), JANUARY, date(2024, 3, 15)
        )
        assert draft is not None
        assert draft.title == "Late Fee - Tuition (daily)"
        assert draft.reason == "Late payment for 1/2024. 38 days overdue."
        assert draft.applied_by == SYSTEM_ACTOR
        assert draft.adjustment_type == DueAdjustmentType.LATE_FEE
        assert draft.amount.amount == Decimal("380.00")

    def test_no_draft_when_not_late(self):
        assert build_late_fee_adjustment(_line(), JANUARY, date(2024, 1, 31)) is None
