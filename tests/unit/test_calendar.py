"""Unit tests for billing-month arithmetic."""

from datetime import date

import pytest

from ledger_kernel.domain.calendar import BillingMonth, months_between, whole_months_between


class TestBillingMonth:
    def test_label(self):
        assert BillingMonth(2024, 3).label == "3/2024"

    def test_key_is_month_then_year(self):
        assert BillingMonth(2024, 3).key == (3, 2024)

    def test_invalid_month(self):
        with pytest.raises(ValueError):
            BillingMonth(2024, 13)

    def test_last_day_leap_february(self):
        assert BillingMonth(2024, 2).last_day == date(2024, 2, 29)

    def test_next_rolls_over_year(self):
        assert BillingMonth(2023, 12).next() == BillingMonth(2024, 1)

    def test_ordering(self):
        assert BillingMonth(2023, 12) < BillingMonth(2024, 1)


class TestMonthsBetween:
    def test_inclusive_range(self):
        months = months_between(date(2024, 1, 15), date(2024, 3, 31))
        assert [m.label for m in months] == ["1/2024", "2/2024", "3/2024"]

    def test_same_month(self):
        assert months_between(date(2024, 5, 1), date(2024, 5, 31)) == [BillingMonth(2024, 5)]

    def test_across_year_boundary(self):
        months = months_between(date(2023, 11, 30), date(2024, 2, 1))
        assert [m.label for m in months] == ["11/2023", "12/2023", "1/2024", "2/2024"]

    def test_start_after_end_is_empty(self):
        assert months_between(date(2024, 4, 1), date(2024, 3, 31)) == []


class TestWholeMonthsBetween:
    def test_exact_month(self):
        assert whole_months_between(date(2024, 2, 6), date(2024, 3, 6)) == 1

    def test_incomplete_month(self):
        assert whole_months_between(date(2024, 2, 6), date(2024, 3, 5)) == 0

    def test_clamped_to_short_month(self):
        assert whole_months_between(date(2024, 1, 31), date(2024, 2, 29)) == 1
