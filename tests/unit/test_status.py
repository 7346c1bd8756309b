"""Unit tests for due item status derivation."""

import pytest

from ledger_kernel.domain.enums import DueItemStatus
from ledger_kernel.domain.money import MoneyAmount
from ledger_kernel.domain.status import (
    derive_status,
    status_after_adjustment,
    status_after_payment,
)


def m(value: str) -> MoneyAmount:
    return MoneyAmount(value)


class TestDeriveStatus:
    @pytest.mark.parametrize(
        "paid, final, expected",
        [
            ("0", "500", DueItemStatus.PENDING),
            ("100", "500", DueItemStatus.PARTIAL),
            ("500", "500", DueItemStatus.PAID),
            ("600", "500", DueItemStatus.PAID),
            ("0", "0", DueItemStatus.PAID),
        ],
    )
    def test_derivation(self, paid, final, expected):
        assert derive_status(m(paid), m(final)) == expected


class TestAfterAdjustment:
    def test_discount_to_paid_amount_marks_paid(self):
        assert status_after_adjustment(DueItemStatus.PARTIAL, m("400"), m("400")) == DueItemStatus.PAID

    def test_fine_reopens_paid_item(self):
        assert status_after_adjustment(DueItemStatus.PAID, m("500"), m("550")) == DueItemStatus.PARTIAL

    @pytest.mark.parametrize("status", [DueItemStatus.OVERDUE, DueItemStatus.WAIVED])
    def test_terminal_statuses_kept(self, status):
        assert status_after_adjustment(status, m("0"), m("550")) == status

    def test_accepts_stored_string(self):
        assert status_after_adjustment("PENDING", m("0"), m("10")) == DueItemStatus.PENDING


class TestAfterPayment:
    def test_partial(self):
        assert status_after_payment(m("200"), m("500")) == DueItemStatus.PARTIAL

    def test_paid(self):
        assert status_after_payment(m("500"), m("500")) == DueItemStatus.PAID

    def test_overpaid_is_paid(self):
        assert status_after_payment(m("700"), m("500")) == DueItemStatus.PAID
