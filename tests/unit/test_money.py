"""
Unit tests for MoneyAmount and decimal handling.

Verifies:
- Float constructor prohibition
- ROUND_HALF_UP quantization to two places
- Decimal-exact sums
- Integer multiplication for late-fee multipliers
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.money import MONEY_DECIMAL_PLACES, round_money
from ledger_kernel.domain.money import MoneyAmount


class TestConstruction:
    def test_from_string(self):
        assert MoneyAmount("100.50").amount == Decimal("100.50")

    def test_from_int(self):
        assert MoneyAmount(500).amount == Decimal("500.00")

    def test_float_rejected(self):
        with pytest.raises(TypeError):
            MoneyAmount(0.1)

    def test_bool_rejected(self):
        with pytest.raises(TypeError):
            MoneyAmount(True)

    def test_garbage_string_rejected(self):
        with pytest.raises(ValueError):
            MoneyAmount("ten dollars")

    def test_infinity_rejected(self):
        with pytest.raises(ValueError):
            MoneyAmount(Decimal("Infinity"))

    def test_of_passes_money_through(self):
        money = MoneyAmount("1.00")
        assert MoneyAmount.of(money) is money


class TestRounding:
    def test_half_up(self):
        assert MoneyAmount("10.555").amount == Decimal("10.56")

    def test_half_up_negative(self):
        assert MoneyAmount("-10.555").amount == Decimal("-10.56")

    def test_round_money_matches(self):
        assert round_money(Decimal("2.675"), MONEY_DECIMAL_PLACES) == Decimal("2.68")

    def test_always_two_places(self):
        assert str(MoneyAmount("7")) == "7.00"


class TestArithmetic:
    def test_tenths_sum_exactly(self):
        """0.1 added ten times is exactly 1.00 (no float drift)."""
        total = MoneyAmount.total([MoneyAmount("0.10")] * 10)
        assert total == MoneyAmount("1.00")

    def test_total_of_nothing_is_zero(self):
        assert MoneyAmount.total([]).is_zero

    def test_add_and_subtract(self):
        assert MoneyAmount("500.00") + MoneyAmount("50.00") - Decimal("25.50") == Decimal("524.50")

    def test_sum_builtin_works(self):
        assert sum([MoneyAmount("1.10"), MoneyAmount("2.20")]) == MoneyAmount("3.30")

    def test_multiply_by_int(self):
        assert MoneyAmount("10.00") * 38 == MoneyAmount("380.00")

    def test_multiply_by_decimal_not_supported(self):
        with pytest.raises(TypeError):
            MoneyAmount("10.00") * Decimal("1.5")

    def test_negation_and_sign(self):
        value = -MoneyAmount("3.00")
        assert value.is_negative
        assert not value.is_positive

    def test_comparisons_with_decimal_and_int(self):
        assert MoneyAmount("5.00") > 4
        assert MoneyAmount("5.00") <= Decimal("5")
        assert MoneyAmount("5.00") == 5

    @pytest.mark.parametrize("other", ["5.00", 5.0, None, True])
    def test_ordering_with_unsupported_types(self, other):
        value = MoneyAmount("5.00")
        assert value.__lt__(other) is NotImplemented
        assert value.__ge__(other) is NotImplemented
        with pytest.raises(TypeError):
            value < other

    def test_ordering_defers_to_other_operand(self):
        class Ceiling:
            def __gt__(self, other):
                return True

        assert MoneyAmount("5.00") < Ceiling()

    def test_hashable(self):
        assert len({MoneyAmount("1.0"), MoneyAmount("1.00")}) == 1
