"""
MoneyAmount -- fixed-point monetary value object.

Responsibility:
    The single representation of monetary values in the ledger core.  Every
    due item amount, adjustment, allocation, balance and journal amount
    crosses the service boundary as a MoneyAmount.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module, the repositories and services.

Invariants enforced:
    - amount is always a Decimal quantized to MONEY_DECIMAL_PLACES, never
      a float.  Floats are rejected at construction.
    - Rounding is ROUND_HALF_UP via round_money().

Failure modes:
    - TypeError when constructed from float or an unsupported type.
    - ValueError when a string cannot be parsed as a number.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the only rounding function used for money anywhere in the
    ledger; MoneyAmount and the repositories delegate to it.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "0"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


@dataclass(frozen=True, slots=True)
class MoneyAmount:
    """
    Monetary amount value object.

    Contract:
        Wraps a Decimal quantized to two decimal places.  Arithmetic returns
        new MoneyAmount instances; comparisons work against MoneyAmount,
        Decimal and int.

    Guarantees:
        - Immutable and hashable.
        - amount is never a float.
        - Sums are decimal-exact: no rounding drift across additions.

    Non-goals:
        - Does NOT carry a currency (the ledger is single-currency per tenant).
    """

    amount: Decimal

    def __post_init__(self) -> None:
        value = self.amount
        if isinstance(value, float):
            raise TypeError("MoneyAmount cannot be built from float")
        if isinstance(value, bool) or not isinstance(value, (Decimal, int, str)):
            raise TypeError(
                f"MoneyAmount requires Decimal, int or str, got {type(value).__name__}"
            )
        try:
            dec = Decimal(value) if not isinstance(value, Decimal) else value
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid amount: {value!r}") from e
        if not dec.is_finite():
            raise ValueError(f"Invalid amount: {value!r}")
        object.__setattr__(self, "amount", round_money(dec, MONEY_DECIMAL_PLACES))

    @classmethod
    def of(cls, value: MoneyAmount | Decimal | int | str) -> MoneyAmount:
        """Coerce a value to MoneyAmount (passes MoneyAmount through)."""
        if isinstance(value, MoneyAmount):
            return value
        return cls(value)

    @classmethod
    def zero(cls) -> MoneyAmount:
        return cls(Decimal("0"))

    @classmethod
    def total(cls, values: Iterable[MoneyAmount | Decimal | int | str]) -> MoneyAmount:
        """Sum an iterable of amounts; empty input sums to zero."""
        acc = Decimal("0")
        for v in values:
            acc += cls.of(v).amount
        return cls(acc)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def __add__(self, other: object) -> MoneyAmount:
        if not isinstance(other, (MoneyAmount, Decimal, int)) or isinstance(other, bool):
            return NotImplemented
        return MoneyAmount(self.amount + _as_decimal(other))

    __radd__ = __add__

    def __sub__(self, other: object) -> MoneyAmount:
        if not isinstance(other, (MoneyAmount, Decimal, int)) or isinstance(other, bool):
            return NotImplemented
        return MoneyAmount(self.amount - _as_decimal(other))

    def __rsub__(self, other: object) -> MoneyAmount:
        if not isinstance(other, (MoneyAmount, Decimal, int)) or isinstance(other, bool):
            return NotImplemented
        return MoneyAmount(_as_decimal(other) - self.amount)

    def __mul__(self, factor: object) -> MoneyAmount:
        # Integer multipliers only (late-fee day/week/month counts)
        if not isinstance(factor, int) or isinstance(factor, bool):
            return NotImplemented
        return MoneyAmount(self.amount * factor)

    __rmul__ = __mul__

    def __neg__(self) -> MoneyAmount:
        return MoneyAmount(-self.amount)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (MoneyAmount, Decimal, int)) and not isinstance(other, bool):
            return self.amount == _as_decimal(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.amount)

    def __lt__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self.amount < _as_decimal(other)

    def __le__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self.amount <= _as_decimal(other)

    def __gt__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self.amount > _as_decimal(other)

    def __ge__(self, other: object) -> bool:
        if not _is_operand(other):
            return NotImplemented
        return self.amount >= _as_decimal(other)

    def __str__(self) -> str:
        return str(self.amount)

    def __repr__(self) -> str:
        return f"MoneyAmount('{self.amount}')"


def _is_operand(value: object) -> bool:
    return isinstance(value, (MoneyAmount, Decimal, int)) and not isinstance(value, bool)


def _as_decimal(value: object) -> Decimal:
    if isinstance(value, MoneyAmount):
        return value.amount
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    raise TypeError(f"Cannot compare MoneyAmount with {type(value).__name__}")
