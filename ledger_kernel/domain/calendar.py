"""
Billing calendar -- month arithmetic for recurring dues.

Responsibility:
    Enumerates the calendar months a student must be billed for and renders
    them the way receipts and generation summaries show them ("m/yyyy").

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - months_between() is inclusive at both ends and works on month starts,
      so the day-of-month of either bound never changes the result.
    - Output is strictly ascending with no gaps and no duplicates.
"""

from __future__ import annotations

import calendar as _stdlib_calendar
from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True, slots=True, order=True)
class BillingMonth:
    """
    A (year, month) billing period.

    Ordered by year then month so that sorting and comparison follow the
    calendar.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")

    @classmethod
    def of(cls, day: date) -> BillingMonth:
        return cls(year=day.year, month=day.month)

    @property
    def key(self) -> tuple[int, int]:
        """(month, year) key as stored on StudentDue rows."""
        return (self.month, self.year)

    @property
    def label(self) -> str:
        return f"{self.month}/{self.year}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(
            self.year,
            self.month,
            _stdlib_calendar.monthrange(self.year, self.month)[1],
        )

    def next(self) -> BillingMonth:
        if self.month == 12:
            return BillingMonth(year=self.year + 1, month=1)
        return BillingMonth(year=self.year, month=self.month + 1)

    def __str__(self) -> str:
        return self.label


def months_between(start: date, end: date) -> list[BillingMonth]:
    """
    Every calendar month from start's month to end's month, inclusive.

    Returns an empty list when start's month is after end's month.
    """
    current = BillingMonth.of(start)
    last = BillingMonth.of(end)
    months: list[BillingMonth] = []
    while current <= last:
        months.append(current)
        current = current.next()
    return months


def whole_months_between(earlier: date, later: date) -> int:
    """
    Number of complete calendar months from earlier to later.

    A month counts once the day-of-month of ``later`` reaches that of
    ``earlier`` (clamped to the end of a shorter month).
    """
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)
    anchor_day = min(
        earlier.day, _stdlib_calendar.monthrange(later.year, later.month)[1]
    )
    if months > 0 and later.day < anchor_day:
        months -= 1
    elif months < 0 and later.day > anchor_day:
        months += 1
    return months
