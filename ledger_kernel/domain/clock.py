"""
Injectable time source.

The generation engine, the late-fee calculator and "ensure dues" never call
``date.today()``; they ask a Clock.  Billing months, late-fee reference dates
and receipt timestamps therefore follow whatever clock the engine was built
with.  SystemClock is the only place the ledger reads the wall clock.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, time


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware UTC instant."""

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Clock pinned to one instant until moved with set_date().

    Used by tests and by replaying a generation run "as of" a past date.
    """

    _NOON = time(12, 0, tzinfo=UTC)

    def __init__(self, fixed: datetime | None = None):
        self._fixed = fixed or datetime.combine(date(2024, 1, 1), self._NOON)

    @classmethod
    def on(cls, day: date) -> "DeterministicClock":
        """Clock fixed at noon UTC on ``day``."""
        return cls(datetime.combine(day, cls._NOON))

    def now(self) -> datetime:
        return self._fixed

    def set_date(self, day: date) -> None:
        self._fixed = datetime.combine(day, self._NOON)
