"""
BaseService -- abstract base for the ledger engines.

Responsibility:
    Provides the common constructor for every engine: a UnitOfWork factory
    and an injected clock.  Each public engine operation opens its own unit
    of work, calls repositories with it, and commits or rolls back.

Architecture position:
    Kernel > Services -- imperative shell.
    Every engine in ``ledger_kernel/services/`` extends this class.

Invariants enforced:
    - One public operation, one unit of work.  Helpers that run inside a
      caller's unit of work (e.g. DueAdjustmentService.apply_late_fees) take
      the UnitOfWork as an argument and never commit.
"""

from abc import ABC

from ledger_kernel.db.unit_of_work import UnitOfWorkFactory
from ledger_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for ledger engines.

    Non-goals:
        - Does NOT provide read-only query methods; those belong in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, clock: Clock | None = None):
        """
        Args:
            uow_factory: Builds the unit of work for each public operation.
            clock: Time source (defaults to SystemClock).
        """
        self.uow_factory = uow_factory
        self.clock = clock or SystemClock()
