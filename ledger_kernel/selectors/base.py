"""
Module: ledger_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.  Selectors
    are the read side next to the write-side engines: structured access to
    dues, receipts, accounts and the journal without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/,
    domain/ and repositories/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors run queries on the caller's UnitOfWork and
      never add, flush, commit or delete.
    - DTO return convention: selectors return frozen DTOs from
      ledger_kernel.domain.dtos, never ORM instances.
    - Unit of work ownership: the caller opens and closes the UnitOfWork.

Failure modes:
    - Lookups return None or an empty list when nothing matches; they never
      raise on absence of data.
"""

from abc import ABC

from ledger_kernel.db.unit_of_work import UnitOfWork


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a UnitOfWork from the caller, perform read-only
        queries, and return DTOs or computed results.

    Non-goals:
        - BaseSelector does NOT define query methods; subclasses implement
          the due, receipt and account queries.
    """

    def __init__(self, uow: UnitOfWork):
        """
        Args:
            uow: Open unit of work the queries run in.
        """
        self.uow = uow
