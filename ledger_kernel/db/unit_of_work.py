"""
Module: ledger_kernel.db.unit_of_work
Responsibility: One database transaction scope, opened and committed by a
    top-level engine call and passed explicitly to every repository call.
Architecture position: Kernel > DB.  Wraps a SQLAlchemy Session obtained from
    a sessionmaker.  Imported by repositories/, selectors/ and services/.

Invariants enforced:
    - A unit of work commits only when its owner calls commit().  Leaving the
      ``with`` block without committing rolls everything back.
    - An exception inside the block rolls back and propagates.
    - On PostgreSQL an optional statement timeout is applied with
      ``SET LOCAL statement_timeout`` so it ends with the transaction.

Failure modes:
    - RuntimeError when the session is used outside the ``with`` block or
      after commit/rollback.
    - sqlalchemy.exc.OperationalError when the statement timeout fires.
"""

import time
from typing import Any, Callable
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.logging_config import get_logger

logger = get_logger("db.unit_of_work")


class UnitOfWork:
    """
    Explicit transaction scope.

    Contract:
        Used as a context manager.  The owner (an engine) calls commit()
        once all writes succeeded; repositories only flush.

    Guarantees:
        - Every exit path closes the session.
        - Uncommitted work is rolled back on exit.
        - ``deadline_exceeded`` reports whether the wall-clock deadline
          passed, measured with the injected monotonic function.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        name: str = "unit_of_work",
        statement_timeout_seconds: float | None = None,
        deadline_seconds: float | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self.name = name
        self.statement_timeout_seconds = statement_timeout_seconds
        self.deadline_seconds = deadline_seconds
        self._monotonic = monotonic
        self._session: Session | None = None
        self._started_at: float | None = None
        self._committed = False
        self.id = str(uuid4())

    # ------------------------------------------------------------------
    # Context management
    # ------------------------------------------------------------------

    def __enter__(self) -> "UnitOfWork":
        self._session = self._session_factory()
        self._started_at = self._monotonic()
        self._committed = False
        if self.statement_timeout_seconds and self.dialect_name == "postgresql":
            millis = int(self.statement_timeout_seconds * 1000)
            self._session.execute(text(f"SET LOCAL statement_timeout = {millis}"))
        logger.debug("uow_started", extra={"uow": self.name, "uow_id": self.id})
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        session = self._session
        try:
            if session is not None and not self._committed:
                session.rollback()
                if exc_type is not None:
                    logger.warning(
                        "uow_rolled_back",
                        extra={
                            "uow": self.name,
                            "uow_id": self.id,
                            "error_type": exc_type.__name__,
                            "error": str(exc),
                        },
                    )
                else:
                    logger.debug(
                        "uow_discarded", extra={"uow": self.name, "uow_id": self.id}
                    )
        finally:
            if session is not None:
                session.close()
            self._session = None

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError(f"UnitOfWork {self.name!r} is not active")
        return self._session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    @property
    def supports_row_locks(self) -> bool:
        return self.dialect_name == "postgresql"

    @property
    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._monotonic() - self._started_at

    @property
    def deadline_exceeded(self) -> bool:
        if self.deadline_seconds is None:
            return False
        return self.elapsed_seconds > self.deadline_seconds

    def flush(self) -> None:
        self.session.flush()

    def execute(self, statement: Any, params: Any = None):
        """Execute a statement on the underlying session."""
        if params is None:
            return self.session.execute(statement)
        return self.session.execute(statement, params)

    def commit(self) -> None:
        self.session.commit()
        self._committed = True
        logger.debug(
            "uow_committed",
            extra={
                "uow": self.name,
                "uow_id": self.id,
                "elapsed_ms": round(self.elapsed_seconds * 1000, 2),
            },
        )

    def rollback(self) -> None:
        self.session.rollback()
        logger.debug("uow_rolled_back", extra={"uow": self.name, "uow_id": self.id})


class UnitOfWorkFactory:
    """
    Builds UnitOfWork instances bound to one session factory.

    Engines receive a factory so each public call opens its own unit of
    work; per-call options (name, timeouts) override the defaults.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        statement_timeout_seconds: float | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.session_factory = session_factory
        self.statement_timeout_seconds = statement_timeout_seconds
        self.monotonic = monotonic

    def __call__(
        self,
        name: str = "unit_of_work",
        *,
        statement_timeout_seconds: float | None = None,
        deadline_seconds: float | None = None,
    ) -> UnitOfWork:
        return UnitOfWork(
            self.session_factory,
            name=name,
            statement_timeout_seconds=(
                statement_timeout_seconds
                if statement_timeout_seconds is not None
                else self.statement_timeout_seconds
            ),
            deadline_seconds=deadline_seconds,
            monotonic=self.monotonic,
        )
