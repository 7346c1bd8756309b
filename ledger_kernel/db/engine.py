"""
Module: ledger_kernel.db.engine
Responsibility: the process-wide SQLAlchemy engine and session factory, and
    schema creation for the ledger tables.
Architecture position: Kernel > DB.  Engines never call this module; they
    receive a UnitOfWorkFactory built on get_session_factory().

Backends:
    - PostgreSQL is the production backend: READ COMMITTED, a bounded
      connection pool, and real SELECT ... FOR UPDATE row locks.
    - SQLite files serve local runs and the test suite.  Row locks are
      no-ops there, so the conditional and compare-and-set updates in the
      repositories carry correctness alone.  Foreign keys are switched on
      for every SQLite connection.

Failure modes:
    - RuntimeError from get_engine()/get_session_factory() before
      init_engine_from_url().
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Ledger database is not initialized; call init_engine_from_url() first"


def _sqlite_foreign_keys_on(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def init_engine_from_url(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
) -> Engine:
    """
    Create the ledger engine and its session factory.

    Sessions are created with ``expire_on_commit=False`` so the DTOs an
    engine builds from committed rows stay readable after the unit of work
    closes.  Calling this again replaces the previous engine without
    disposing it; use reset_engine() for that.
    """
    global _engine, _session_factory

    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        engine = create_engine(database_url, echo=echo)
        event.listen(engine, "connect", _sqlite_foreign_keys_on)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_pre_ping=True,
            pool_recycle=1800,
            isolation_level="READ COMMITTED",
        )

    _engine = engine
    _session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    logger.info(
        "ledger_engine_initialized",
        extra={"backend": backend, "echo": echo},
    )
    return engine


def init_engine_from_settings(settings) -> Engine:
    """Initialize from a ledger_config.LedgerSettings."""
    return init_engine_from_url(
        settings.database_url,
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
    )


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory that every UnitOfWork opens its session from."""
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


def create_tables() -> None:
    """Create the ledger schema and register the ORM immutability listeners."""
    from ledger_kernel.db.base import Base
    from ledger_kernel.db.immutability import register_immutability_listeners
    import ledger_kernel.models  # noqa: F401  (populates Base.metadata)

    Base.metadata.create_all(get_engine())
    register_immutability_listeners()
    logger.info("ledger_tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop the ledger schema (tests and local resets only)."""
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the pool and forget the engine."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
