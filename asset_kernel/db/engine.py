"""
Module: asset_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and the unit-of-work scope every orchestrator call runs inside.  This is
    the single point of database connection configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/immutability.py.  MUST NOT import from services/, selectors/, domain/,
    or outer layers (except create_tables/drop_tables, which import models).

Invariants enforced:
    - PostgreSQL sessions run at READ COMMITTED with explicit row-level
      locking (SELECT ... FOR UPDATE) on the asset and order rows a mutation
      touches.  A second writer naming the same serial blocks until the first
      commits, then re-reads the frozen status.
    - SQLite (tests, local tooling) can be switched to BEGIN IMMEDIATE so
      writers are serialized at transaction start.
    - unit_of_work() commits on success and rolls back on any failure; no
      write path commits independently.
    - Store failures leave this module typed: OperationalError and pool
      timeouts become TransientStoreError (retryable), any other
      SQLAlchemyError becomes StoreError.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - TransientStoreError when the statement timeout fires or the store is
      unreachable.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from asset_kernel.exceptions import AssetKernelError, StoreError, TransientStoreError
from asset_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Process-wide engine, set by init_engine_from_url()
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    statement_timeout_ms: int | None = None,
    sqlite_begin_immediate: bool = False,
) -> Engine:
    """
    Create an Engine without touching the module-level singleton.

    Useful for tests that need several independent engines (e.g. one per
    simulated process in a concurrency test).
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        if sqlite_begin_immediate:
            enable_sqlite_begin_immediate(engine)
        return engine

    connect_args = {}
    if statement_timeout_ms:
        connect_args["options"] = f"-c statement_timeout={int(statement_timeout_ms)}"

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
        connect_args=connect_args,
    )


def enable_sqlite_begin_immediate(engine: Engine) -> None:
    """
    Make every SQLite transaction start with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, which lets two transactions
    read the same asset rows before either writes.  Taking the write lock at
    BEGIN serializes them the way FOR UPDATE does on PostgreSQL.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_engine_from_url(database_url: str, **engine_options) -> Engine:
    """
    Build the process-wide engine and session factory.

    ``engine_options`` are passed to ``build_engine``.  Calling this again
    replaces the previous engine without disposing it; use reset_engine()
    first when that matters.  The ORM immutability listeners are registered
    here so no session from this factory can rewrite a log entry or a
    closed order.
    """
    global _engine, _session_factory

    from asset_kernel.db.immutability import register_immutability_listeners

    _engine = build_engine(database_url, **engine_options)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    register_immutability_listeners()

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": engine_options.get("pool_size"),
            "max_overflow": engine_options.get("max_overflow"),
            "statement_timeout_ms": engine_options.get("statement_timeout_ms"),
            "sqlite_begin_immediate": engine_options.get("sqlite_begin_immediate", False),
        },
    )
    return _engine


def _require_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        raise RuntimeError("Engine not initialized; call init_engine_from_url() first")
    return _session_factory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized; call init_engine_from_url() first")
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that open one session per worker thread."""
    return _require_factory()


def get_session() -> Session:
    return _require_factory()()


def translate_store_error(exc: SQLAlchemyError, operation: str) -> StoreError:
    """Map a SQLAlchemy failure to the kernel's store error types."""
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return TransientStoreError(operation, str(exc).splitlines()[0])
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return TransientStoreError(operation, str(exc).splitlines()[0])
    return StoreError(operation, str(exc).splitlines()[0])


@contextmanager
def unit_of_work(
    session: Session,
    *,
    operation: str,
    auto_commit: bool = True,
) -> Generator[Session, None, None]:
    """
    Run one orchestrator call as a single all-or-nothing unit.

    Postconditions:
        - auto_commit=True: the session is committed on normal exit and
          rolled back on any exception.
        - auto_commit=False: pending changes are flushed on normal exit and
          the caller owns commit/rollback (also on failure).

    Raises:
        AssetKernelError subclasses unchanged.
        StoreError / TransientStoreError for SQLAlchemy failures.
    """
    try:
        yield session
        if auto_commit:
            session.commit()
            logger.debug("transaction_committed", extra={"operation": operation})
        else:
            session.flush()
    except AssetKernelError as exc:
        if auto_commit:
            session.rollback()
            logger.debug(
                "transaction_rolled_back",
                extra={"operation": operation, "error_code": exc.code},
            )
        raise
    except SQLAlchemyError as exc:
        if auto_commit:
            session.rollback()
        error = translate_store_error(exc, operation)
        logger.error(
            "store_failure",
            extra={
                "operation": operation,
                "error_code": error.code,
                "retryable": error.retryable,
            },
            exc_info=True,
        )
        raise error from exc
    except Exception:
        if auto_commit:
            session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
        raise


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Session from the process-wide factory, committed on clean exit.

    For scripts and jobs that drive orchestrators with auto_commit=False:

        with session_scope() as session:
            orchestrator = TransferOrderOrchestrator(session, auto_commit=False)
            orchestrator.create_transfer_order(request, actor)

    Any exception rolls the whole block back and propagates.
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every kernel table on the process-wide engine."""
    from asset_kernel.db.base import Base
    import asset_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every kernel table.  Tests and local tooling only."""
    from asset_kernel.db.base import Base
    import asset_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the process-wide engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)
