"""
Engine and session management for the stock ledger database.

One process-wide engine, created by ``init_engine_from_url``.  Kernel and
module services receive a ``Session`` from their caller; only entry points
(the reconciliation script, tests) touch this module directly.

PostgreSQL runs under READ COMMITTED with a pre-pinged QueuePool, and
aggregate rows are locked with ``SELECT ... FOR UPDATE`` before they are
rewritten.  SQLite backs tests and local runs: an in-memory database keeps a
single shared connection (StaticPool), and pysqlite's implicit transaction
handling is switched off so that SAVEPOINTs behave.  SQLite ignores
``FOR UPDATE``.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None


def _is_in_memory(url: URL) -> bool:
    return url.database in (None, "", ":memory:")


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    # pysqlite defers BEGIN until the first DML, which breaks SAVEPOINT.
    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _build_engine(url: URL, echo: bool, pool_size: int, max_overflow: int) -> Engine:
    if url.get_backend_name() == "sqlite":
        options: dict = {"connect_args": {"check_same_thread": False}}
        if _is_in_memory(url):
            options["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **options)
        _install_sqlite_transaction_hooks(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    Calling it again replaces the previous engine without disposing it;
    call ``reset_engine()`` first when switching databases.
    """
    global _engine, _sessions

    url = make_url(database_url)
    _engine = _build_engine(url, echo, pool_size, max_overflow)
    _sessions = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "database": url.database,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    if _sessions is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on clean exit, roll back and re-raise on error, always close.

    Usage:
        with session_scope() as session:
            ReconciliationService(session).recalculate_all()
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create kernel tables plus every module table listed in the ORM registry."""
    from stock_kernel.db.base import Base
    from stock_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    from stock_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None
