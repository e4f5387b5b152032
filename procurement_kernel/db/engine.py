"""
Engine and session plumbing for the procurement database.

PostgreSQL is the production target. Goods receipts increment PO item
quantities under ``SELECT ... FOR UPDATE`` at READ COMMITTED, so concurrent
receipts against one order serialize on the item rows. SQLite is accepted for
tests and local runs; it shares one connection so ``sqlite://`` survives
between sessions.

Nothing here may import services. ``create_tables`` is the exception: it asks
the module registry to import every ORM model before emitting DDL.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from procurement_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

POSTGRES_POOL_DEFAULTS = {
    "pool_size": 20,
    "max_overflow": 10,
    "pool_pre_ping": True,
    "pool_timeout": 30,
    "pool_recycle": 1800,
}


@dataclass(frozen=True)
class _Database:
    engine: Engine
    sessions: sessionmaker[Session]


_current: _Database | None = None


def _sqlite_engine(url, echo: bool) -> Engine:
    engine = create_engine(
        url,
        echo=echo,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        # pysqlite's implicit BEGIN breaks SAVEPOINT; SQLAlchemy emits it below.
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def build_engine(database_url: str, echo: bool = False, **pool_options) -> Engine:
    """
    Build an engine for ``database_url`` without installing it.

    ``pool_options`` override :data:`POSTGRES_POOL_DEFAULTS` and are ignored
    for SQLite.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return _sqlite_engine(url, echo)

    options = {**POSTGRES_POOL_DEFAULTS, **pool_options}
    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        isolation_level="READ COMMITTED",
        **options,
    )


def init_engine_from_url(database_url: str, echo: bool = False, **pool_options) -> Engine:
    """Install the process-wide engine, replacing any earlier one."""
    global _current

    engine = build_engine(database_url, echo=echo, **pool_options)
    _current = _Database(engine, sessionmaker(bind=engine, expire_on_commit=False))

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": engine.dialect.name, "echo": echo})
    return engine


def _installed() -> _Database:
    if _current is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _current


def get_engine() -> Engine:
    return _installed().engine


def get_session() -> Session:
    return _installed().sessions()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    One unit of work: commit on success, roll back and re-raise on error.

        with session_scope() as session:
            VendorService(session).create_vendor(actor, payload)
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


def create_tables(engine: Engine | None = None) -> None:
    """Emit CREATE TABLE for every registered procurement model."""
    from procurement_kernel.db.base import Base
    from procurement_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(engine or get_engine())
    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables(engine: Engine | None = None) -> None:
    from procurement_kernel.db.base import Base

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the installed engine. Used by tests."""
    global _current

    if _current is not None:
        _current.engine.dispose()
    _current = None
