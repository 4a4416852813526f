# db/db_utils.py
"""
Storage adapter: engine construction, session factory and the
dialect-aware upsert used by the reconciliation layer.

Components never create sessions themselves; the caller opens one from
get_session() (or SessionLocal) and passes it in.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from HCM.config import get_settings
from db.models import Base, utcnow

logger = logging.getLogger(__name__)


# ENGINE / SESSION MANAGEMENT

def _enable_sqlite_savepoints(engine: Engine) -> None:
    """
    Let SQLAlchemy drive BEGIN/SAVEPOINT on pysqlite connections.

    pysqlite starts transactions lazily on its own, which breaks
    Session.begin_nested(); disabling that and emitting BEGIN ourselves
    makes savepoints behave like on Postgres.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, echo: bool = False, **kwargs) -> Engine:
    """
    Create an engine for the given URL.

    SQLite URLs (used by the tests and local runs) get savepoint support;
    an in-memory SQLite database is pinned to a single connection so every
    session sees the same data.
    """
    if database_url.startswith("sqlite"):
        engine_kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:", "sqlite+pysqlite://"):
            engine_kwargs["poolclass"] = StaticPool
        engine_kwargs.update(kwargs)
        engine = create_engine(database_url, echo=echo, **engine_kwargs)
        _enable_sqlite_savepoints(engine)
        return engine

    settings = get_settings()
    engine_kwargs = {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
    }
    engine_kwargs.update(kwargs)
    return create_engine(database_url, echo=echo, **engine_kwargs)


_engine: Optional[Engine] = None
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)


def get_engine() -> Engine:
    """Return the process engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.database_url, echo=settings.db_echo)
        SessionLocal.configure(bind=_engine)
        logger.info(f"Database engine created ({_engine.dialect.name})")
    return _engine


def get_session() -> Session:
    """Open a new session bound to the process engine. Caller closes it."""
    get_engine()
    return SessionLocal()


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """Create every mirror table if it does not exist yet."""
    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    logger.info("Tables created or already exist")


# UPSERT HELPERS

def dialect_insert(session: Session, table_class):
    """Return an INSERT construct that supports ON CONFLICT for the bound dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(table_class)
    if dialect == "sqlite":
        return sqlite_insert(table_class)
    raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")


def upsert_record(
    session: Session,
    table_class,
    values: Dict[str, Any],
    key_cols: Iterable[str],
    immutable_cols: Iterable[str] = ("created_at",),
) -> None:
    """
    Insert one row, or update it in place when its natural key already exists.

    Columns in key_cols and immutable_cols are never overwritten on update.
    updated_at is stamped explicitly because ON CONFLICT DO UPDATE skips
    Column.onupdate.
    """
    key_cols = list(key_cols)
    skip = set(key_cols) | set(immutable_cols)

    stmt = dialect_insert(session, table_class).values(**values)
    update_cols = {col: stmt.excluded[col] for col in values if col not in skip}
    if "updated_at" in table_class.__table__.columns:
        update_cols["updated_at"] = utcnow()

    stmt = stmt.on_conflict_do_update(index_elements=key_cols, set_=update_cols)
    session.execute(stmt)


# LOCKING

def acquire_advisory_xact_lock(session: Session, lock_key: str) -> None:
    """
    Take a transaction-scoped Postgres advisory lock on lock_key.

    Released automatically on commit/rollback. No-op on other dialects,
    where the in-process lock in HCM.snapshot is the only guard.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"), {"lock_key": lock_key})
