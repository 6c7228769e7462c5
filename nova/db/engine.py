"""
SQLModel engine factory.

The database URL comes from ``DATABASE_URL`` (see ``Settings.database_url``);
switching from SQLite to PostgreSQL is a configuration change only.
"""

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from nova.core.logging import get_logger

logger = get_logger("db")


def _prepare_sqlite_path(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if not url.startswith("sqlite:///"):
        return
    path = url[len("sqlite:///"):]
    if path and path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)


def create_db_engine(url: str) -> Engine:
    """Build an engine for ``url`` with SQLite pragmas applied where relevant."""
    is_sqlite = url.startswith("sqlite")
    in_memory = url in ("sqlite://", "sqlite:///:memory:")

    if is_sqlite:
        _prepare_sqlite_path(url)
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if in_memory:
            # One shared connection so every session sees the same database
            kwargs["poolclass"] = StaticPool
        else:
            kwargs["connect_args"]["timeout"] = 30
        engine = create_engine(url, echo=False, **kwargs)

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_conn, _connection_record):
            cursor = dbapi_conn.cursor()
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(url, echo=False, pool_pre_ping=True)


def init_db(engine: Engine) -> None:
    """Create all tables that are not yet present."""
    from nova.db import tables as _tables  # noqa: F401 (registers the tables)

    SQLModel.metadata.create_all(engine)
    logger.info("database_initialized", dialect=engine.dialect.name)
