"""Database engine and table definitions."""

from nova.db.engine import create_db_engine, init_db
from nova.db.tables import DocumentRow, UserConnectorRow

__all__ = [
    "create_db_engine",
    "init_db",
    "DocumentRow",
    "UserConnectorRow",
]
