"""SQLite database engine and schema via SQLAlchemy Core."""

from dotoring.infrastructure.database.engine import create_db_engine, init_database
from dotoring.infrastructure.database.schema import kv_pairs, metadata

__all__ = [
    "create_db_engine",
    "init_database",
    "kv_pairs",
    "metadata",
]
