"""SQLAlchemy Core table definitions for the local dotoring database.

One generic key-value table backs every durable local mapping; the
schedule store namespaces its rows with a key prefix.
"""

from __future__ import annotations

from sqlalchemy import Column, MetaData, Table, Text

metadata = MetaData()

kv_pairs = Table(
    "kv_pairs",
    metadata,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),
    Column("updated", Text, nullable=False),  # ISO 8601 UTC
)
