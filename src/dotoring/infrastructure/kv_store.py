"""Durable key-value store on the local SQLite database.

Implements the async ``KeyValueStore`` protocol. Statements are short
local SQLite writes, so they run inline on the event loop; each call is
its own transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.dialects.sqlite import insert

from dotoring.infrastructure.database.schema import kv_pairs

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


class SqliteKeyValueStore:
    """String key-value pairs persisted in the ``kv_pairs`` table."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    async def get(self, key: str) -> str | None:
        with self._engine.connect() as conn:
            return conn.execute(select(kv_pairs.c.value).where(kv_pairs.c.key == key)).scalar()

    async def set(self, key: str, value: str) -> None:
        stmt = insert(kv_pairs).values(key=key, value=value, updated=datetime.now(UTC).isoformat())
        stmt = stmt.on_conflict_do_update(
            index_elements=[kv_pairs.c.key],
            set_={"value": stmt.excluded.value, "updated": stmt.excluded.updated},
        )
        with self._engine.begin() as conn:
            conn.execute(stmt)

    async def remove(self, key: str) -> None:
        with self._engine.begin() as conn:
            conn.execute(delete(kv_pairs).where(kv_pairs.c.key == key))

    async def multi_get(self, keys: Sequence[str]) -> list[tuple[str, str | None]]:
        """Return ``(key, value)`` pairs in *keys* order; missing keys map to None."""
        if not keys:
            return []
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(kv_pairs.c.key, kv_pairs.c.value).where(kv_pairs.c.key.in_(list(keys)))
            ).all()
        found = {row.key: row.value for row in rows}
        return [(key, found.get(key)) for key in keys]

    async def multi_remove(self, keys: Sequence[str]) -> None:
        if not keys:
            return
        with self._engine.begin() as conn:
            conn.execute(delete(kv_pairs).where(kv_pairs.c.key.in_(list(keys))))

    async def list_keys_with_prefix(self, prefix: str) -> list[str]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(kv_pairs.c.key)
                .where(kv_pairs.c.key.startswith(prefix, autoescape=True))
                .order_by(kv_pairs.c.key)
            ).all()
        # SQLite LIKE is case-insensitive for ASCII; re-check exactly.
        return [row.key for row in rows if row.key.startswith(prefix)]
