"""Local schedule store — durable (coupon, kind) -> scheduler handle table.

The notification scheduler has no "replace" operation, so every write
goes through :meth:`ScheduleStore.set`, which cancels and forgets any
existing handle for the same key first. That keeps the invariant of at
most one handle per (coupon, kind) without relying on call-site ordering.

Keys look like ``{prefix}{coupon_id}:{kind}``, e.g.
``dotoring:notif:coupon:8f1c…:d1``.
"""

from __future__ import annotations

import logging

from dotoring.domain.models import ScheduleEntry
from dotoring.domain.ports import KeyValueStore, NotificationScheduler
from dotoring.domain.types import ReminderKind

logger = logging.getLogger(__name__)


def schedule_key(prefix: str, entity_id: str, kind: ReminderKind) -> str:
    return f"{prefix}{entity_id}:{kind}"


def parse_schedule_key(prefix: str, key: str) -> tuple[str, ReminderKind] | None:
    """Split a persisted key back into ``(entity_id, kind)``; None for foreign keys."""
    if not key.startswith(prefix):
        return None
    entity_id, sep, suffix = key[len(prefix) :].rpartition(":")
    if not sep or not entity_id:
        return None
    try:
        return entity_id, ReminderKind(suffix)
    except ValueError:
        return None


async def read_entries(kv: KeyValueStore, prefix: str) -> list[ScheduleEntry]:
    """All persisted entries under *prefix*, without touching the scheduler."""
    keys = await kv.list_keys_with_prefix(prefix)
    entries: list[ScheduleEntry] = []
    for key, handle in await kv.multi_get(keys):
        parsed = parse_schedule_key(prefix, key)
        if parsed is None or not handle:
            continue
        entity_id, kind = parsed
        entries.append(ScheduleEntry(entity_id=entity_id, kind=kind, handle=handle))
    return entries


class ScheduleStore:
    """Persistent handle table paired with the scheduler that issued the handles.

    All mutation of scheduled reminders must go through this class.
    """

    def __init__(self, kv: KeyValueStore, notifier: NotificationScheduler, *, prefix: str) -> None:
        self._kv = kv
        self._notifier = notifier
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    async def get(self, entity_id: str, kind: ReminderKind) -> str | None:
        return await self._kv.get(schedule_key(self._prefix, entity_id, kind))

    async def set(self, entity_id: str, kind: ReminderKind, handle: str) -> None:
        """Record *handle* for (entity_id, kind), replacing (and cancelling) any prior one."""
        previous = await self.get(entity_id, kind)
        if previous is not None and previous != handle:
            await self._cancel_handle(previous)
        await self._kv.set(schedule_key(self._prefix, entity_id, kind), handle)

    async def clear(self, entity_id: str, kind: ReminderKind) -> bool:
        """Cancel and forget the handle for (entity_id, kind).

        Idempotent: returns False when nothing was stored. A handle the
        scheduler no longer knows about still counts as cleared.
        """
        key = schedule_key(self._prefix, entity_id, kind)
        handle = await self._kv.get(key)
        if handle is None:
            return False
        await self._cancel_handle(handle)
        await self._kv.remove(key)
        return True

    async def clear_entity(self, entity_id: str) -> int:
        """Clear every reminder kind for *entity_id*; returns how many were stored."""
        cleared = 0
        for kind in ReminderKind:
            if await self.clear(entity_id, kind):
                cleared += 1
        return cleared

    async def clear_all(self) -> int:
        """Cancel and forget every stored handle, then cancel the whole namespace.

        The namespace-wide cancel catches scheduler-side notifications whose
        local mapping was lost (crash between schedule and persist, older
        builds). Returns the number of mappings removed.
        """
        keys = await self._kv.list_keys_with_prefix(self._prefix)
        if keys:
            for _key, handle in await self._kv.multi_get(keys):
                if handle:
                    await self._cancel_handle(handle)
            await self._kv.multi_remove(keys)

        try:
            await self._notifier.cancel_all_in_namespace()
        except Exception:
            logger.warning("Namespace-wide cancel failed", exc_info=True)
        logger.debug("Cleared %d schedule entries", len(keys))
        return len(keys)

    async def entries(self) -> list[ScheduleEntry]:
        return await read_entries(self._kv, self._prefix)

    async def _cancel_handle(self, handle: str) -> None:
        try:
            await self._notifier.cancel(handle)
        except Exception:
            # Already fired or removed out from under us; the mapping goes either way.
            logger.debug("Cancel of handle %s failed; treating as gone", handle, exc_info=True)
