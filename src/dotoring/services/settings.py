"""Notification settings resolver with a short-lived read cache.

Batch rescheduling asks for the same user's settings once per coupon, so
reads are cached for ``ttl_seconds`` (60s by default). Remote read
failures never propagate: the last cached value is served, else defaults.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from dotoring.domain.models import NotificationSettings, validate_lead_days
from dotoring.domain.ports import SettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CachedSettings:
    value: NotificationSettings
    fetched_at: float


class SettingsResolver:
    """Reads (and writes) per-user notification settings through a TTL cache."""

    def __init__(
        self,
        store: SettingsStore,
        *,
        ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache: dict[str, _CachedSettings] = {}

    async def get_settings(self, user_id: str) -> NotificationSettings:
        """Return the user's settings; never raises.

        A missing record or an unknown lead-day value yields the defaults
        (``enabled=True, lead_days=1``).
        """
        cached = self._cache.get(user_id)
        now = self._clock()
        if cached is not None and now - cached.fetched_at < self._ttl:
            return cached.value

        try:
            row = await self._store.fetch_settings(user_id)
        except Exception:
            logger.warning("Settings read failed for %s; using fallback", user_id, exc_info=True)
            return cached.value if cached is not None else NotificationSettings()

        settings = NotificationSettings.from_record(row)
        self._cache[user_id] = _CachedSettings(settings, now)
        return settings

    async def update_settings(
        self,
        user_id: str,
        *,
        enabled: bool | None = None,
        lead_days: int | None = None,
    ) -> NotificationSettings:
        """Persist a partial change, creating the record with defaults when missing.

        Unlike reads, writes propagate backend errors to the caller.

        Raises:
            ValueError: If *lead_days* is not one of the allowed offsets.
        """
        if lead_days is not None:
            validate_lead_days(lead_days)

        current = await self._current_for_write(user_id)
        patch: dict[str, object] = {}
        if enabled is not None:
            patch["enabled"] = enabled
        if lead_days is not None:
            patch["lead_days"] = lead_days
        updated = current.model_copy(update=patch)

        await self._store.upsert_settings(user_id, updated.to_record())
        self._cache[user_id] = _CachedSettings(updated, self._clock())
        return updated

    async def _current_for_write(self, user_id: str) -> NotificationSettings:
        # Writes merge onto the backend's current record, not a possibly stale cache.
        row = await self._store.fetch_settings(user_id)
        return NotificationSettings.from_record(row)

    def invalidate(self, user_id: str | None = None) -> None:
        """Drop the cached value for *user_id*, or every cached value when None."""
        if user_id is None:
            self._cache.clear()
        else:
            self._cache.pop(user_id, None)
