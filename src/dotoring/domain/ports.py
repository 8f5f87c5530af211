"""Collaborator protocols consumed by the reminder engine.

The engine never depends on a concrete notification SDK, storage SDK, or
backend client, only on these operations. Tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any, Protocol

from dotoring.domain.models import NotificationContent
from dotoring.domain.types import PermissionStatus


class NotificationScheduler(Protocol):
    """Device-local notification scheduler."""

    async def schedule(self, content: NotificationContent, trigger_at: datetime) -> str:
        """Schedule a one-shot notification and return its opaque handle."""
        ...

    async def cancel(self, handle: str) -> None:
        """Cancel a scheduled notification; unknown handles are a no-op."""
        ...

    async def cancel_all_in_namespace(self) -> None:
        """Cancel every notification this app has scheduled."""
        ...

    async def get_permission_status(self) -> PermissionStatus: ...


class KeyValueStore(Protocol):
    """Durable string key-value store (survives process restart)."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def multi_get(self, keys: Sequence[str]) -> list[tuple[str, str | None]]: ...

    async def multi_remove(self, keys: Sequence[str]) -> None: ...

    async def list_keys_with_prefix(self, prefix: str) -> list[str]: ...


class CouponQuery(Protocol):
    """Remote coupon reads."""

    async def fetch_candidates(
        self, user_id: str, *, since: date, limit: int
    ) -> list[Mapping[str, Any]]:
        """Unconsumed coupons of *user_id* expiring on/after *since*, soonest first."""
        ...


class SettingsStore(Protocol):
    """Remote per-user notification settings record."""

    async def fetch_settings(self, user_id: str) -> Mapping[str, Any] | None: ...

    async def upsert_settings(self, user_id: str, values: Mapping[str, Any]) -> None: ...


class UrlSigner(Protocol):
    """Storage backend that issues time-limited URLs for private object keys."""

    async def create_signed_urls(
        self, keys: Sequence[str], ttl_seconds: int
    ) -> dict[str, str | None]: ...
