"""Shared pytest fixtures and in-memory collaborators for dotoring tests."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Generator, Mapping, Sequence
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner
from sqlalchemy.engine import Engine

from dotoring.config.models import NotificationConfig
from dotoring.domain.models import Coupon, NotificationContent
from dotoring.domain.types import PermissionStatus
from dotoring.infrastructure.database.engine import init_database
from dotoring.infrastructure.kv_store import SqliteKeyValueStore
from dotoring.services.schedule_store import ScheduleStore
from dotoring.services.scheduling import ReminderScheduler
from dotoring.services.settings import SettingsResolver

PREFIX = "dotoring:notif:coupon:"
NOW = datetime(2026, 3, 1, 8, 0, tzinfo=UTC)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def db_engine(tmp_path: Path) -> Generator[Engine]:
    """Initialized SQLite engine with all tables created."""
    engine = init_database(tmp_path)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def _isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run in an empty temp directory with no dotoring env vars leaking in."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DOTORING_CONFIG", raising=False)
    monkeypatch.delenv("DOTORING_DATA_DIR", raising=False)


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeNotifier:
    """Device scheduler double: tracks live notifications by handle."""

    def __init__(self) -> None:
        self.active: dict[str, tuple[NotificationContent, datetime]] = {}
        self.permission = PermissionStatus.GRANTED
        self.permission_error: Exception | None = None
        self.fail_for: set[str] = set()
        self.cancelled: list[str] = []
        self.namespace_cancels = 0
        self._ids = itertools.count(1)

    async def schedule(self, content: NotificationContent, trigger_at: datetime) -> str:
        if content.data.get("coupon_id") in self.fail_for:
            raise RuntimeError("scheduler rejected the request")
        handle = f"n-{next(self._ids)}"
        self.active[handle] = (content, trigger_at)
        return handle

    async def cancel(self, handle: str) -> None:
        self.cancelled.append(handle)
        self.active.pop(handle, None)

    async def cancel_all_in_namespace(self) -> None:
        self.namespace_cancels += 1
        self.active.clear()

    async def get_permission_status(self) -> PermissionStatus:
        if self.permission_error is not None:
            raise self.permission_error
        return self.permission

    def for_coupon(self, coupon_id: str) -> list[NotificationContent]:
        return [c for c, _ in self.active.values() if c.data.get("coupon_id") == coupon_id]


class MemoryKeyValueStore:
    """Dict-backed KeyValueStore."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)

    async def multi_get(self, keys: Sequence[str]) -> list[tuple[str, str | None]]:
        return [(k, self.data.get(k)) for k in keys]

    async def multi_remove(self, keys: Sequence[str]) -> None:
        for key in keys:
            self.data.pop(key, None)

    async def list_keys_with_prefix(self, prefix: str) -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


class FakeSettingsStore:
    def __init__(self, rows: dict[str, dict[str, Any]] | None = None) -> None:
        self.rows = rows or {}
        self.fetch_calls = 0
        self.fail = False
        self.upserts: list[tuple[str, dict[str, Any]]] = []

    async def fetch_settings(self, user_id: str) -> Mapping[str, Any] | None:
        self.fetch_calls += 1
        if self.fail:
            raise ConnectionError("settings backend unreachable")
        return self.rows.get(user_id)

    async def upsert_settings(self, user_id: str, values: Mapping[str, Any]) -> None:
        self.upserts.append((user_id, dict(values)))
        self.rows[user_id] = {**self.rows.get(user_id, {}), **values}


class FakeCouponQuery:
    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = rows or []
        self.calls: list[tuple[str, date, int]] = []
        self.fail = False
        self.gate: asyncio.Event | None = None

    async def fetch_candidates(
        self, user_id: str, *, since: date, limit: int
    ) -> list[Mapping[str, Any]]:
        self.calls.append((user_id, since, limit))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ConnectionError("coupon backend unreachable")
        return list(self.rows[:limit])


class FakeSigner:
    """Signs keys as ``https://signed.example/<key>?v=<call>``."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.fail = False
        self.refuse: set[str] = set()
        self.gate: asyncio.Event | None = None

    async def create_signed_urls(
        self, keys: Sequence[str], ttl_seconds: int
    ) -> dict[str, str | None]:
        self.calls.append(list(keys))
        call = len(self.calls)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise ConnectionError("storage unreachable")
        return {
            key: None if key in self.refuse else f"https://signed.example/{key}?v={call}"
            for key in keys
        }


class ManualClock:
    """Settable clock; ``advance`` moves it forward."""

    def __init__(self, value: Any) -> None:
        self.value = value

    def __call__(self) -> Any:
        return self.value

    def advance(self, delta: Any) -> None:
        self.value = self.value + delta


# ---------------------------------------------------------------------------
# Helpers and engine fixtures
# ---------------------------------------------------------------------------


def make_coupon(coupon_id: str = "c1", expire: date = date(2026, 3, 10), **kwargs: Any) -> Coupon:
    kwargs.setdefault("title", f"Coupon {coupon_id}")
    return Coupon(id=coupon_id, expire_date=expire, **kwargs)


def coupon_row(coupon_id: str, expire: date, status: str = "active") -> dict[str, Any]:
    return {
        "id": coupon_id,
        "title": f"Coupon {coupon_id}",
        "expire_date": expire.isoformat(),
        "status": status,
        "image_url": None,
    }


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def sqlite_kv(db_engine: Engine) -> SqliteKeyValueStore:
    return SqliteKeyValueStore(db_engine)


@pytest.fixture
def settings_store() -> FakeSettingsStore:
    return FakeSettingsStore()


@pytest.fixture
def coupons() -> FakeCouponQuery:
    return FakeCouponQuery()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def wall_clock() -> ManualClock:
    return ManualClock(NOW)


@pytest.fixture
def store(kv: MemoryKeyValueStore, notifier: FakeNotifier) -> ScheduleStore:
    return ScheduleStore(kv, notifier, prefix=PREFIX)


@pytest.fixture
def scheduler(
    store: ScheduleStore,
    notifier: FakeNotifier,
    settings_store: FakeSettingsStore,
    coupons: FakeCouponQuery,
    wall_clock: ManualClock,
) -> ReminderScheduler:
    return ReminderScheduler(
        settings=SettingsResolver(settings_store),
        store=store,
        notifier=notifier,
        coupons=coupons,
        config=NotificationConfig(key_prefix=PREFIX),
        clock=wall_clock,
    )
