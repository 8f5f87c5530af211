"""DotoringRuntime — process-wide owner of the reminder engine's state.

Created once at app start and torn down on logout / account deletion.
It wires the settings resolver, schedule store, reminder scheduler and
signed-URL cache around the injected collaborators, and exposes the
lifecycle hooks UI event handlers call:

- ``on_coupon_saved``      created or edited (image replacement invalidates the old URL)
- ``on_coupon_deleted``    reminders cancelled, image URL forgotten
- ``on_settings_changed``  settings persisted, then a full reschedule
- ``on_app_focus``         full reschedule
- ``teardown``             zero reminders left, every cache dropped
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from dotoring.config.logging import bound_log_context
from dotoring.domain.models import Coupon
from dotoring.domain.ports import (
    CouponQuery,
    KeyValueStore,
    NotificationScheduler,
    SettingsStore,
    UrlSigner,
)
from dotoring.services._helpers import local_clock
from dotoring.services.image_urls import SignedUrlCache
from dotoring.services.result import ServiceResult
from dotoring.services.schedule_store import ScheduleStore
from dotoring.services.scheduling import ReminderScheduler
from dotoring.services.settings import SettingsResolver

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from dotoring.config.settings import DotoringSettings

logger = logging.getLogger(__name__)


class DotoringRuntime:
    """Composition root for one signed-in app process.

    Args:
        settings: Resolved configuration.
        notifier: Device notification scheduler.
        coupons: Remote coupon query.
        settings_store: Remote per-user settings record.
        signer: Object-storage URL signer.
        kv: Durable key-value store for the schedule table. When omitted,
            the SQLite database under ``settings.data_dir`` is opened.
        clock: Wall clock for trigger planning (defaults to the configured zone).
    """

    def __init__(
        self,
        settings: DotoringSettings,
        *,
        notifier: NotificationScheduler,
        coupons: CouponQuery,
        settings_store: SettingsStore,
        signer: UrlSigner,
        kv: KeyValueStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self._engine: Engine | None = None
        if kv is None:
            from dotoring.infrastructure.database.engine import init_database
            from dotoring.infrastructure.kv_store import SqliteKeyValueStore

            self._engine = init_database(settings.data_dir)
            kv = SqliteKeyValueStore(self._engine)

        ncfg = settings.notifications
        self.settings_resolver = SettingsResolver(
            settings_store, ttl_seconds=ncfg.settings_cache_ttl_seconds
        )
        self.store = ScheduleStore(kv, notifier, prefix=ncfg.key_prefix)
        self.reminders = ReminderScheduler(
            settings=self.settings_resolver,
            store=self.store,
            notifier=notifier,
            coupons=coupons,
            config=ncfg,
            clock=clock or local_clock(ncfg.timezone),
        )
        self.images = SignedUrlCache(
            signer,
            bucket=settings.images.bucket,
            signed_url_ttl_seconds=settings.images.signed_url_ttl_seconds,
            cache_ttl_ratio=settings.images.cache_ttl_ratio,
        )

    async def on_coupon_saved(
        self, user_id: str, coupon: Coupon, *, previous_image: str | None = None
    ) -> ServiceResult:
        """Reschedule one coupon after create/edit/consume."""
        with bound_log_context(user_id=user_id, coupon_id=coupon.id):
            if previous_image and previous_image != coupon.image_url:
                self.images.invalidate(previous_image)
            return await self.reminders.schedule_for(user_id, coupon)

    async def on_coupon_deleted(
        self, coupon_id: str, *, image_url: str | None = None
    ) -> ServiceResult:
        with bound_log_context(coupon_id=coupon_id):
            self.images.invalidate(image_url)
            return await self.reminders.cancel_for(coupon_id)

    async def on_settings_changed(
        self,
        user_id: str,
        *,
        enabled: bool | None = None,
        lead_days: int | None = None,
    ) -> ServiceResult:
        """Persist the change, then rebuild every reminder under the new settings.

        Raises:
            ValueError: If *lead_days* is not an allowed offset.
        """
        with bound_log_context(user_id=user_id):
            await self.settings_resolver.update_settings(
                user_id, enabled=enabled, lead_days=lead_days
            )
            return await self.reminders.reschedule_all(user_id)

    async def on_app_focus(self, user_id: str) -> ServiceResult:
        with bound_log_context(user_id=user_id):
            return await self.reminders.reschedule_all(user_id)

    async def teardown(self) -> ServiceResult:
        """Logout / account deletion: cancel everything and drop caches."""
        result = await self.reminders.hard_reset()
        self.images.clear()
        self.settings_resolver.invalidate()
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
        logger.debug("Runtime torn down")
        return result
