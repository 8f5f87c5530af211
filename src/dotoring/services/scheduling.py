"""ReminderScheduler — per-coupon scheduling and full reconciliation.

Single coupon (``schedule_for``):
  settings/permission gate -> eligibility -> clear existing -> plan -> schedule + persist.

Full refresh (``reschedule_all``):
  gate -> fetch candidates -> filter -> clear everything -> schedule the
  ``max_scheduled`` soonest-expiring coupons one at a time.

Full refresh deliberately recomputes the world instead of diffing; the
cancel/recreate churn is small at these volumes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from pydantic import ValidationError

from dotoring.config.models import NotificationConfig
from dotoring.domain.eligibility import is_eligible
from dotoring.domain.models import Coupon
from dotoring.domain.ports import CouponQuery, NotificationScheduler
from dotoring.domain.triggers import (
    DEFAULT_TRIGGER_HOUR,
    candidate_triggers,
    plan_triggers,
    reminder_content,
)
from dotoring.domain.types import PermissionStatus, SkipReason
from dotoring.services._helpers import short_error
from dotoring.services.result import ServiceResult
from dotoring.services.schedule_store import ScheduleStore
from dotoring.services.settings import SettingsResolver
from dotoring.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)


class ReminderScheduler:
    """Decides which coupons get local reminders and keeps the schedule store in sync."""

    def __init__(
        self,
        *,
        settings: SettingsResolver,
        store: ScheduleStore,
        notifier: NotificationScheduler,
        coupons: CouponQuery,
        config: NotificationConfig,
        clock: Callable[[], datetime],
    ) -> None:
        self._settings = settings
        self._store = store
        self._notifier = notifier
        self._coupons = coupons
        self._config = config
        self._clock = clock
        self._inflight: dict[str, asyncio.Task[ServiceResult]] = {}
        self._rerun_requested: set[str] = set()

    async def _permission_granted(self) -> bool:
        try:
            return await self._notifier.get_permission_status() == PermissionStatus.GRANTED
        except Exception:
            logger.warning("Permission status unavailable; treating as denied", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Single coupon
    # ------------------------------------------------------------------

    @traced
    async def schedule_for(self, user_id: str, coupon: Coupon) -> ServiceResult:
        """(Re)schedule the reminders of one coupon.

        Running it twice leaves exactly the same stored entries as running
        it once. Skips are successful results tagged with a reason.
        """
        op = "schedule_for"
        try:
            settings = await self._settings.get_settings(user_id)
            if not settings.enabled:
                await self._store.clear_entity(coupon.id)
                return ServiceResult.skip(op, SkipReason.DISABLED, coupon_id=coupon.id)

            if not await self._permission_granted():
                await self._store.clear_entity(coupon.id)
                return ServiceResult.skip(op, SkipReason.PERMISSION_OFF, coupon_id=coupon.id)

            now = self._clock()
            if not is_eligible(coupon, now):
                await self._store.clear_entity(coupon.id)
                return ServiceResult.skip(op, SkipReason.NOT_ELIGIBLE, coupon_id=coupon.id)

            await self._store.clear_entity(coupon.id)

            hour = self._config.trigger_hour
            plan = plan_triggers(coupon, settings.lead_days, now, hour=hour)
            planned_kinds = {t.kind for t in plan}
            past = [
                str(t.kind)
                for t in candidate_triggers(coupon, settings.lead_days, now, hour=hour)
                if t.kind not in planned_kinds
            ]
            if not plan:
                return ServiceResult.skip(
                    op, SkipReason.TRIGGER_IN_PAST, coupon_id=coupon.id, past=past
                )

            for trigger in plan:
                handle = await self._notifier.schedule(
                    reminder_content(coupon, trigger), trigger.trigger_at
                )
                await self._store.set(coupon.id, trigger.kind, handle)
        except Exception as exc:
            logger.warning("Scheduling failed for coupon %s", coupon.id, exc_info=True)
            return ServiceResult.fail(
                op, "SCHEDULE_FAILED", short_error(exc), coupon_id=coupon.id
            )

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "scheduled": True,
                "coupon_id": coupon.id,
                "lead_days": settings.lead_days,
                "kinds": [str(t.kind) for t in plan],
                "triggers": [t.trigger_at.isoformat() for t in plan],
                "past": past,
            },
        )

    async def cancel_for(self, coupon_id: str) -> ServiceResult:
        """Cancel both reminders of one coupon (before deleting or consuming it)."""
        try:
            cleared = await self._store.clear_entity(coupon_id)
        except Exception as exc:
            logger.warning("Cancel failed for coupon %s", coupon_id, exc_info=True)
            return ServiceResult.fail(
                "cancel_for", "CANCEL_FAILED", short_error(exc), coupon_id=coupon_id
            )
        return ServiceResult(
            ok=True, op="cancel_for", data={"coupon_id": coupon_id, "cleared": cleared}
        )

    # ------------------------------------------------------------------
    # Full refresh
    # ------------------------------------------------------------------

    async def reschedule_all(self, user_id: str) -> ServiceResult:
        """Rebuild every reminder for *user_id* from the backend's current coupons.

        Non-reentrant per user: a call arriving while one is running joins
        it instead of racing it. A run joined after it started repeats once more
        before finishing, so every caller gets a result that reflects settings and
        coupons as of its own call, never a pass that started earlier.
        """
        task = self._inflight.get(user_id)
        if task is None or task.done():
            task = asyncio.ensure_future(self._run_coalesced(user_id))
            self._inflight[user_id] = task
            task.add_done_callback(lambda t, uid=user_id: self._forget_inflight(uid, t))
        else:
            self._rerun_requested.add(user_id)
        # shield: one caller being cancelled must not cancel the shared run
        return await asyncio.shield(task)

    async def _run_coalesced(self, user_id: str) -> ServiceResult:
        while True:
            # Requests made before this pass starts are covered by it.
            self._rerun_requested.discard(user_id)
            result = await self._reschedule_all(user_id)
            if user_id not in self._rerun_requested:
                return result
            logger.debug("Re-running reschedule_all for %s after a joined call", user_id)

    def _forget_inflight(self, user_id: str, task: asyncio.Task[ServiceResult]) -> None:
        if self._inflight.get(user_id) is task:
            del self._inflight[user_id]
            self._rerun_requested.discard(user_id)

    @traced
    async def _reschedule_all(self, user_id: str) -> ServiceResult:
        op = "reschedule_all"
        try:
            settings = await self._settings.get_settings(user_id)
            reason: SkipReason | None = None
            if not settings.enabled:
                reason = SkipReason.DISABLED
            elif not await self._permission_granted():
                reason = SkipReason.PERMISSION_OFF
            if reason is not None:
                cleared = await self._store.clear_all()
                return ServiceResult(
                    ok=True,
                    op=op,
                    data={"disabled": True, "reason": str(reason), "cleared": cleared},
                )
        except Exception as exc:
            logger.warning("Reschedule gate failed for %s", user_id, exc_info=True)
            return ServiceResult.fail(op, "CANCEL_FAILED", short_error(exc), user_id=user_id)

        try:
            now = self._clock()
        except Exception as exc:
            logger.warning("Wall clock unavailable for %s", user_id, exc_info=True)
            return ServiceResult.fail(op, "SCHEDULE_FAILED", short_error(exc), user_id=user_id)

        warnings: list[str] = []
        try:
            with trace_span("fetch_candidates"):
                rows = await self._coupons.fetch_candidates(
                    user_id, since=now.date(), limit=self._config.candidate_fetch_limit
                )
        except Exception as exc:
            # Keep whatever is scheduled now; a later refresh can succeed.
            logger.warning("Candidate fetch failed for %s", user_id, exc_info=True)
            return ServiceResult.fail(op, "FETCH_FAILED", short_error(exc), user_id=user_id)

        candidates: list[Coupon] = []
        for row in rows:
            try:
                coupon = Coupon.from_record(row)
            except ValidationError:
                logger.warning("Skipping malformed coupon row id=%s", row.get("id"))
                warnings.append(f"Malformed coupon record skipped: {row.get('id')}")
                continue
            if is_eligible(coupon, now):
                candidates.append(coupon)
        # Soonest expiry wins admission, independent of the backend's ordering.
        candidates.sort(key=lambda c: (c.expire_date, c.id))

        try:
            await self._store.clear_all()
        except Exception as exc:
            logger.warning("Clearing schedule failed for %s", user_id, exc_info=True)
            return ServiceResult.fail(op, "CANCEL_FAILED", short_error(exc), user_id=user_id)

        admitted = candidates[: self._config.max_scheduled]
        scheduled = 0
        failed: list[str] = []
        for coupon in admitted:
            res = await self.schedule_for(user_id, coupon)
            if not res.ok:
                failed.append(coupon.id)
                warnings.append(f"Scheduling failed for coupon {coupon.id}")
            elif res.data.get("scheduled"):
                scheduled += 1

        dropped = len(candidates) - len(admitted)
        if dropped:
            logger.info("Admission cap %d dropped %d coupons", self._config.max_scheduled, dropped)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "scheduled_count": scheduled,
                "max_scheduled": self._config.max_scheduled,
                "candidates": len(candidates),
                "dropped_by_cap": dropped,
                "failed": failed,
            },
            warnings=warnings,
        )

    async def hard_reset(self) -> ServiceResult:
        """Guarantee zero scheduled reminders (logout, account deletion).

        ``ScheduleStore.clear_all`` already ends with the namespace-wide
        cancel, so one sweep covers both stored and untracked reminders.
        """
        try:
            cleared = await self._store.clear_all()
        except Exception as exc:
            logger.warning("Schedule sweep failed during reset", exc_info=True)
            return ServiceResult.fail("hard_reset", "CANCEL_FAILED", short_error(exc))
        return ServiceResult(ok=True, op="hard_reset", data={"cleared": cleared})


def preview_plan(
    coupon: Coupon, lead_days: int, now: datetime, *, hour: int = DEFAULT_TRIGGER_HOUR
) -> ServiceResult:
    """Show what ``schedule_for`` would plan for *coupon*, without side effects."""
    eligible = is_eligible(coupon, now)
    planned = plan_triggers(coupon, lead_days, now, hour=hour) if eligible else []
    planned_kinds = {t.kind for t in planned}
    items = [
        {
            "kind": str(t.kind),
            "days_before": t.days_before,
            "trigger_at": t.trigger_at.isoformat(),
            "status": "planned" if t.kind in planned_kinds else "past",
        }
        for t in candidate_triggers(coupon, lead_days, now, hour=hour)
    ]
    return ServiceResult(
        ok=True,
        op="plan",
        data={
            "expire_date": coupon.expire_date.isoformat(),
            "lead_days": lead_days,
            "eligible": eligible,
            "count": len(planned),
            "items": items,
        },
    )
