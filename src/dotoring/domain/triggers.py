"""Trigger planning and reminder wording.

Every reminder fires at a fixed local hour (09:00 by default) on its
computed date, regardless of when planning runs. The day-before reminder
is mandatory; the lead reminder is added only when it falls on a
different day.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta

from dotoring.domain.models import Coupon, NotificationContent, PlannedTrigger
from dotoring.domain.types import ReminderKind

DEFAULT_TRIGGER_HOUR = 9
REMINDER_TITLE = "Coupon expiry reminder"


def trigger_instant(
    coupon: Coupon, days_before: int, now: datetime, *, hour: int = DEFAULT_TRIGGER_HOUR
) -> datetime:
    """``expire_date - days_before`` at *hour*:00 in *now*'s timezone."""
    day = coupon.expire_date - timedelta(days=days_before)
    return datetime.combine(day, time(hour=hour), tzinfo=now.tzinfo)


def candidate_triggers(
    coupon: Coupon, lead_days: int, now: datetime, *, hour: int = DEFAULT_TRIGGER_HOUR
) -> list[PlannedTrigger]:
    """All reminders for *coupon*, including any already in the past."""
    offsets = [(ReminderKind.DAY_BEFORE, 1)]
    if lead_days != 1:
        offsets.append((ReminderKind.LEAD, lead_days))
    return [
        PlannedTrigger(
            kind=kind,
            trigger_at=trigger_instant(coupon, days, now, hour=hour),
            days_before=days,
        )
        for kind, days in offsets
    ]


def plan_triggers(
    coupon: Coupon, lead_days: int, now: datetime, *, hour: int = DEFAULT_TRIGGER_HOUR
) -> list[PlannedTrigger]:
    """Reminders to schedule for *coupon*; triggers at or before *now* are dropped."""
    return [t for t in candidate_triggers(coupon, lead_days, now, hour=hour) if t.trigger_at > now]


def reminder_content(coupon: Coupon, trigger: PlannedTrigger) -> NotificationContent:
    """Deterministic notification text for one planned reminder."""
    if trigger.kind == ReminderKind.DAY_BEFORE:
        body = f"“{coupon.title}” expires tomorrow. Use it today!"
    else:
        body = (
            f"“{coupon.title}” expires in {trigger.days_before} days. "
            "Don't forget to use it!"
        )
    return NotificationContent(
        title=REMINDER_TITLE,
        body=body,
        data={
            "coupon_id": coupon.id,
            "expire_date": coupon.expire_date.isoformat(),
            "kind": str(trigger.kind),
            "days_before": trigger.days_before,
        },
    )
