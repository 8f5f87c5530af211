"""Enums and constants shared across the reminder engine."""

from __future__ import annotations

from enum import StrEnum

ALLOWED_LEAD_DAYS: frozenset[int] = frozenset({1, 3, 7, 10, 30})
DEFAULT_LEAD_DAYS = 1


class CouponStatus(StrEnum):
    """Lifecycle status of a coupon as stored by the backend."""

    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


class ReminderKind(StrEnum):
    """The two reminders a coupon can carry.

    Values double as the suffix of the persisted schedule key.
    """

    LEAD = "lead"
    DAY_BEFORE = "d1"


class SkipReason(StrEnum):
    """Why ``schedule_for`` declined to schedule anything."""

    DISABLED = "disabled"
    PERMISSION_OFF = "permission_off"
    NOT_ELIGIBLE = "not_eligible"
    TRIGGER_IN_PAST = "trigger_in_past"


class PermissionStatus(StrEnum):
    """OS-level notification permission as reported by the scheduler."""

    GRANTED = "granted"
    DENIED = "denied"
