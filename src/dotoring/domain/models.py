"""Validated records for the reminder engine.

Rows arrive from the backend as loosely-typed mappings; ``from_record``
constructors are the boundary where they become typed, frozen models.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from dotoring.domain.types import (
    ALLOWED_LEAD_DAYS,
    DEFAULT_LEAD_DAYS,
    CouponStatus,
    ReminderKind,
)


def validate_lead_days(value: int) -> int:
    """Return *value* if it is an allowed lead-day offset, else raise ``ValueError``."""
    if value not in ALLOWED_LEAD_DAYS:
        msg = f"lead_days must be one of {sorted(ALLOWED_LEAD_DAYS)}, got {value!r}"
        raise ValueError(msg)
    return value


class Coupon(BaseModel):
    """A user-owned item with an expiry date (date only, no time)."""

    model_config = {"frozen": True}

    id: str
    title: str
    expire_date: date
    status: CouponStatus = CouponStatus.ACTIVE
    image_url: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _unknown_status_is_active(cls, value: Any) -> Any:
        # Only "used" carries meaning for reminders; anything unrecognised behaves as active.
        if value is None or value not in CouponStatus.__members__.values():
            return CouponStatus.ACTIVE
        return value

    @property
    def consumed(self) -> bool:
        return self.status == CouponStatus.USED

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> Coupon:
        """Build a coupon from a backend row (``expire_date`` as ``YYYY-MM-DD``).

        Raises:
            pydantic.ValidationError: If id, title or expire_date are missing or malformed.
        """
        return cls.model_validate(
            {
                "id": row.get("id"),
                "title": row.get("title"),
                "expire_date": row.get("expire_date"),
                "status": row.get("status"),
                "image_url": row.get("image_url"),
            }
        )


class NotificationSettings(BaseModel):
    """Per-user reminder preference.

    An out-of-range ``lead_days`` is clamped to the default rather than
    rejected; use :func:`validate_lead_days` for user input.
    """

    model_config = {"frozen": True}

    enabled: bool = True
    lead_days: int = DEFAULT_LEAD_DAYS

    @field_validator("lead_days", mode="before")
    @classmethod
    def _clamp_lead_days(cls, value: Any) -> int:
        if isinstance(value, int) and not isinstance(value, bool) and value in ALLOWED_LEAD_DAYS:
            return value
        return DEFAULT_LEAD_DAYS

    @classmethod
    def from_record(cls, row: Mapping[str, Any] | None) -> NotificationSettings:
        """Build settings from a ``user_settings`` row; ``None`` yields defaults."""
        if row is None:
            return cls()
        enabled = row.get("notif_enabled")
        return cls(
            enabled=enabled if isinstance(enabled, bool) else True,
            lead_days=row.get("notify_lead_days", DEFAULT_LEAD_DAYS),
        )

    def to_record(self) -> dict[str, Any]:
        return {"notif_enabled": self.enabled, "notify_lead_days": self.lead_days}


class PlannedTrigger(BaseModel):
    """One reminder the planner wants scheduled."""

    model_config = {"frozen": True}

    kind: ReminderKind
    trigger_at: datetime
    days_before: int


class NotificationContent(BaseModel):
    """What the device shows when a reminder fires."""

    model_config = {"frozen": True}

    title: str
    body: str
    data: dict[str, Any] = Field(default_factory=dict)
    sound: str = "default"
    channel_id: str = "default"


class ScheduleEntry(BaseModel):
    """One persisted (coupon, kind) -> scheduler handle mapping."""

    model_config = {"frozen": True}

    entity_id: str
    kind: ReminderKind
    handle: str
