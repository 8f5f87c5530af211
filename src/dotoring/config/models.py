"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, dotoring.toml only contains overrides.
A fresh install needs only [backend] url and anon_key.
"""

from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


class NotificationConfig(BaseModel):
    """[notifications] section.

    ``max_scheduled`` is the admission cap: at most this many coupons keep
    reminders on the device at once, soonest expiry first.
    """

    model_config = {"frozen": True}

    max_scheduled: int = Field(default=40, ge=1)
    candidate_fetch_limit: int = Field(default=200, ge=1)
    trigger_hour: int = Field(default=9, ge=0, le=23)
    settings_cache_ttl_seconds: float = Field(default=60.0, ge=0)
    key_prefix: str = "dotoring:notif:coupon:"
    timezone: str | None = None

    @field_validator("key_prefix")
    @classmethod
    def _prefix_not_empty(cls, value: str) -> str:
        if not value:
            msg = "key_prefix must not be empty"
            raise ValueError(msg)
        return value

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if not value:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            msg = f"timezone must be an IANA zone name, got {value!r}"
            raise ValueError(msg) from exc
        return value


class ImageConfig(BaseModel):
    """[images] section."""

    model_config = {"frozen": True}

    bucket: str = "coupon-images"
    signed_url_ttl_seconds: int = Field(default=3600, gt=0)
    cache_ttl_ratio: float = Field(default=0.9, gt=0, le=1)

    @property
    def cache_ttl_seconds(self) -> float:
        """How long a signed URL is served from cache (shorter than its real expiry)."""
        return self.signed_url_ttl_seconds * self.cache_ttl_ratio


class BackendConfig(BaseModel):
    """[backend] section — the hosted REST/storage backend."""

    model_config = {"frozen": True}

    url: str = ""
    anon_key: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0)
