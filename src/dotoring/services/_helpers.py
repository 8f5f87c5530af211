"""Shared service-layer helper functions."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta, tzinfo
from zoneinfo import ZoneInfo

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class SystemLocalZone(tzinfo):
    """The host's local zone, with the OS's DST rules applied per date.

    ``datetime.now().astimezone()`` carries only today's fixed offset; a
    trigger combined with it on the far side of a DST change would land an
    hour off. This zone asks the OS for the offset of each wall time instead.
    """

    def _local(self, dt: datetime) -> time.struct_time:
        stamp = time.mktime(
            (dt.year, dt.month, dt.day, dt.hour, dt.minute, dt.second, dt.weekday(), 0, -1)
        )
        return time.localtime(stamp)

    def utcoffset(self, dt: datetime | None) -> timedelta:
        if dt is None:
            return timedelta(seconds=-time.timezone)
        return timedelta(seconds=self._local(dt).tm_gmtoff)

    def dst(self, dt: datetime | None) -> timedelta:
        if dt is None or self._local(dt).tm_isdst <= 0:
            return timedelta(0)
        return self.utcoffset(dt) - timedelta(seconds=-time.timezone)

    def tzname(self, dt: datetime | None) -> str:
        if dt is None:
            return time.tzname[0]
        return self._local(dt).tm_zone

    def fromutc(self, dt: datetime) -> datetime:
        stamp = (dt.replace(tzinfo=UTC) - _EPOCH).total_seconds()
        local = time.localtime(stamp)
        return datetime(*local[:6], dt.microsecond, tzinfo=self)

    def __repr__(self) -> str:
        return "SystemLocalZone()"


SYSTEM_LOCAL = SystemLocalZone()


def local_now(tz_name: str | None = None) -> datetime:
    """Current aware time in *tz_name*, or in the system's local zone when None."""
    if tz_name:
        return datetime.now(ZoneInfo(tz_name))
    return datetime.now(SYSTEM_LOCAL)


def local_clock(tz_name: str | None = None) -> Callable[[], datetime]:
    """A zero-argument wall clock bound to *tz_name* (services take clocks, not zones)."""
    return lambda: local_now(tz_name)


def short_error(exc: BaseException) -> str:
    """Exception text for result payloads, never empty.

    Examples:
        >>> short_error(ValueError("bad lead"))
        'bad lead'
        >>> short_error(TimeoutError())
        'TimeoutError'
    """
    return str(exc) or type(exc).__name__
