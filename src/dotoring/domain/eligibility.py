"""Which coupons may carry a scheduled reminder.

Pure function: the single-coupon path and the bulk reschedule path both
call it and must agree.
"""

from __future__ import annotations

from datetime import datetime, time

from dotoring.domain.models import Coupon


def end_of_expiry_day(coupon: Coupon, tz_source: datetime) -> datetime:
    """Last instant of the coupon's expiry date, in *tz_source*'s timezone."""
    return datetime.combine(coupon.expire_date, time.max, tzinfo=tz_source.tzinfo)


def is_eligible(coupon: Coupon, now: datetime) -> bool:
    """True unless the coupon is consumed or its expiry day has fully passed."""
    if coupon.consumed:
        return False
    return not end_of_expiry_day(coupon, now) < now
