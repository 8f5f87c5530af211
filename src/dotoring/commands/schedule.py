"""Command group: inspect reminder planning and the local schedule table."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING

import click

from dotoring.commands._base import DotoGroup

if TYPE_CHECKING:
    from dotoring.commands._context import AppContext


def _parse_now(value: str | None, tz_name: str | None) -> datetime:
    from dotoring.services._helpers import local_now

    if value is None:
        return local_now(tz_name)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        # Naive --now is read as wall-clock time in the configured zone.
        parsed = parsed.replace(tzinfo=local_now(tz_name).tzinfo)
    return parsed


@click.group(
    cls=DotoGroup,
    examples="""\
  dotoring schedule plan 2026-11-30
  dotoring schedule plan 2026-11-30 --lead-days 7 --now 2026-11-01T08:00
  dotoring --json schedule entries""",
)
def schedule() -> None:
    """Inspect reminder plans and persisted schedule entries."""


@schedule.command(
    examples="""\
  dotoring schedule plan 2026-11-30
  dotoring schedule plan 2026-11-30 --lead-days 30
  dotoring schedule plan 2026-11-30 --status used""",
)
@click.argument("expire_date", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option(
    "--lead-days",
    type=click.Choice(["1", "3", "7", "10", "30"]),
    default="1",
    show_default=True,
    help="Lead reminder offset in days.",
)
@click.option("--now", "now_value", default=None, help="Plan as of this ISO 8601 time.")
@click.option(
    "--status",
    type=click.Choice(["active", "used", "expired"]),
    default="active",
    help="Coupon status to plan for.",
)
@click.option("--title", default="Sample coupon", help="Coupon title (for the preview).")
@click.pass_obj
def plan(
    app: AppContext,
    expire_date: datetime,
    lead_days: str,
    now_value: str | None,
    status: str,
    title: str,
) -> None:
    """Preview the reminders a coupon expiring on EXPIRE_DATE would get."""
    from dotoring.domain.models import Coupon
    from dotoring.services.scheduling import preview_plan

    ncfg = app.settings.notifications
    try:
        now = _parse_now(now_value, ncfg.timezone)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--now") from exc

    coupon = Coupon(
        id="preview",
        title=title,
        expire_date=expire_date.date(),
        status=status,
    )
    app.emit(preview_plan(coupon, int(lead_days), now, hour=ncfg.trigger_hour))


@schedule.command(
    examples="""\
  dotoring schedule entries
  dotoring --json schedule entries""",
)
@click.pass_obj
def entries(app: AppContext) -> None:
    """List persisted (coupon, kind) -> handle entries from the local database."""
    from dotoring.services.result import ServiceResult
    from dotoring.services.schedule_store import read_entries

    try:
        rows = asyncio.run(read_entries(app.kv, app.settings.notifications.key_prefix))
    finally:
        app.close()
    items = [entry.model_dump(mode="json") for entry in rows]
    app.emit(
        ServiceResult(
            ok=True,
            op="list_entries",
            data={"count": len(items), "coupons": len({e.entity_id for e in rows}), "items": items},
        )
    )
