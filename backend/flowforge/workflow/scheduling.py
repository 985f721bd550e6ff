"""Recurrence rules for workflow schedules.

All functions take ``now`` explicitly and return naive UTC datetimes, the
form stored in the database.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..models.schedule import TRIGGER_DAILY, TRIGGER_INTERVAL, TRIGGER_ONCE, TRIGGER_TYPES
from ..utils.clock import as_naive_utc

logger = logging.getLogger(__name__)

MIN_INTERVAL_MINUTES = 1


def resolve_timezone(identifier: str | None) -> tzinfo:
    """Return the zone named ``identifier``; blank or unknown names give UTC."""

    if not identifier or not identifier.strip():
        return timezone.utc
    try:
        return ZoneInfo(identifier.strip())
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, falling back to UTC", identifier)
        return timezone.utc


def normalize_trigger_type(value: str | None) -> str | None:
    """Map a trigger name to its canonical spelling, or ``None`` when unknown."""

    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    for trigger in TRIGGER_TYPES:
        if trigger.lower() == candidate:
            return trigger
    return None


def _aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _next_daily(start: datetime, basis: datetime, tz: tzinfo) -> datetime:
    local_basis = basis.astimezone(tz)
    time_of_day = start.astimezone(tz).time()
    day = local_basis.date()
    target = datetime.combine(day, time_of_day, tzinfo=tz)
    if target <= local_basis:
        target = datetime.combine(day + timedelta(days=1), time_of_day, tzinfo=tz)
    return target.astimezone(timezone.utc)


def compute_next_run(schedule, now: datetime, tz: tzinfo | None = None) -> datetime | None:
    """Return the next instant ``schedule`` should fire, or ``None`` for never."""

    if not schedule.is_active:
        return None

    now = _aware_utc(now)
    if tz is None:
        tz = resolve_timezone(schedule.time_zone_id)
    start = _aware_utc(schedule.start_at) if schedule.start_at else now
    last = _aware_utc(schedule.last_run_at) if schedule.last_run_at else None
    trigger = normalize_trigger_type(schedule.trigger_type)

    if trigger == TRIGGER_DAILY:
        target = _next_daily(start, last or now, tz)
        if last is None and target <= now:
            target = _next_daily(start, target, tz)
        return as_naive_utc(target)

    if trigger == TRIGGER_ONCE or schedule.interval_minutes is None:
        if last is not None:
            return None
        return as_naive_utc(start) if start > now else None

    interval = timedelta(minutes=max(MIN_INTERVAL_MINUTES, int(schedule.interval_minutes)))
    if last is not None:
        candidate = last + interval
        return as_naive_utc(candidate if candidate > now else now + interval)

    if schedule.next_run_at is not None and _aware_utc(schedule.next_run_at) > now:
        return as_naive_utc(schedule.next_run_at)
    return as_naive_utc(start if start > now else now + interval)


def advance_after_run(schedule, now: datetime) -> None:
    """Record a run at ``now`` and move ``next_run_at`` along the recurrence."""

    schedule.last_run_at = as_naive_utc(now)
    trigger = normalize_trigger_type(schedule.trigger_type)
    single_shot = trigger == TRIGGER_ONCE or (
        trigger in (TRIGGER_INTERVAL, None) and not (schedule.interval_minutes or 0) > 0
    )
    if single_shot:
        schedule.is_active = False
        schedule.next_run_at = None
        return
    schedule.next_run_at = compute_next_run(schedule, now)
