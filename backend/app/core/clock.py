from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]


def get_zone(name: Optional[str]) -> tzinfo:
    """Resolve an IANA timezone name, falling back to the configured default"""
    name = name or settings.DEFAULT_TIMEZONE
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", name)
        return timezone.utc


def to_local(now: datetime, tz: tzinfo) -> datetime:
    """Naive UTC timestamps (as stored) converted to the tenant clock"""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(tz)


def weekday_index(local: datetime) -> int:
    # 0 = Sunday ... 6 = Saturday
    return (local.weekday() + 1) % 7


def weekday_name(local: datetime) -> str:
    return WEEKDAY_NAMES[weekday_index(local)]


def parse_hhmm(value: str) -> time:
    hours, _, minutes = value.strip().partition(":")
    return time(int(hours), int(minutes or 0))


def in_time_window(local: datetime, start: str, end: str) -> bool:
    """Inclusive HH:MM window; a window whose end precedes its start wraps midnight"""
    current = local.time().replace(second=0, microsecond=0)
    start_t, end_t = parse_hhmm(start), parse_hhmm(end)
    if start_t <= end_t:
        return start_t <= current <= end_t
    return current >= start_t or current <= end_t


def local_day_start_utc(now: datetime, tz: tzinfo) -> datetime:
    """Start of the tenant's current day, as a naive UTC timestamp"""
    local = to_local(now, tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


def days_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier) / timedelta(days=1)
