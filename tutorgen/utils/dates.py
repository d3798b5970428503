"""
Date helpers: ledger days and per-goal day indices
"""

import logging
from datetime import date, datetime, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ledger_day(now: Optional[datetime] = None) -> date:
    """Spend rollups are bucketed by UTC calendar day"""
    now = now or utcnow()
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(timezone.utc).date()


def resolve_timezone(tz: Union[str, tzinfo, None]) -> tzinfo:
    if tz is None:
        return timezone.utc
    if isinstance(tz, tzinfo):
        return tz
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz!r}, using UTC")
        return timezone.utc


def _local_date(moment: datetime, zone: tzinfo) -> date:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(zone).date()


def day_index(
    created_at: datetime,
    now: Optional[datetime] = None,
    tz: Union[str, tzinfo, None] = "UTC",
) -> int:
    """
    1-based day number of a goal.

    The day changes at local midnight in the goal's timezone, so
    day_index(T, T) == 1 and day_index(T, T + k days) == k + 1.
    Never less than 1, even if the clock reads earlier than creation.
    """
    zone = resolve_timezone(tz)
    now = now or utcnow()
    start = _local_date(created_at, zone)
    today = _local_date(now, zone)
    return max(1, (today - start).days + 1)
