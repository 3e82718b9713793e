"""Time utilities bound to the restaurant's local timezone."""

import os
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo
from typing import Optional, Tuple

try:
    LOCAL_TZ = ZoneInfo(os.getenv("RESTAURANT_TZ", "Asia/Kolkata"))
except Exception:
    # Fallback to system local timezone when tzdata is unavailable (Windows)
    LOCAL_TZ = datetime.now().astimezone().tzinfo


def now_local() -> datetime:
    """Return timezone-aware datetime in the restaurant timezone."""
    return datetime.now(LOCAL_TZ)


def now_local_naive() -> datetime:
    """Return naive datetime representing restaurant local time (stored in the DB)."""
    return now_local().replace(tzinfo=None)


def iso_local() -> str:
    """Return ISO timestamp with the restaurant's UTC offset."""
    return now_local().isoformat()


def to_local(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to the restaurant tz (assumes local if naive)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=LOCAL_TZ)
    return dt.astimezone(LOCAL_TZ)


def isoformat_local(dt: Optional[datetime]) -> Optional[str]:
    """ISO string of a stored naive timestamp, with offset attached."""
    dt_local = to_local(dt)
    return dt_local.isoformat() if dt_local else None


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Half-open [start, end) naive local range covering one calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def range_bounds(start_day: date, end_day: date) -> Tuple[datetime, datetime]:
    """Half-open naive range covering start_day through end_day inclusive."""
    if end_day < start_day:
        start_day, end_day = end_day, start_day
    return datetime.combine(start_day, time.min), datetime.combine(end_day, time.min) + timedelta(days=1)


def month_bounds(year: int, month: int) -> Tuple[datetime, datetime]:
    """Half-open naive range covering a calendar month."""
    start = datetime(year, month, 1)
    if month == 12:
        end = datetime(year + 1, 1, 1)
    else:
        end = datetime(year, month + 1, 1)
    return start, end


def year_bounds(year: int) -> Tuple[datetime, datetime]:
    """Half-open naive range covering a calendar year."""
    return datetime(year, 1, 1), datetime(year + 1, 1, 1)
