"""
Organization timezone helpers.

Every date and clock time a user types is local to APP_TIMEZONE. The database only
ever stores naive UTC timestamps, so conversion happens here and nowhere else:

- a date without a time is anchored at 12:00 local, which keeps it on the same
  calendar day in every zone between UTC-11 and UTC+11
- reading a value back converts UTC to local before formatting
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ..config import APP_TIMEZONE

ORG_TZ = ZoneInfo(APP_TIMEZONE)
DATE_ANCHOR = time(12, 0)


def utcnow() -> datetime:
    """Naive UTC now, matching what the database stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(local: datetime) -> datetime:
    return local.replace(tzinfo=ORG_TZ).astimezone(timezone.utc).replace(tzinfo=None)


def _to_local(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc).astimezone(ORG_TZ)


def parse_org_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ValueError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def parse_org_time(value: str) -> time:
    try:
        parsed = datetime.strptime(value, "%H:%M")
    except ValueError as e:
        raise ValueError(f"Invalid time '{value}', expected HH:MM") from e
    return parsed.time()


def parse_org_datetime(date_str: str, time_str: Optional[str] = None) -> datetime:
    """Local YYYY-MM-DD (+ optional HH:MM) to naive UTC"""
    day = parse_org_date(date_str)
    clock = parse_org_time(time_str) if time_str else DATE_ANCHOR
    return _to_naive_utc(datetime.combine(day, clock))


def to_org_date_string(ts: Optional[datetime]) -> Optional[str]:
    if ts is None:
        return None
    return _to_local(ts).strftime("%Y-%m-%d")


def to_org_time_string(ts: Optional[datetime]) -> Optional[str]:
    if ts is None:
        return None
    return _to_local(ts).strftime("%H:%M")


def to_org_date(ts: datetime) -> date:
    return _to_local(ts).date()


def org_today() -> date:
    return _to_local(utcnow()).date()


def org_day_bounds(start: date, end: date) -> tuple[datetime, datetime]:
    """Inclusive local date range to a half-open [start, end) UTC interval"""
    lower = _to_naive_utc(datetime.combine(start, time.min))
    upper = _to_naive_utc(datetime.combine(end + timedelta(days=1), time.min))
    return lower, upper


def format_short_date(ts: datetime) -> str:
    """'Feb 6' style label used in invoice line descriptions"""
    local = _to_local(ts)
    return f"{local.strftime('%b')} {local.day}"


def format_long_date(ts: Optional[datetime]) -> str:
    if ts is None:
        return ""
    local = _to_local(ts)
    return f"{local.strftime('%B')} {local.day}, {local.year}"
