"""Date helpers. Timestamps are stored as naive UTC."""
from datetime import date, datetime, time, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Current instant as naive UTC (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_zone(tz_name: Optional[str]) -> ZoneInfo:
    """Resolve a tenant timezone, falling back to UTC on unknown names."""
    try:
        return ZoneInfo(tz_name or 'UTC')
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo('UTC')


def local_day_start_utc(tz_name: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Start of the local day for ``tz_name``, as naive UTC."""
    zone = get_zone(tz_name)
    current = (now or datetime.now(timezone.utc)).astimezone(zone)
    start = datetime.combine(current.date(), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date(value: Union[str, date, None]) -> Optional[date]:
    """
    Parse an ISO date (YYYY-MM-DD). Datetimes are truncated to their date.

    Returns None for empty values and raises ValueError for garbage.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if 'T' in text:
        text = text.split('T', 1)[0]
    return date.fromisoformat(text)


def parse_time(value: Optional[str]) -> Optional[str]:
    """Normalize HH:MM[:SS] into HH:MM. Raises ValueError for garbage."""
    if value is None or value == '':
        return None
    parsed = time.fromisoformat(str(value).strip())
    return parsed.strftime('%H:%M')


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse an ISO datetime into naive UTC."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
