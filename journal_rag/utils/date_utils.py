"""Date and time utility functions."""

from datetime import datetime, time, timedelta, UTC
from typing import Optional


def now_utc() -> datetime:
    return datetime.now(UTC)


def next_local_midnight(current_time: Optional[datetime] = None) -> datetime:
    """Next midnight in the server's local timezone, returned timezone-aware."""
    if current_time is None:
        current_time = datetime.now().astimezone()
    elif current_time.tzinfo is None:
        current_time = current_time.astimezone()

    tomorrow = current_time.date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=current_time.tzinfo)


def local_day_key(current_time: Optional[datetime] = None) -> str:
    """Local calendar day as YYYY-MM-DD; counters are bucketed by this key."""
    if current_time is None:
        current_time = datetime.now().astimezone()
    return current_time.date().isoformat()


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes, remaining_seconds = divmod(seconds, 60)
        return f"{minutes}m" if remaining_seconds == 0 else f"{minutes}m {remaining_seconds}s"
    elif seconds < 86400:
        hours = seconds // 3600
        remaining_minutes = (seconds % 3600) // 60
        return f"{hours}h" if remaining_minutes == 0 else f"{hours}h {remaining_minutes}m"
    else:
        days = seconds // 86400
        remaining_hours = (seconds % 86400) // 3600
        return f"{days}d" if remaining_hours == 0 else f"{days}d {remaining_hours}h"


def parse_timestamp(timestamp_str: str) -> datetime:
    """Parse ISO timestamp string to an aware datetime (naive input is taken as UTC)."""
    try:
        parsed = datetime.fromisoformat(timestamp_str.replace('Z', '+00:00'))
    except ValueError:
        parsed = None
        for fmt in ('%Y-%m-%d %H:%M:%S.%f', '%Y-%m-%d %H:%M:%S', '%Y-%m-%d'):
            try:
                parsed = datetime.strptime(timestamp_str, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            raise ValueError(f"Unable to parse timestamp: {timestamp_str}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_display_date(dt: datetime) -> str:
    """Short date used inside formatted context, e.g. 'Mar 5, 2025'."""
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"


def is_within_days(
    timestamp: datetime,
    days: int,
    current_time: Optional[datetime] = None,
) -> bool:
    """Check whether a timestamp falls within the last ``days`` days."""
    if current_time is None:
        current_time = now_utc()
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    return timestamp >= current_time - timedelta(days=days)
