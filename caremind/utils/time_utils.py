"""Time and timezone utilities."""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def to_utc(dt: datetime, tz: str) -> datetime:
    """Convert a datetime to UTC. Naive values are taken as local to tz."""
    if dt.tzinfo is None:
        # Assume it's in the given timezone
        dt = dt.replace(tzinfo=ZoneInfo(tz))
    return dt.astimezone(ZoneInfo("UTC"))


def from_utc(dt: datetime, tz: str) -> datetime:
    """Convert a UTC datetime to the given timezone."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(ZoneInfo(tz))


def is_valid_timezone(tz: str) -> bool:
    """Check whether tz is a known IANA timezone name."""
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def local_slot(day: date, at: time, tz: str) -> datetime:
    """The UTC instant of a wall-clock time on a local calendar day."""
    return to_utc(datetime.combine(day, at), tz)


def format_next_dose(dt: datetime, tz: str, now: datetime | None = None) -> str:
    """Format a dose time relative to the local day.

    Examples:
        "today at 08:00"
        "tomorrow at 20:00"
        "12/03 at 09:30"
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    local = from_utc(dt, tz)
    today = from_utc(now, tz).date()
    clock = local.strftime("%H:%M")

    if local.date() == today:
        return f"today at {clock}"
    elif local.date() == today + timedelta(days=1):
        return f"tomorrow at {clock}"
    return f"{local.strftime('%d/%m')} at {clock}"


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Format a past datetime relative to now.

    Examples:
        "just now"
        "25 minutes ago"
        "3 hours ago"
        "2 days ago"
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    seconds = (now - dt).total_seconds()

    if seconds < 60:
        return "just now"
    elif seconds < 3600:
        minutes = int(seconds / 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    elif seconds < 86400:
        hours = int(seconds / 3600)
        return f"{hours} hour{'s' if hours != 1 else ''} ago"
    days = int(seconds / 86400)
    return f"{days} day{'s' if days != 1 else ''} ago"
