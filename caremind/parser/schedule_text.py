"""Turn short schedule phrases into recurrence rules."""

from datetime import datetime

from caremind.engine.rules import (
    AlternatingDays,
    Daily,
    Interval,
    InvalidRule,
    RecurrenceRule,
    Weekly,
)
from caremind.parser.patterns import (
    DAILY_PATTERNS,
    DATETIME_FORMATS,
    DAYS_PATTERNS,
    HOURS_PATTERNS,
    TIME_PATTERN,
    WEEKDAY_GROUPS,
    WEEKDAY_NAMES,
    WEEKDAY_SPLIT,
)


def extract_times(text: str) -> list[str]:
    """Pull every HH:MM-looking time out of text, normalized and deduplicated.

    Examples:
        "08:00 and 20:00" -> ["08:00", "20:00"]
        "8h 14h30" -> ["08:00", "14:30"]
    """
    times: list[str] = []
    for match in TIME_PATTERN.finditer(text):
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if hour > 23 or minute > 59:
            raise InvalidRule(f"Invalid time '{match.group(0)}'")
        value = f"{hour:02d}:{minute:02d}"
        if value not in times:
            times.append(value)
    return sorted(times)


def parse_local_datetime(text: str) -> datetime | None:
    """Parse an appointment date and time, as naive local wall-clock time.

    Examples:
        "2024-03-05 14:30"
        "05/03/2024 14:30"
    """
    value = " ".join(text.split())
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None

def _parse_weekdays(text: str) -> list[int]:
    """Leading weekday names, up to the first token that is not one."""
    days: list[int] = []
    for token in WEEKDAY_SPLIT.split(text.lower()):
        if not token or token in ('and', 'e', 'on', 'every', 'at', 'às', 'as'):
            continue
        if token in WEEKDAY_GROUPS:
            days.extend(WEEKDAY_GROUPS[token])
        elif token in WEEKDAY_NAMES:
            days.append(WEEKDAY_NAMES[token])
        else:
            break
    return sorted(set(days))


def build_rule_from_text(schedule_text: str) -> RecurrenceRule | None:
    """Build a recurrence rule from a short phrase.

    Examples:
        "daily 08:00 20:00" -> Daily(("08:00", "20:00"))
        "every 8 hours" -> Interval(8)
        "every 3 days at 09:00" -> AlternatingDays(3, ("09:00",))
        "every other day" -> AlternatingDays(2)
        "mon,wed,fri 08:00" -> Weekly({1, 3, 5}, "08:00")
        "a cada 8 horas" -> Interval(8)

    Returns:
        The rule, or None if the phrase is not recognized

    Raises:
        InvalidRule: the phrase is recognized but its values are invalid
    """
    text = schedule_text.strip()
    if not text:
        return None

    for pattern in DAILY_PATTERNS:
        if pattern.search(text):
            times = extract_times(text)
            if not times:
                raise InvalidRule("A daily schedule needs at least one time, e.g. 'daily 08:00'")
            return Daily(times=tuple(times))

    for pattern in HOURS_PATTERNS:
        match = pattern.search(text)
        if match:
            hours = float(match.group(1).replace(',', '.'))
            if hours.is_integer():
                return Interval(hours_interval=int(hours))
            return Interval(hours_interval=hours)

    for pattern in DAYS_PATTERNS:
        match = pattern.search(text)
        if match:
            day_interval = int(match.group(1)) if match.groups() else 2
            rest = text[match.end():]
            return AlternatingDays(day_interval=day_interval, times=tuple(extract_times(rest)))

    weekdays = _parse_weekdays(text)
    if weekdays:
        times = extract_times(text)
        if len(times) != 1:
            raise InvalidRule("A weekly schedule needs exactly one time, e.g. 'mon,wed 08:00'")
        return Weekly(weekdays=frozenset(weekdays), time=times[0])

    return None
