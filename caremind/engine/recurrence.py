"""Recurrence evaluation: due dates, next occurrences and reset decisions.

All functions here are pure. Timestamps are expected in the owner's local
time (see `caremind.utils.time_utils.from_utc`); calendar-day questions are
answered on the wall-clock date of the values passed in.
"""

from datetime import date, datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta
from dateutil.rrule import WEEKLY, rrule

from caremind.engine.rules import (
    AlternatingDays,
    Daily,
    Interval,
    RecurrenceRule,
    Weekly,
    ensure_rule,
    parse_hhmm,
)


def to_date(value: date | datetime) -> date:
    """Normalize a date or datetime to its calendar date (local midnight)."""
    if isinstance(value, datetime):
        return value.date()
    return value


def weekday_index(value: date | datetime) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7


def _to_rrule_weekday(day: int) -> int:
    """Convert 0 = Sunday numbering to dateutil's 0 = Monday numbering."""
    return (day - 1) % 7


def elapsed(start: datetime, end: datetime) -> timedelta:
    """Exact elapsed time between two timestamps.

    Aware datetimes are compared in UTC so a DST change between them is
    counted as real time, not wall-clock time.
    """
    if start.tzinfo is not None and end.tzinfo is not None:
        return end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    return end - start


def _add_exact_hours(value: datetime, hours: float) -> datetime:
    if value.tzinfo is None:
        return value + timedelta(hours=hours)
    as_utc = value.astimezone(timezone.utc) + timedelta(hours=hours)
    return as_utc.astimezone(value.tzinfo)


def is_due_on(
    rule: RecurrenceRule,
    anchor_date: date | datetime,
    target_date: date | datetime,
) -> bool:
    """Check whether an item with this rule is due on target_date.

    Args:
        rule: The item's recurrence rule
        anchor_date: The item's creation date (local)
        target_date: The date being asked about (local)

    Returns:
        True if the item should be acted upon that day. Always False
        before the anchor date.
    """
    rule = ensure_rule(rule)
    anchor = to_date(anchor_date)
    target = to_date(target_date)

    # Items cannot be due before they existed
    if target < anchor:
        return False

    if isinstance(rule, Daily):
        return True

    elif isinstance(rule, Interval):
        if rule.start_at is not None:
            return target >= to_date(rule.start_at)
        return True

    elif isinstance(rule, AlternatingDays):
        delta_days = (target - anchor).days
        return delta_days % rule.day_interval == 0

    elif isinstance(rule, Weekly):
        return weekday_index(target) in rule.weekdays

    raise AssertionError(f"Unhandled rule type {type(rule).__name__}")


def next_occurrence(rule: RecurrenceRule, last_occurrence: datetime) -> datetime:
    """Get the next occurrence strictly after last_occurrence.

    Daily and alternating-days rules keep the wall-clock time of
    last_occurrence. Interval rules add exact hours. Weekly rules land on the
    first matching weekday after last_occurrence's date, at the rule's time.
    """
    rule = ensure_rule(rule)

    if isinstance(rule, Daily):
        return last_occurrence + relativedelta(days=1)

    elif isinstance(rule, Interval):
        return _add_exact_hours(last_occurrence, rule.hours_interval)

    elif isinstance(rule, AlternatingDays):
        return last_occurrence + relativedelta(days=rule.day_interval)

    elif isinstance(rule, Weekly):
        at = parse_hhmm(rule.time)
        # Scan starts at the following day, so the result is never on the
        # same date as last_occurrence even if rule.time is later that day
        start = datetime.combine(
            to_date(last_occurrence) + timedelta(days=1),
            at,
            tzinfo=last_occurrence.tzinfo,
        )
        weekly = rrule(
            WEEKLY,
            dtstart=start,
            byweekday=[_to_rrule_weekday(d) for d in sorted(rule.weekdays)],
            byhour=at.hour,
            byminute=at.minute,
            bysecond=at.second,
        )
        next_date = weekly.after(start, inc=True)

        if next_date is None:
            raise ValueError("No next occurrence found")

        # Ensure timezone info is preserved
        if next_date.tzinfo is None and last_occurrence.tzinfo is not None:
            next_date = next_date.replace(tzinfo=last_occurrence.tzinfo)

        return next_date

    raise AssertionError(f"Unhandled rule type {type(rule).__name__}")


def should_reset(
    rule: RecurrenceRule | None,
    last_completed_at: datetime | None,
    now: datetime,
) -> bool:
    """Decide whether a completed item should go back to pending.

    Weekly rules always return False here; the reset sweep gates them with
    is_due_on instead.
    """
    if last_completed_at is None or rule is None:
        return False

    rule = ensure_rule(rule)

    if isinstance(rule, Daily):
        return to_date(now) != to_date(last_completed_at)

    elif isinstance(rule, Interval):
        return elapsed(last_completed_at, now) >= timedelta(hours=rule.hours_interval)

    elif isinstance(rule, AlternatingDays):
        return elapsed(last_completed_at, now) >= timedelta(days=rule.day_interval)

    elif isinstance(rule, Weekly):
        return False

    raise AssertionError(f"Unhandled rule type {type(rule).__name__}")
