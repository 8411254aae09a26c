"""What a profile has to do on a given day."""

from datetime import datetime, time, timedelta

from caremind.db.models import Appointment, ScheduledItem
from caremind.engine.recurrence import is_due_on
from caremind.utils.time_utils import from_utc, local_slot


def due_items(items: list[ScheduledItem], tz: str, now: datetime) -> list[ScheduledItem]:
    """Items due on now's local day, one-off items included.

    One-off items stay on the list until deleted; they never reset.
    """
    today = from_utc(now, tz).date()
    due = []
    for item in items:
        if item.recurrence is None:
            due.append(item)
        elif item.created_at is not None and is_due_on(
            item.recurrence, from_utc(item.created_at, tz), today
        ):
            due.append(item)
    return due


def local_day_bounds(tz: str, now: datetime) -> tuple[datetime, datetime]:
    """UTC instants of the local midnights that open and close now's day."""
    today = from_utc(now, tz).date()
    return local_slot(today, time.min, tz), local_slot(today + timedelta(days=1), time.min, tz)


def appointments_on(appointments: list[Appointment], tz: str, now: datetime) -> list[Appointment]:
    """Appointments falling on now's local day, earliest first."""
    today = from_utc(now, tz).date()
    return sorted(
        (a for a in appointments if from_utc(a.scheduled_at, tz).date() == today),
        key=lambda a: a.scheduled_at,
    )
