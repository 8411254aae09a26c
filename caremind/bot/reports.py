"""Adherence reports."""

from datetime import datetime, timedelta
from html import escape
from zoneinfo import ZoneInfo

from caremind.db.models import EVENT_MEDICATION_LATE, EVENT_ROUTINE_MISSED, Medication
from caremind.db.repository import Repository
from caremind.engine.agenda import due_items
from caremind.utils.constants import DEFAULT_LOW_STOCK_THRESHOLD, REPORT_DAYS
from caremind.utils.time_utils import from_utc


async def build_report(
    repo: Repository,
    owner_id: str,
    tz: str,
    now: datetime | None = None,
    days: int = REPORT_DAYS,
    low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
) -> dict:
    """Summarize a profile's items and event history.

    Returns:
        Dict with item counts, today's progress, late events in the window,
        appointments in the coming window and low-stock medications
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    report = {}
    items = await repo.list_scheduled_items(owner_id)
    medications = [i for i in items if isinstance(i, Medication)]

    report['medications'] = len(medications)
    report['routines'] = len(items) - len(medications)

    # Today's progress
    due_today = due_items(items, tz, now)
    report['due_today'] = len(due_today)
    report['done_today'] = len([i for i in due_today if i.completed])

    # Event history in the window
    events = await repo.list_events(owner_id, since=now - timedelta(days=days))
    report['days'] = days
    report['late_medications'] = len([e for e in events if e.event_type == EVENT_MEDICATION_LATE])
    report['missed_routines'] = len([e for e in events if e.event_type == EVENT_ROUTINE_MISSED])
    report['confirmed_late'] = len([e for e in events if e.status == 'confirmado'])
    report['still_pending'] = len([e for e in events if e.status == 'pendente'])

    # Appointments ahead
    upcoming = await repo.list_appointments(
        owner_id, since=now, until=now + timedelta(days=days)
    )
    report['upcoming_appointments'] = [
        {
            'title': a.title,
            'kind': a.kind,
            'when': from_utc(a.scheduled_at, tz).strftime('%d/%m %H:%M'),
        }
        for a in upcoming
    ]

    # Stock
    report['low_stock'] = [
        {'title': m.title, 'quantity': m.quantity_remaining}
        for m in medications
        if m.quantity_remaining is not None and m.quantity_remaining <= low_stock_threshold
    ]

    return report


def format_report_message(report: dict, profile_name: str) -> str:
    """Format a report into a readable message."""
    lines = [f"<b>📊 Report for {profile_name}</b>\n"]

    lines.append("<b>📋 Today</b>")
    lines.append(f"Done: {report['done_today']} of {report['due_today']}")
    lines.append(f"💊 Medications: {report['medications']}")
    lines.append(f"🗓 Routines: {report['routines']}\n")

    lines.append(f"<b>⏰ Last {report['days']} days</b>")
    lines.append(f"Late medications: {report['late_medications']}")
    lines.append(f"Missed routines: {report['missed_routines']}")
    lines.append(f"Confirmed afterwards: {report['confirmed_late']}")
    lines.append(f"Still pending: {report['still_pending']}")

    if report['upcoming_appointments']:
        lines.append(f"\n<b>🩺 Next {report['days']} days</b>")
        for entry in report['upcoming_appointments']:
            lines.append(f"{entry['when']} {escape(entry['title'])} ({entry['kind']})")

    if report['low_stock']:
        lines.append("\n<b>⚠️ Low stock</b>")
        for entry in report['low_stock']:
            lines.append(f"{entry['title']}: {entry['quantity']} left")

    return "\n".join(lines)
