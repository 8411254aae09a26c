"""Message text formatters."""

from datetime import datetime
from html import escape
from zoneinfo import ZoneInfo

from caremind.db.models import Appointment, Medication, Profile, ScheduledItem
from caremind.engine.recurrence import next_occurrence
from caremind.engine.rules import describe_rule
from caremind.utils.time_utils import format_next_dose, format_relative_time, from_utc


def format_item(item: ScheduledItem, tz: str, now: datetime | None = None) -> str:
    """Format a single medication or routine."""
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    emoji = "💊" if isinstance(item, Medication) else "🗓"
    status = "✓" if item.completed else "○"
    title = f"{status} {emoji} <b>{escape(item.title)}</b> (ID: {item.id})"

    if isinstance(item, Medication) and item.dosage:
        title += f" - {escape(item.dosage)}"

    lines = [title, f"   🔁 {describe_rule(item.recurrence)}"]

    if item.completed_at:
        lines.append(f"   Done {format_relative_time(item.completed_at, now)}")
        if item.recurrence is not None:
            # Computed in local time so calendar-day steps follow the owner's clock
            upcoming = next_occurrence(item.recurrence, from_utc(item.completed_at, tz))
            lines.append(f"   Next: {format_next_dose(upcoming, tz, now)}")

    if isinstance(item, Medication) and item.quantity_remaining is not None:
        lines.append(f"   📦 Stock: {item.quantity_remaining}")

    return "\n".join(lines)


APPOINTMENT_EMOJI = {"consulta": "🩺", "exame": "🧪", "procedimento": "🏥", "outros": "📌"}


def format_appointment(appointment: Appointment, tz: str) -> str:
    """Format a single appointment with its local time."""
    emoji = APPOINTMENT_EMOJI.get(appointment.kind, "📌")
    local = from_utc(appointment.scheduled_at, tz)
    line = (
        f"{emoji} <b>{escape(appointment.title)}</b> (ID: {appointment.id})\n"
        f"   {local.strftime('%d/%m %H:%M')} - {appointment.kind}"
    )
    if appointment.location:
        line += f"\n   📍 {escape(appointment.location)}"
    return line


def format_appointments(profile: Profile, appointments: list[Appointment]) -> str:
    """Format a profile's upcoming appointments."""
    if not appointments:
        return f"No upcoming appointments for {escape(profile.name)}."

    lines = [f"<b>Upcoming for {escape(profile.name)}</b>\n"]
    lines.extend(format_appointment(a, profile.timezone) for a in appointments)
    return "\n\n".join(lines)

def format_today(
    profile: Profile,
    items: list[ScheduledItem],
    now: datetime | None = None,
    appointments: list[Appointment] | None = None,
) -> str:
    """Format the items and appointments due today for a profile."""
    appointments = appointments or []
    if not items and not appointments:
        return f"Nothing scheduled today for {escape(profile.name)}."

    done = len([i for i in items if i.completed])
    lines = [f"<b>Today for {escape(profile.name)} ({done}/{len(items)} done)</b>\n"]
    lines.extend(format_item(item, profile.timezone, now) for item in items)
    if appointments:
        lines.append("<b>Appointments</b>")
        lines.extend(format_appointment(a, profile.timezone) for a in appointments)
    return "\n\n".join(lines)


def format_profiles(profiles: list[Profile]) -> str:
    """Format the dependents a caregiver manages."""
    if not profiles:
        return "No linked profiles yet. Use /addelder &lt;name&gt; or /link &lt;code&gt;."

    lines = ["<b>Linked profiles</b>\n"]
    for profile in profiles:
        lines.append(f"👤 <b>{escape(profile.name)}</b> ({profile.timezone})")
    return "\n".join(lines)


def format_welcome_message(name: str) -> str:
    """Format the welcome message for /start."""
    return f"""
<b>Welcome to CareMind, {escape(name)}!</b> 💙

I keep track of medications and routines for you or for the people you care for.

<b>Quick Start:</b>
• /addmed - Add a medication
• /addroutine - Add a routine
• /addappt - Add a doctor's appointment or exam
• /today - What is due today
• /help - Full command list
""".strip()


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>CareMind Commands 💙</b>

<b>Items:</b>
/today - Items due today, with buttons to mark them done
/addmed &lt;name&gt; | &lt;dosage&gt; | &lt;quantity&gt; | &lt;schedule&gt;
/addroutine &lt;title&gt; | &lt;schedule&gt;
/addappt &lt;title&gt; | &lt;YYYY-MM-DD HH:MM&gt; [| &lt;place&gt;] [| &lt;kind&gt;]
/appts - Upcoming appointments
/delete med|routine|appt &lt;id&gt; - Delete an item or appointment
/confirm - Confirm the oldest late item

<b>Schedules:</b>
<code>daily 08:00 20:00</code>
<code>every 8 hours</code>
<code>every 2 days at 09:00</code>
<code>mon,wed,fri 08:00</code>

<b>Family:</b>
/addelder &lt;name&gt; - Create a profile you manage
/linkcode - Get a code so a caregiver can follow you
/link &lt;code&gt; - Follow a profile using its code
/elders - Profiles you manage
/use [name] - Act on a managed profile (no name: yourself)

<b>Settings & Info:</b>
/timezone &lt;tz&gt; - Set timezone (e.g., America/Sao_Paulo)
/report - Adherence report
""".strip()
