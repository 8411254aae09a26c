"""Missed-item monitor - records late doses and alerts caregivers."""

import logging
from datetime import datetime, time, timedelta
from html import escape
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

from caremind.db.models import (
    EVENT_MEDICATION_LATE,
    EVENT_ROUTINE_MISSED,
    EventRecord,
    Medication,
    Profile,
    ScheduledItem,
)
from caremind.db.repository import Repository
from caremind.engine.recurrence import is_due_on
from caremind.engine.rules import scheduled_times
from caremind.utils.constants import DEFAULT_LATE_TOLERANCE_MINUTES, DEFAULT_TIMEZONE
from caremind.utils.time_utils import from_utc, is_valid_timezone, local_slot

logger = logging.getLogger(__name__)

# Delivers a text message to a profile (Telegram, push, ...)
Notifier = Callable[[Profile, str], Awaitable[None]]


def format_missed_alert(item: ScheduledItem, owner: Profile, at: time) -> str:
    """Alert text sent to caregivers."""
    clock = at.strftime("%H:%M")
    if isinstance(item, Medication):
        return (
            f"💊 <b>Medication late</b>\n\n"
            f"{escape(owner.name)}: <b>{escape(item.title)}</b> was not taken at {clock}."
        )
    return (
        f"📋 <b>Routine not done</b>\n\n"
        f"{escape(owner.name)}: <b>{escape(item.title)}</b> was not done at {clock}."
    )


async def _alert_recipients(repo: Repository, owner: Profile) -> list[Profile]:
    """Linked caregivers, or the owner when nobody else is watching."""
    familiars = await repo.list_familiars_for_elderly(owner.id)  # type: ignore
    recipients = [p for p in familiars if p.telegram_id is not None]
    if not recipients and owner.telegram_id is not None:
        recipients = [owner]
    return recipients


async def _send_alerts(
    repo: Repository, notify: Notifier, owner: Profile, text: str
) -> int:
    sent = 0
    for recipient in await _alert_recipients(repo, owner):
        try:
            await notify(recipient, text)
            sent += 1
        except Exception as e:
            # An undeliverable alert is still recorded in the history
            logger.error(f"Failed to notify profile {recipient.id}: {e}")
    return sent


async def monitor_missed(
    repo: Repository,
    notify: Notifier,
    now: datetime | None = None,
    tolerance_minutes: int = DEFAULT_LATE_TOLERANCE_MINUTES,
    default_timezone: str = DEFAULT_TIMEZONE,
) -> dict:
    """Find pending items whose scheduled time has passed and alert.

    For every item due today (owner's local day) and still not done, each
    scheduled time older than the tolerance produces one history event and
    one alert. Interval rules have no fixed times and are not monitored.

    Returns:
        Summary with the number of alerts and their details
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    tolerance = timedelta(minutes=tolerance_minutes)
    alerts: list[dict] = []

    for profile in await repo.list_profiles():
        tz = profile.timezone if is_valid_timezone(profile.timezone) else default_timezone
        today = from_utc(now, tz).date()

        try:
            items = await repo.list_scheduled_items(profile.id)  # type: ignore
        except Exception as e:
            logger.error(f"Error loading items for profile {profile.id}: {e}")
            continue

        for item in items:
            rule = item.recurrence
            if rule is None or item.completed or item.created_at is None:
                continue

            try:
                if not is_due_on(rule, from_utc(item.created_at, tz), today):
                    continue

                for at in scheduled_times(rule):
                    slot = local_slot(today, at, tz)

                    # Slots before the item existed, or still within tolerance
                    if slot < item.created_at or now < slot + tolerance:
                        continue

                    event_type = (
                        EVENT_MEDICATION_LATE
                        if isinstance(item, Medication)
                        else EVENT_ROUTINE_MISSED
                    )
                    if await repo.event_exists(item.kind, item.id, event_type, slot):  # type: ignore
                        continue

                    clock = at.strftime("%H:%M")
                    await repo.create_event(
                        EventRecord(
                            owner_id=profile.id,  # type: ignore
                            event_type=event_type,
                            scheduled_for=slot,
                            description=f'"{item.title}" not done at {clock} ({tz})',
                            medication_id=item.id if isinstance(item, Medication) else None,
                            routine_id=None if isinstance(item, Medication) else item.id,
                            created_at=now,
                        )
                    )

                    notified = await _send_alerts(
                        repo, notify, profile, format_missed_alert(item, profile, at)
                    )

                    alerts.append(
                        {
                            "tipo_evento": event_type,
                            "item_id": item.id,
                            "titulo": item.title,
                            "horario": clock,
                            "perfil_id": profile.id,
                            "timezone": tz,
                            "notificados": notified,
                        }
                    )
                    logger.info(f"Missed {item.kind} {item.id} at {clock} for {profile.id}")

            except Exception as e:
                logger.error(f"Error monitoring {item.kind} {item.id}: {e}")
                continue

    return {"alertas_gerados": len(alerts), "detalhes": alerts}
