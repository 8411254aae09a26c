"""Reset sweep - puts completed recurring items back to pending."""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from caremind.db.models import Medication, ScheduledItem
from caremind.db.repository import Repository
from caremind.engine.recurrence import is_due_on, should_reset
from caremind.engine.rules import AlternatingDays, Weekly
from caremind.utils.constants import DEFAULT_TIMEZONE
from caremind.utils.time_utils import from_utc, is_valid_timezone

logger = logging.getLogger(__name__)


def needs_reset(item: ScheduledItem, now: datetime, tz: str) -> bool:
    """Decide whether a completed item goes back to pending.

    Args:
        item: The item to check
        now: Current time (UTC)
        tz: Owner's timezone; calendar days are taken in this zone

    Weekly and alternating-days items are reset once a later local day on
    which they are due arrives. Alternating-days items also reset once N
    whole days have passed since completion.
    Other rules use should_reset directly.
    """
    rule = item.recurrence
    if rule is None or item.completed_at is None:
        return False

    now_local = from_utc(now, tz)
    completed_local = from_utc(item.completed_at, tz)

    if isinstance(rule, (Weekly, AlternatingDays)):
        anchor = from_utc(item.created_at, tz) if item.created_at else completed_local
        due_again = completed_local.date() < now_local.date() and is_due_on(
            rule, anchor, now_local
        )
        if isinstance(rule, Weekly) or due_again:
            return due_again

    return should_reset(rule, completed_local, now_local)


async def reset_sweep(
    repo: Repository,
    now: datetime | None = None,
    default_timezone: str = DEFAULT_TIMEZONE,
) -> dict:
    """Clear completion on every recurring item whose cycle has rolled over.

    Safe to run as often as wanted: it only clears completed_at, so a second
    run in the same window finds nothing left to reset.

    Returns:
        Summary with reset counts and a timestamp
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    medications_reset = 0
    routines_reset = 0
    profiles_processed = 0

    for profile in await repo.list_profiles():
        tz = profile.timezone if is_valid_timezone(profile.timezone) else default_timezone
        profiles_processed += 1

        try:
            items = await repo.list_scheduled_items(profile.id)  # type: ignore
        except Exception as e:
            logger.error(f"Error loading items for profile {profile.id}: {e}")
            continue

        for item in items:
            try:
                if not needs_reset(item, now, tz):
                    continue

                await repo.update_completion(item.kind, item.id, False, None)  # type: ignore

                if isinstance(item, Medication):
                    medications_reset += 1
                else:
                    routines_reset += 1

                logger.info(f"Reset {item.kind} {item.id} for profile {profile.id}")

            except Exception as e:
                logger.error(f"Error resetting {item.kind} {item.id}: {e}")
                continue

    summary = {
        "medicamentos_resetados": medications_reset,
        "rotinas_resetadas": routines_reset,
        "perfis_processados": profiles_processed,
        "timestamp": now.isoformat(),
    }

    if medications_reset or routines_reset:
        logger.info(
            f"Reset sweep: {medications_reset} medications, {routines_reset} routines"
        )

    return summary
