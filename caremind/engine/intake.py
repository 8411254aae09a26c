"""Marking items done or pending, and confirming pending events."""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from caremind.db.models import EventRecord, Medication, ScheduledItem
from caremind.db.repository import Repository

logger = logging.getLogger(__name__)


async def mark_done(
    repo: Repository, item: ScheduledItem, now: datetime | None = None
) -> ScheduledItem:
    """Mark an item as done, taking one dose from stock for medications.

    Marking an item that is already done changes nothing, so a repeated
    tap does not take a second dose from stock.
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    if item.completed:
        logger.info(f"{item.kind} {item.id} already done, nothing to change")
        return item

    updated = await repo.update_completion(item.kind, item.id, True, now)  # type: ignore

    if isinstance(updated, Medication) and updated.quantity_remaining is not None:
        remaining = await repo.decrement_quantity(updated.id)  # type: ignore
        updated.quantity_remaining = remaining
        logger.info(f"Medication {updated.id} stock now {remaining}")

    return updated


async def mark_pending(repo: Repository, item: ScheduledItem) -> ScheduledItem:
    """Put an item back to pending. Stock is not restored."""
    return await repo.update_completion(item.kind, item.id, False, None)  # type: ignore


async def confirm_next_pending(
    repo: Repository, owner_id: str, now: datetime | None = None
) -> EventRecord | None:
    """Confirm the oldest pending event of a profile.

    This is the single status flip a voice assistant performs: the item
    the event refers to is marked done and the event is confirmed.

    Returns:
        The confirmed event, or None if nothing was pending
    """
    if now is None:
        now = datetime.now(ZoneInfo("UTC"))

    event = await repo.get_oldest_pending_event(owner_id)
    if event is None:
        return None

    item: ScheduledItem | None = None
    if event.medication_id is not None:
        item = await repo.get_medication(event.medication_id)
    elif event.routine_id is not None:
        item = await repo.get_routine(event.routine_id)

    if item is not None:
        await mark_done(repo, item, now)
    else:
        logger.warning(f"Event {event.id} refers to an item that no longer exists")

    await repo.confirm_event(event.id, now)  # type: ignore
    event.status = "confirmado"
    event.confirmed_at = now

    logger.info(f"Confirmed event {event.id} ({event.event_type}) for {owner_id}")
    return event
