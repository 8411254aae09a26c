"""Callback query handlers for inline buttons."""

import logging
from html import escape

from telegram import Update
from telegram.ext import ContextTypes

from caremind.bot.formatters import format_item
from caremind.bot.keyboards import CODE_KINDS
from caremind.db.models import Appointment, ScheduledItem
from caremind.db.repository import Repository
from caremind.engine.access import can_access
from caremind.engine.intake import mark_done, mark_pending

logger = logging.getLogger(__name__)


async def _load_item(
    update: Update, context: ContextTypes.DEFAULT_TYPE, kind: str, item_id: int
) -> ScheduledItem | Appointment | None:
    """Fetch the item or appointment a button refers to, if the presser may act on it."""
    repo: Repository = context.bot_data["repo"]
    caller = await repo.get_profile_by_telegram_id(update.effective_user.id)  # type: ignore

    if not caller:
        await update.callback_query.answer("Please /start the bot first.")  # type: ignore
        return None

    if kind == "appointment":
        item = await repo.get_appointment(item_id)
    else:
        item = await repo.get_item(kind, item_id)  # type: ignore

    if not item or not await can_access(repo, caller.id, item.owner_id):  # type: ignore
        await update.callback_query.answer("Item not found.")  # type: ignore
        return None

    return item


async def handle_done_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, kind: str, item_id: int
) -> None:
    """Handle 'done' button press."""
    if not update.effective_user or not update.callback_query:
        return

    item = await _load_item(update, context, kind, item_id)
    if not item:
        return

    repo: Repository = context.bot_data["repo"]
    owner = await repo.get_profile(item.owner_id)
    updated = await mark_done(repo, item)

    if update.callback_query.message and owner:
        await update.callback_query.message.edit_text(
            format_item(updated, owner.timezone), parse_mode="HTML"
        )

    await update.callback_query.answer(f"✓ {updated.title} done!")


async def handle_undo_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, kind: str, item_id: int
) -> None:
    """Handle 'undo' button press - back to pending."""
    if not update.effective_user or not update.callback_query:
        return

    item = await _load_item(update, context, kind, item_id)
    if not item:
        return

    repo: Repository = context.bot_data["repo"]
    owner = await repo.get_profile(item.owner_id)
    updated = await mark_pending(repo, item)

    if update.callback_query.message and owner:
        await update.callback_query.message.edit_text(
            format_item(updated, owner.timezone), parse_mode="HTML"
        )

    await update.callback_query.answer(f"↺ {updated.title} is pending again")


async def handle_delete_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, kind: str, item_id: int
) -> None:
    """Handle confirmed deletion."""
    if not update.effective_user or not update.callback_query:
        return

    item = await _load_item(update, context, kind, item_id)
    if not item:
        return

    repo: Repository = context.bot_data["repo"]
    if kind == "medication":
        await repo.delete_medication(item_id)
    elif kind == "appointment":
        await repo.delete_appointment(item_id)
    else:
        await repo.delete_routine(item_id)

    logger.info(f"{kind} {item_id} deleted by Telegram user {update.effective_user.id}")

    if update.callback_query.message:
        await update.callback_query.message.edit_text(
            f"🗑 Deleted <s>{escape(item.title)}</s>", parse_mode="HTML"
        )
    await update.callback_query.answer("Deleted")


async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route callback queries to appropriate handlers."""
    if not update.callback_query:
        return

    query = update.callback_query
    data = query.data

    if not data:
        return

    # Parse callback data: action[:kind_code:id]
    parts = data.split(":")

    if parts[0] == "cancel":
        if query.message:
            await query.message.delete()
        await query.answer("Cancelled")
        return

    if len(parts) != 3 or parts[1] not in CODE_KINDS or not parts[2].isdigit():
        await query.answer("Unknown action")
        return

    kind = CODE_KINDS[parts[1]]
    item_id = int(parts[2])

    # Appointments have no completion state
    if kind == "appointment" and parts[0] != "delete":
        await query.answer("Unknown action")
        return

    if parts[0] == "done":
        await handle_done_callback(update, context, kind, item_id)

    elif parts[0] == "undo":
        await handle_undo_callback(update, context, kind, item_id)

    elif parts[0] == "delete":
        await handle_delete_callback(update, context, kind, item_id)

    else:
        await query.answer("Unknown action")
