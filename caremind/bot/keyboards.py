"""Inline keyboard builders."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from caremind.db.models import Appointment, ScheduledItem

# Short kind codes keep callback data under Telegram's 64-byte limit
KIND_CODES = {"medication": "m", "routine": "r", "appointment": "a"}
CODE_KINDS = {code: kind for kind, code in KIND_CODES.items()}


def item_callback(action: str, item: ScheduledItem | Appointment) -> str:
    kind = "appointment" if isinstance(item, Appointment) else item.kind
    return f"{action}:{KIND_CODES[kind]}:{item.id}"


def today_keyboard(items: list[ScheduledItem]) -> InlineKeyboardMarkup | None:
    """One button per item: mark done, or undo if already done."""
    if not items:
        return None

    rows = []
    for item in items:
        if item.completed:
            button = InlineKeyboardButton(
                f"↺ {item.title}", callback_data=item_callback("undo", item)
            )
        else:
            button = InlineKeyboardButton(
                f"✓ {item.title}", callback_data=item_callback("done", item)
            )
        rows.append([button])

    return InlineKeyboardMarkup(rows)


def delete_confirm_keyboard(item: ScheduledItem | Appointment) -> InlineKeyboardMarkup:
    """Keyboard for delete confirmation: Confirm, Cancel."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("🗑 Delete", callback_data=item_callback("delete", item)),
                InlineKeyboardButton("✗ Cancel", callback_data="cancel"),
            ]
        ]
    )
