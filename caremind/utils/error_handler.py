"""Global error handler for the bot."""

import logging
import traceback

from telegram import Update
from telegram.ext import ContextTypes

from caremind.db.models import InvalidItem
from caremind.engine.access import AccessDenied
from caremind.engine.rules import InvalidRule

logger = logging.getLogger(__name__)


def user_message_for(error: BaseException | None) -> str:
    """Message shown to the user for an error raised by a handler."""
    if isinstance(error, AccessDenied):
        return "🔒 You don't have access to this profile."

    if isinstance(error, (InvalidRule, InvalidItem)):
        return f"❌ {error}\n\nUse /help for examples."

    if "Timeout" in str(error):
        return "⏱️ Request timed out.\n\nPlease try again in a moment."

    return (
        "😅 Oops! Something went wrong.\n\n"
        "The error has been logged. Please try again or use /help for assistance."
    )


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in the bot."""
    error = context.error

    # Validation and access errors are expected; only their message is logged
    if isinstance(error, (AccessDenied, InvalidRule, InvalidItem)):
        logger.info(f"Rejected update: {error}")
    else:
        tb_string = "".join(traceback.format_exception(None, error, error.__traceback__))  # type: ignore
        logger.error(f"Exception while handling an update:\n{tb_string}")

    if isinstance(update, Update) and update.effective_message:
        try:
            await update.effective_message.reply_text(user_message_for(error))
        except Exception as e:
            logger.error(f"Failed to send error message to user: {e}")
