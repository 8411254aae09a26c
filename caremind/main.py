"""Main entry point for the CareMind bot."""

import asyncio
import json
import logging
import sys

from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

from caremind.bot.callbacks import callback_router
from caremind.bot.handlers import (
    addappt_command,
    addelder_command,
    addmed_command,
    addroutine_command,
    appts_command,
    confirm_command,
    delete_command,
    elders_command,
    help_command,
    link_command,
    linkcode_command,
    report_command,
    start_command,
    timezone_command,
    today_command,
    use_command,
)
from caremind.config import Config
from caremind.db.migrations import run_migrations
from caremind.db.models import Profile
from caremind.db.repository import Repository
from caremind.engine.monitor import monitor_missed
from caremind.engine.reset_sweep import reset_sweep
from caremind.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL),
    stream=sys.stdout,
)

logger = logging.getLogger(__name__)


def telegram_notifier(bot):
    """Notifier that sends HTML messages to a profile's Telegram chat."""

    async def notify(profile: Profile, text: str) -> None:
        if profile.telegram_id is None:
            return
        await bot.send_message(chat_id=profile.telegram_id, text=text, parse_mode="HTML")

    return notify


async def reset_sweep_job(context: "ContextTypes.DEFAULT_TYPE") -> None:
    """Job callback for the reset sweep."""
    repo: Repository = context.bot_data["repo"]
    summary = await reset_sweep(repo, default_timezone=Config.DEFAULT_TIMEZONE)
    logger.debug(f"Reset sweep: {json.dumps(summary)}")


async def monitor_job(context: "ContextTypes.DEFAULT_TYPE") -> None:
    """Job callback for the missed-item monitor."""
    repo: Repository = context.bot_data["repo"]
    summary = await monitor_missed(
        repo,
        telegram_notifier(context.bot),
        tolerance_minutes=Config.LATE_TOLERANCE_MINUTES,
        default_timezone=Config.DEFAULT_TIMEZONE,
    )
    if summary["alertas_gerados"]:
        logger.info(f"Monitor: {json.dumps(summary, ensure_ascii=False)}")


async def post_init(application: Application) -> None:
    """Initialize bot resources after application is created."""
    # Initialize database
    await run_migrations(Config.DATABASE_PATH)

    # Create repository and store in bot_data
    repo = Repository(Config.DATABASE_PATH)
    await repo.connect()
    application.bot_data["repo"] = repo

    # Catch up on anything that rolled over while the bot was down
    summary = await reset_sweep(repo, default_timezone=Config.DEFAULT_TIMEZONE)
    logger.info(f"Startup reset sweep: {json.dumps(summary)}")

    job_queue = application.job_queue
    if job_queue:
        job_queue.run_repeating(
            reset_sweep_job,
            interval=Config.RESET_SWEEP_INTERVAL,
            first=Config.RESET_SWEEP_INTERVAL,
            name="reset_sweep",
        )
        job_queue.run_repeating(
            monitor_job,
            interval=Config.MONITOR_INTERVAL,
            first=10,  # Start after 10 seconds
            name="monitor",
        )
        logger.info(
            f"Jobs scheduled (reset sweep: {Config.RESET_SWEEP_INTERVAL}s, "
            f"monitor: {Config.MONITOR_INTERVAL}s)"
        )

    logger.info("CareMind initialized successfully")


async def post_shutdown(application: Application) -> None:
    """Cleanup resources on shutdown."""
    repo: Repository = application.bot_data.get("repo")
    if repo:
        await repo.close()

    logger.info("CareMind shut down")


async def run_sweep_once() -> dict:
    """Run a single reset sweep against the configured database."""
    await run_migrations(Config.DATABASE_PATH)

    repo = Repository(Config.DATABASE_PATH)
    await repo.connect()
    try:
        return await reset_sweep(repo, default_timezone=Config.DEFAULT_TIMEZONE)
    finally:
        await repo.close()


def main() -> None:
    """Start the bot, or run one reset sweep with `sweep`."""
    if len(sys.argv) > 1 and sys.argv[1] == "sweep":
        try:
            Config.validate(require_token=False)
        except ValueError as e:
            logger.error(f"Configuration error: {e}")
            sys.exit(1)

        print(json.dumps(asyncio.run(run_sweep_once())))
        return

    # Validate configuration
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    # Create application
    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Commands
    application.add_handler(CommandHandler("start", start_command))
    application.add_handler(CommandHandler("help", help_command))
    application.add_handler(CommandHandler("today", today_command))
    application.add_handler(CommandHandler("addmed", addmed_command))
    application.add_handler(CommandHandler("addroutine", addroutine_command))
    application.add_handler(CommandHandler("addappt", addappt_command))
    application.add_handler(CommandHandler("appts", appts_command))
    application.add_handler(CommandHandler("delete", delete_command))
    application.add_handler(CommandHandler("confirm", confirm_command))

    # Family commands
    application.add_handler(CommandHandler("addelder", addelder_command))
    application.add_handler(CommandHandler("elders", elders_command))
    application.add_handler(CommandHandler("use", use_command))
    application.add_handler(CommandHandler("linkcode", linkcode_command))
    application.add_handler(CommandHandler("link", link_command))

    # Settings commands
    application.add_handler(CommandHandler("timezone", timezone_command))
    application.add_handler(CommandHandler("report", report_command))

    # Callback queries (buttons)
    application.add_handler(CallbackQueryHandler(callback_router))

    # Error handler
    application.add_error_handler(error_handler)

    # Start the bot
    logger.info("Starting CareMind bot...")
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
