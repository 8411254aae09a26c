"""Command handlers."""

import logging
import secrets
from datetime import datetime
from html import escape
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import ContextTypes

from caremind.bot.formatters import (
    format_appointment,
    format_appointments,
    format_help_message,
    format_item,
    format_profiles,
    format_today,
    format_welcome_message,
)
from caremind.bot.keyboards import delete_confirm_keyboard, today_keyboard
from caremind.bot.reports import build_report, format_report_message
from caremind.config import Config
from caremind.db.models import (
    APPOINTMENT_KINDS,
    Appointment,
    InvalidItem,
    Medication,
    Profile,
    Routine,
)
from caremind.db.repository import Repository
from caremind.engine.access import require_access
from caremind.engine.agenda import appointments_on, due_items, local_day_bounds
from caremind.engine.intake import confirm_next_pending
from caremind.engine.rules import InvalidRule
from caremind.parser.schedule_text import build_rule_from_text, parse_local_datetime
from caremind.utils.constants import (
    LINK_CODE_ALPHABET,
    LINK_CODE_LENGTH,
    MAX_ELDERLY_PER_FAMILIAR,
    MAX_LISTED_APPOINTMENTS,
    MAX_TITLE_LENGTH,
)
from caremind.utils.time_utils import is_valid_timezone, to_utc

logger = logging.getLogger(__name__)

DELETE_KINDS = {"med": "medication", "routine": "routine", "appt": "appointment"}


async def get_caller(update: Update, context: ContextTypes.DEFAULT_TYPE) -> Profile | None:
    """Profile of the Telegram user, replying with a hint if not registered."""
    if not update.effective_user:
        return None

    repo: Repository = context.bot_data["repo"]
    profile = await repo.get_profile_by_telegram_id(update.effective_user.id)

    if profile is None and update.effective_message:
        await update.effective_message.reply_text("Please /start the bot first.")
    return profile


async def get_target(
    repo: Repository, caller: Profile, context: ContextTypes.DEFAULT_TYPE
) -> Profile:
    """Profile selected with /use, checked against the caller's access."""
    target_id = context.user_data.get("target_id") if context.user_data is not None else None

    if not target_id or target_id == caller.id:
        return caller

    await require_access(repo, caller.id, target_id)  # type: ignore
    target = await repo.get_profile(target_id)
    if target is None:
        context.user_data.pop("target_id", None)  # type: ignore
        return caller
    return target


def _command_text(context: ContextTypes.DEFAULT_TYPE) -> str:
    return " ".join(context.args or []).strip()


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command."""
    if not update.effective_user or not update.message:
        return

    repo: Repository = context.bot_data["repo"]
    telegram_id = update.effective_user.id

    # Get or create profile
    profile = await repo.get_profile_by_telegram_id(telegram_id)
    if profile is None:
        name = update.effective_user.first_name or "there"
        profile = await repo.create_profile(
            name, "individual", Config.DEFAULT_TIMEZONE, telegram_id=telegram_id
        )
        logger.info(f"New profile created for Telegram user {telegram_id}")

    await update.message.reply_html(format_welcome_message(profile.name))


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


async def today_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /today command - items and appointments due today for the selected profile."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    repo: Repository = context.bot_data["repo"]
    target = await get_target(repo, caller, context)

    now = datetime.now(ZoneInfo("UTC"))
    items = due_items(await repo.list_scheduled_items(target.id), target.timezone, now)  # type: ignore

    start, end = local_day_bounds(target.timezone, now)
    appointments = appointments_on(
        await repo.list_appointments(target.id, since=start, until=end),  # type: ignore
        target.timezone,
        now,
    )

    await update.message.reply_html(
        format_today(target, items, now, appointments), reply_markup=today_keyboard(items)
    )


def _parse_schedule(text: str):
    """Parse the schedule part of /addmed and /addroutine, None for one-off."""
    if not text or text.lower() in ("once", "one-off", "uma vez"):
        return None
    rule = build_rule_from_text(text)
    if rule is None:
        raise InvalidRule(f"I don't understand the schedule '{text}'. See /help for examples.")
    return rule


def _parse_title(text: str) -> str:
    title = text.strip()
    if not title:
        raise InvalidItem("Please give the item a name.")
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidItem(f"Names are limited to {MAX_TITLE_LENGTH} characters.")
    return title


async def addmed_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addmed <name> | <dosage> | <quantity> | <schedule>."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    parts = [p.strip() for p in _command_text(context).split("|")]
    if len(parts) != 4:
        await update.message.reply_html(
            "Usage: /addmed &lt;name&gt; | &lt;dosage&gt; | &lt;quantity&gt; | &lt;schedule&gt;\n"
            "Example: <code>/addmed Losartan | 50mg | 30 | daily 08:00 20:00</code>"
        )
        return

    name, dosage, quantity_text, schedule_text = parts

    quantity = None
    if quantity_text and quantity_text != "-":
        try:
            quantity = int(quantity_text)
        except ValueError:
            raise InvalidItem("Quantity must be a whole number (or '-' to skip).") from None

    repo: Repository = context.bot_data["repo"]
    target = await get_target(repo, caller, context)

    medication = await repo.create_medication(
        Medication(
            owner_id=target.id,  # type: ignore
            title=_parse_title(name),
            dosage=dosage or None,
            quantity_remaining=quantity,
            recurrence=_parse_schedule(schedule_text),
        )
    )
    logger.info(f"Medication {medication.id} created for {target.id} by {caller.id}")

    await update.message.reply_html(
        "✓ <b>Medication added</b>\n\n" + format_item(medication, target.timezone)
    )


async def addroutine_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addroutine <title> | <schedule>."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    parts = [p.strip() for p in _command_text(context).split("|")]
    if len(parts) != 2:
        await update.message.reply_html(
            "Usage: /addroutine &lt;title&gt; | &lt;schedule&gt;\n"
            "Example: <code>/addroutine Morning walk | mon,wed,fri 07:30</code>"
        )
        return

    repo: Repository = context.bot_data["repo"]
    target = await get_target(repo, caller, context)

    routine = await repo.create_routine(
        Routine(
            owner_id=target.id,  # type: ignore
            title=_parse_title(parts[0]),
            recurrence=_parse_schedule(parts[1]),
        )
    )
    logger.info(f"Routine {routine.id} created for {target.id} by {caller.id}")

    await update.message.reply_html(
        "✓ <b>Routine added</b>\n\n" + format_item(routine, target.timezone)
    )


async def addappt_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addappt <title> | <date time> [| <place>] [| <kind>]."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    parts = [p.strip() for p in _command_text(context).split("|")]
    if not 2 <= len(parts) <= 4:
        await update.message.reply_html(
            "Usage: /addappt &lt;title&gt; | &lt;YYYY-MM-DD HH:MM&gt; [| &lt;place&gt;] [| &lt;kind&gt;]\n"
            "Example: <code>/addappt Cardiologist | 2024-03-05 14:30 | Clinic A | consulta</code>\n"
            f"Kinds: {', '.join(APPOINTMENT_KINDS)}"
        )
        return

    title, when_text = parts[0], parts[1]
    location = parts[2] if len(parts) > 2 and parts[2] not in ("", "-") else None
    kind = parts[3].lower() if len(parts) > 3 and parts[3] else "consulta"

    when = parse_local_datetime(when_text)
    if when is None:
        raise InvalidItem("Use a date like 2024-03-05 14:30 or 05/03/2024 14:30.")

    repo: Repository = context.bot_data["repo"]
    target = await get_target(repo, caller, context)

    scheduled_at = to_utc(when, target.timezone)
    if scheduled_at < datetime.now(ZoneInfo("UTC")):
        raise InvalidItem("That date and time has already passed.")

    appointment = await repo.create_appointment(
        Appointment(
            owner_id=target.id,  # type: ignore
            title=_parse_title(title),
            scheduled_at=scheduled_at,
            kind=kind,  # type: ignore
            location=location,
        )
    )
    logger.info(f"Appointment {appointment.id} created for {target.id} by {caller.id}")

    await update.message.reply_html(
        "✓ <b>Appointment added</b>\n\n" + format_appointment(appointment, target.timezone)
    )


async def appts_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /appts - upcoming appointments of the selected profile."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    repo: Repository = context.bot_data["repo"]
    target = await get_target(repo, caller, context)

    upcoming = await repo.list_appointments(
        target.id, since=datetime.now(ZoneInfo("UTC"))  # type: ignore
    )
    await update.message.reply_html(
        format_appointments(target, upcoming[:MAX_LISTED_APPOINTMENTS])
    )


async def delete_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete med|routine|appt <id> - asks for confirmation."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    args = context.args or []
    if len(args) != 2 or args[0].lower() not in DELETE_KINDS:
        await update.message.reply_text("Usage: /delete med|routine|appt <id>")
        return

    try:
        item_id = int(args[1])
    except ValueError:
        await update.message.reply_text("Invalid ID. Must be a number.")
        return

    repo: Repository = context.bot_data["repo"]
    kind = DELETE_KINDS[args[0].lower()]
    if kind == "appointment":
        item = await repo.get_appointment(item_id)
    else:
        item = await repo.get_item(kind, item_id)

    if item is None:
        await update.message.reply_text("Item not found.")
        return

    await require_access(repo, caller.id, item.owner_id)  # type: ignore

    await update.message.reply_html(
        f"Delete <b>{escape(item.title)}</b>?", reply_markup=delete_confirm_keyboard(item)
    )


async def addelder_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addelder <name> - create a dependent profile managed by the caller."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    name = _command_text(context)
    if not name:
        await update.message.reply_text("Usage: /addelder <name>")
        return

    repo: Repository = context.bot_data["repo"]
    managed = await repo.list_elderly_for_familiar(caller.id)  # type: ignore
    if len(managed) >= MAX_ELDERLY_PER_FAMILIAR:
        await update.message.reply_text(
            f"You already manage {MAX_ELDERLY_PER_FAMILIAR} profiles."
        )
        return

    elderly = await repo.create_profile(_parse_title(name), "idoso", caller.timezone)
    await repo.create_family_link(caller.id, elderly.id)  # type: ignore
    if caller.kind == "individual":
        await repo.update_profile_kind(caller.id, "familiar")  # type: ignore

    context.user_data["target_id"] = elderly.id  # type: ignore

    await update.message.reply_html(
        f"✓ Created profile <b>{escape(elderly.name)}</b> and selected it.\n"
        "Commands now act on this profile. Use /use to switch back to yourself."
    )


async def elders_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /elders - list managed profiles."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    repo: Repository = context.bot_data["repo"]
    profiles = await repo.list_elderly_for_familiar(caller.id)  # type: ignore
    await update.message.reply_html(format_profiles(profiles))


async def use_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /use [name] - select which profile later commands act on."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    name = _command_text(context)
    if not name:
        context.user_data.pop("target_id", None)  # type: ignore
        await update.message.reply_text("Now acting on your own profile.")
        return

    repo: Repository = context.bot_data["repo"]
    profiles = await repo.list_elderly_for_familiar(caller.id)  # type: ignore

    # Simple "contains" match on the spoken/typed name
    matches = [p for p in profiles if name.lower() in p.name.lower()]

    if len(matches) != 1:
        names = ", ".join(p.name for p in profiles) or "none"
        await update.message.reply_text(
            f"I couldn't pick a single profile for '{name}'. You manage: {names}."
        )
        return

    context.user_data["target_id"] = matches[0].id  # type: ignore
    await update.message.reply_html(f"Now acting on <b>{escape(matches[0].name)}</b>.")


async def linkcode_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /linkcode - issue a code a caregiver can use to follow this profile."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    repo: Repository = context.bot_data["repo"]
    code = "".join(secrets.choice(LINK_CODE_ALPHABET) for _ in range(LINK_CODE_LENGTH))
    await repo.set_link_code(caller.id, code)  # type: ignore

    await update.message.reply_html(
        f"Your link code is <code>{code}</code>.\n"
        "Share it with your caregiver; they send /link followed by the code."
    )


async def link_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /link <code> - follow another profile."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    code = _command_text(context)
    if not code:
        await update.message.reply_text("Usage: /link <code>")
        return

    repo: Repository = context.bot_data["repo"]
    elderly = await repo.get_profile_by_link_code(code)

    if elderly is None or elderly.id == caller.id:
        await update.message.reply_text("That code is not valid.")
        return

    await repo.create_family_link(caller.id, elderly.id)  # type: ignore
    await repo.set_link_code(elderly.id, None)  # type: ignore
    if caller.kind == "individual":
        await repo.update_profile_kind(caller.id, "familiar")  # type: ignore
    if elderly.kind == "individual":
        await repo.update_profile_kind(elderly.id, "idoso")  # type: ignore

    await update.message.reply_html(f"✓ You now follow <b>{escape(elderly.name)}</b>.")


async def timezone_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /timezone <tz> for the selected profile."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    repo: Repository = context.bot_data["repo"]
    target = await get_target(repo, caller, context)

    tz = _command_text(context)
    if not tz:
        await update.message.reply_text(
            f"Timezone for {target.name}: {target.timezone}\nUsage: /timezone <tz>"
        )
        return

    if not is_valid_timezone(tz):
        await update.message.reply_text(
            f"Unknown timezone '{tz}'. Use a name like America/Sao_Paulo."
        )
        return

    await repo.update_profile_timezone(target.id, tz)  # type: ignore
    await update.message.reply_text(f"✓ Timezone for {target.name} set to {tz}")


async def confirm_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /confirm - confirm the oldest pending event of the selected profile."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    repo: Repository = context.bot_data["repo"]
    target = await get_target(repo, caller, context)

    event = await confirm_next_pending(repo, target.id)  # type: ignore
    if event is None:
        await update.message.reply_text(f"{target.name} has nothing pending right now.")
        return

    await update.message.reply_text(f"✓ Confirmed for {target.name}: {event.description}")


async def report_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /report - adherence report for the selected profile."""
    if not update.message:
        return

    caller = await get_caller(update, context)
    if not caller:
        return

    repo: Repository = context.bot_data["repo"]
    target = await get_target(repo, caller, context)

    report = await build_report(
        repo,
        target.id,  # type: ignore
        target.timezone,
        low_stock_threshold=Config.LOW_STOCK_THRESHOLD,
    )
    await update.message.reply_html(format_report_message(report, target.name))
