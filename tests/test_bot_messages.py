"""Tests for bot message and keyboard builders."""

from datetime import datetime
from zoneinfo import ZoneInfo

from caremind.bot.formatters import format_appointment, format_item, format_today
from caremind.bot.keyboards import CODE_KINDS, delete_confirm_keyboard, today_keyboard
from caremind.db.models import Appointment, InvalidItem, Medication, Profile, Routine
from caremind.engine.access import AccessDenied
from caremind.engine.rules import Daily, InvalidRule
from caremind.utils.error_handler import user_message_for

UTC = ZoneInfo("UTC")


def test_format_item_shows_next_dose():
    med = Medication(
        id=3,
        owner_id="p",
        title="Losartan <50>",
        dosage="50mg",
        recurrence=Daily(times=("08:00",)),
        quantity_remaining=4,
        completed_at=datetime(2024, 1, 2, 11, 0, tzinfo=UTC),
    )

    text = format_item(med, "America/Sao_Paulo", now=datetime(2024, 1, 2, 11, 30, tzinfo=UTC))

    assert "Losartan &lt;50&gt;" in text
    assert "daily at 08:00" in text
    assert "Done 30 minutes ago" in text
    assert "Next: tomorrow at 08:00" in text
    assert "Stock: 4" in text


def test_format_today_empty():
    profile = Profile(name="Ana", kind="individual", timezone="UTC", id="p")

    assert "Nothing scheduled" in format_today(profile, [])


def test_today_keyboard():
    pending = Routine(id=1, owner_id="p", title="Walk")
    done = Medication(
        id=2, owner_id="p", title="Losartan", completed_at=datetime(2024, 1, 1, tzinfo=UTC)
    )

    keyboard = today_keyboard([pending, done])
    data = [row[0].callback_data for row in keyboard.inline_keyboard]

    assert data == ["done:r:1", "undo:m:2"]
    assert today_keyboard([]) is None
    assert CODE_KINDS["m"] == "medication"


def test_delete_confirm_keyboard():
    keyboard = delete_confirm_keyboard(Routine(id=9, owner_id="p", title="Walk"))
    buttons = keyboard.inline_keyboard[0]

    assert [b.callback_data for b in buttons] == ["delete:r:9", "cancel"]



def test_delete_confirm_keyboard_for_appointment():
    appointment = Appointment(
        id=4,
        owner_id="p",
        title="Cardiologist",
        scheduled_at=datetime(2024, 3, 5, 17, 30, tzinfo=UTC),
    )
    buttons = delete_confirm_keyboard(appointment).inline_keyboard[0]

    assert buttons[0].callback_data == "delete:a:4"
    assert CODE_KINDS["a"] == "appointment"


def test_format_today_lists_appointments():
    profile = Profile(name="Joao", kind="idoso", timezone="America/Sao_Paulo", id="p")
    appointment = Appointment(
        id=4,
        owner_id="p",
        title="Cardiologist",
        scheduled_at=datetime(2024, 3, 5, 17, 30, tzinfo=UTC),
        location="Clinic <A>",
    )

    text = format_today(profile, [], appointments=[appointment])

    assert "Nothing scheduled" not in text
    assert "Appointments" in text
    assert "05/03 14:30 - consulta" in text
    assert "Clinic &lt;A&gt;" in text
    assert format_appointment(appointment, "UTC").splitlines()[1].strip() == "05/03 17:30 - consulta"

def test_error_messages():
    assert "access" in user_message_for(AccessDenied("nope"))
    assert "Invalid time" in user_message_for(InvalidRule("Invalid time '25:00'"))
    assert "Title must not be empty" in user_message_for(InvalidItem("Title must not be empty"))
    assert "Something went wrong" in user_message_for(RuntimeError("boom"))
