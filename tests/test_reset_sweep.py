"""Tests for the reset sweep."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from caremind.db.models import Medication, Routine
from caremind.engine.reset_sweep import needs_reset, reset_sweep
from caremind.engine.rules import AlternatingDays, Daily, Interval, Weekly

UTC = ZoneInfo("UTC")
SP = "America/Sao_Paulo"  # UTC-3, no DST


def test_daily_resets_on_local_day_change():
    """Test the owner's calendar day decides, not UTC's."""
    item = Routine(
        owner_id="p",
        title="Walk",
        recurrence=Daily(times=("07:00",)),
        # 22:00 local on Jan 1
        completed_at=datetime(2024, 1, 2, 1, 0, tzinfo=UTC),
    )

    # 23:30 local, still Jan 1
    assert not needs_reset(item, datetime(2024, 1, 2, 2, 30, tzinfo=UTC), SP)
    # 00:30 local on Jan 2
    assert needs_reset(item, datetime(2024, 1, 2, 3, 30, tzinfo=UTC), SP)


def test_pending_and_one_off_items_are_left_alone():
    now = datetime(2024, 2, 1, 12, 0, tzinfo=UTC)
    pending = Routine(owner_id="p", title="Walk", recurrence=Daily(times=("07:00",)))
    one_off = Routine(
        owner_id="p", title="Dentist", completed_at=datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
    )

    assert not needs_reset(pending, now, SP)
    assert not needs_reset(one_off, now, SP)


def test_weekly_resets_on_next_due_day():
    rule = Weekly(weekdays=frozenset({1, 3}), time="08:00")  # Mon, Wed
    item = Routine(
        owner_id="p",
        title="Physio",
        recurrence=rule,
        created_at=datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
        completed_at=datetime(2024, 1, 8, 12, 0, tzinfo=UTC),  # Monday
    )

    # Later the same Monday
    assert not needs_reset(item, datetime(2024, 1, 8, 20, 0, tzinfo=UTC), SP)
    # Tuesday is not a due day
    assert not needs_reset(item, datetime(2024, 1, 9, 12, 0, tzinfo=UTC), SP)
    # Wednesday
    assert needs_reset(item, datetime(2024, 1, 10, 12, 0, tzinfo=UTC), SP)


def test_interval_and_alternating_days_use_elapsed_time():
    completed = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
    interval = Medication(
        owner_id="p", title="Antibiotic", recurrence=Interval(8), completed_at=completed
    )
    alternating = Medication(
        owner_id="p", title="Vitamin", recurrence=AlternatingDays(2), completed_at=completed
    )

    assert not needs_reset(interval, datetime(2024, 1, 1, 16, 59, tzinfo=UTC), SP)
    assert needs_reset(interval, datetime(2024, 1, 1, 17, 0, tzinfo=UTC), SP)
    assert not needs_reset(alternating, datetime(2024, 1, 2, 9, 0, tzinfo=UTC), SP)
    assert needs_reset(alternating, datetime(2024, 1, 3, 9, 0, tzinfo=UTC), SP)


def test_alternating_days_resets_on_next_due_morning():
    """Test a dose taken in the evening is pending again on the next due day."""
    item = Medication(
        owner_id="p",
        title="Vitamin D",
        recurrence=AlternatingDays(2, times=("09:00",)),
        created_at=datetime(2024, 1, 1, 13, 0, tzinfo=UTC),  # Mon 10:00 local
        completed_at=datetime(2024, 1, 1, 23, 0, tzinfo=UTC),  # Mon 20:00 local
    )

    # Tuesday is not a due day
    assert not needs_reset(item, datetime(2024, 1, 2, 23, 30, tzinfo=UTC), SP)
    # Wednesday 09:30 local, only 37.5 hours after completion
    assert needs_reset(item, datetime(2024, 1, 3, 12, 30, tzinfo=UTC), SP)


@pytest.mark.parametrize(
    "completed, now, expected",
    [
        # 20:00 and 23:30 local on Jan 1
        (datetime(2024, 1, 1, 23, 0, tzinfo=UTC), datetime(2024, 1, 2, 2, 30, tzinfo=UTC), False),
        # 20:00 local, then 00:30 local the next day
        (datetime(2024, 1, 1, 23, 0, tzinfo=UTC), datetime(2024, 1, 2, 3, 30, tzinfo=UTC), True),
        (datetime(2024, 1, 1, 12, 0, tzinfo=UTC), datetime(2024, 1, 5, 12, 0, tzinfo=UTC), True),
    ],
)
def test_one_day_interval_resets_like_daily(completed, now, expected):
    created = datetime(2023, 12, 1, 12, 0, tzinfo=UTC)
    daily = Routine(
        owner_id="p",
        title="Walk",
        recurrence=Daily(times=("07:00",)),
        created_at=created,
        completed_at=completed,
    )
    every_day = Routine(
        owner_id="p",
        title="Walk",
        recurrence=AlternatingDays(1, times=("07:00",)),
        created_at=created,
        completed_at=completed,
    )

    assert needs_reset(daily, now, SP) is expected
    assert needs_reset(every_day, now, SP) is expected


@pytest.mark.asyncio
async def test_reset_sweep_summary_and_idempotence(repo):
    owner = await repo.create_profile("Ana", "individual", SP)
    created = datetime(2023, 12, 1, 12, 0, tzinfo=UTC)
    done_at = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    med = await repo.create_medication(
        Medication(
            owner_id=owner.id,
            title="Losartan",
            recurrence=Daily(times=("08:00",)),
            quantity_remaining=10,
            created_at=created,
        )
    )
    routine = await repo.create_routine(
        Routine(
            owner_id=owner.id,
            title="Walk",
            recurrence=Daily(times=("07:00",)),
            created_at=created,
        )
    )
    one_off = await repo.create_routine(
        Routine(owner_id=owner.id, title="Dentist", created_at=created)
    )
    for kind, item_id in (
        ("medication", med.id),
        ("routine", routine.id),
        ("routine", one_off.id),
    ):
        await repo.update_completion(kind, item_id, True, done_at)

    now = datetime(2024, 1, 2, 12, 0, tzinfo=UTC)
    summary = await reset_sweep(repo, now=now)

    assert summary == {
        "medicamentos_resetados": 1,
        "rotinas_resetadas": 1,
        "perfis_processados": 1,
        "timestamp": now.isoformat(),
    }
    assert not (await repo.get_medication(med.id)).completed
    assert (await repo.get_routine(one_off.id)).completed
    # Reset does not touch stock
    assert (await repo.get_medication(med.id)).quantity_remaining == 10

    again = await reset_sweep(repo, now=now)
    assert again["medicamentos_resetados"] == 0
    assert again["rotinas_resetadas"] == 0


@pytest.mark.asyncio
async def test_reset_sweep_falls_back_to_default_timezone(repo):
    owner = await repo.create_profile("Ana", "individual", "Not/AZone")
    routine = await repo.create_routine(
        Routine(
            owner_id=owner.id,
            title="Walk",
            recurrence=Daily(times=("07:00",)),
            created_at=datetime(2023, 12, 1, tzinfo=UTC),
        )
    )
    # 20:00 local in Sao Paulo on Jan 1
    await repo.update_completion("routine", routine.id, True, datetime(2024, 1, 1, 23, 0, tzinfo=UTC))

    # 22:00 local, same day in Sao Paulo though a new day in UTC
    summary = await reset_sweep(
        repo, now=datetime(2024, 1, 2, 1, 0, tzinfo=UTC), default_timezone=SP
    )

    assert summary["rotinas_resetadas"] == 0


@pytest.mark.asyncio
async def test_reset_sweep_skips_unreadable_rows(repo):
    owner = await repo.create_profile("Ana", "individual", SP)
    created = datetime(2023, 12, 1, 12, 0, tzinfo=UTC)
    med = await repo.create_medication(
        Medication(
            owner_id=owner.id,
            title="Losartan",
            recurrence=Daily(times=("08:00",)),
            created_at=created,
        )
    )
    await repo.update_completion(
        "medication", med.id, True, datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
    )
    await repo.db.execute(
        "INSERT INTO routines (owner_id, title, recurrence, completed_at, created_at) "
        "VALUES (?, 'Broken', '{\"tipo\": \"mensal\"}', ?, ?)",
        (owner.id, "2024-01-01T12:00:00+00:00", "2023-12-01T12:00:00+00:00"),
    )
    await repo.db.commit()

    summary = await reset_sweep(repo, now=datetime(2024, 1, 2, 12, 0, tzinfo=UTC))

    assert summary["medicamentos_resetados"] == 1
    assert summary["rotinas_resetadas"] == 0
    assert not (await repo.get_medication(med.id)).completed
