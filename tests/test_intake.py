"""Tests for marking items done and confirming pending events."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from caremind.db.models import EVENT_MEDICATION_LATE, EventRecord, Medication, Routine
from caremind.engine.intake import confirm_next_pending, mark_done, mark_pending
from caremind.engine.rules import Daily

UTC = ZoneInfo("UTC")
NOW = datetime(2024, 1, 2, 12, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_mark_done_takes_one_dose(repo):
    owner = await repo.create_profile("Ana", "individual", "America/Sao_Paulo")
    med = await repo.create_medication(
        Medication(
            owner_id=owner.id,
            title="Losartan",
            recurrence=Daily(times=("08:00",)),
            quantity_remaining=3,
        )
    )

    done = await mark_done(repo, med, NOW)

    assert done.completed_at == NOW
    assert done.quantity_remaining == 2

    # A second tap changes nothing
    again = await mark_done(repo, done, NOW)
    assert again.quantity_remaining == 2
    assert (await repo.get_medication(med.id)).quantity_remaining == 2


@pytest.mark.asyncio
async def test_mark_done_with_empty_stock(repo):
    owner = await repo.create_profile("Ana", "individual", "America/Sao_Paulo")
    med = await repo.create_medication(
        Medication(owner_id=owner.id, title="Losartan", quantity_remaining=0)
    )

    done = await mark_done(repo, med, NOW)

    assert done.completed
    assert done.quantity_remaining == 0


@pytest.mark.asyncio
async def test_mark_pending_keeps_stock(repo):
    owner = await repo.create_profile("Ana", "individual", "America/Sao_Paulo")
    med = await repo.create_medication(
        Medication(owner_id=owner.id, title="Losartan", quantity_remaining=3)
    )
    done = await mark_done(repo, med, NOW)

    pending = await mark_pending(repo, done)

    assert not pending.completed
    assert pending.quantity_remaining == 2


@pytest.mark.asyncio
async def test_confirm_next_pending(repo):
    owner = await repo.create_profile("Joao", "idoso", "America/Sao_Paulo")
    med = await repo.create_medication(
        Medication(owner_id=owner.id, title="Losartan", quantity_remaining=5)
    )
    routine = await repo.create_routine(Routine(owner_id=owner.id, title="Walk"))
    await repo.create_event(
        EventRecord(
            owner_id=owner.id,
            event_type=EVENT_MEDICATION_LATE,
            scheduled_for=datetime(2024, 1, 2, 11, 0, tzinfo=UTC),
            medication_id=med.id,
            description="Losartan",
        )
    )

    event = await confirm_next_pending(repo, owner.id, NOW)

    assert event.status == "confirmado"
    assert event.confirmed_at == NOW
    assert (await repo.get_medication(med.id)).quantity_remaining == 4
    assert not (await repo.get_routine(routine.id)).completed

    # Nothing left
    assert await confirm_next_pending(repo, owner.id, NOW) is None
