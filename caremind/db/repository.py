"""Database repository - all SQL queries."""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import aiosqlite

from caremind.db.models import (
    Appointment,
    EventRecord,
    FamilyLink,
    ItemKind,
    Medication,
    Profile,
    ProfileKind,
    Routine,
    ScheduledItem,
)
from caremind.engine.rules import InvalidRule, rule_from_json, rule_to_json

logger = logging.getLogger(__name__)

_TABLES: dict[str, str] = {"medication": "medications", "routine": "routines"}


def _ts(value: datetime | None) -> str | None:
    """Serialize a timestamp as UTC ISO-8601."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Repository:
    """Database access layer."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.execute("PRAGMA foreign_keys = ON")
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    # Profile operations

    async def create_profile(
        self,
        name: str,
        kind: ProfileKind,
        timezone_name: str,
        telegram_id: int | None = None,
    ) -> Profile:
        """Create a new profile."""
        async with self.db.execute(
            """
            INSERT INTO profiles (id, name, kind, timezone, telegram_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (uuid.uuid4().hex, name, kind, timezone_name, telegram_id, _ts(_now())),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()

        profile = self._row_to_profile(row)
        logger.info(f"Created {kind} profile {profile.id}")
        return profile

    async def get_profile(self, profile_id: str) -> Profile | None:
        """Get a profile by ID."""
        async with self.db.execute(
            "SELECT * FROM profiles WHERE id = ?", (profile_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_profile(row)
            return None

    async def get_profile_by_telegram_id(self, telegram_id: int) -> Profile | None:
        """Get the profile owned by a Telegram account."""
        async with self.db.execute(
            "SELECT * FROM profiles WHERE telegram_id = ?", (telegram_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_profile(row)
            return None

    async def get_profile_by_link_code(self, code: str) -> Profile | None:
        """Get a profile by its family link code."""
        async with self.db.execute(
            "SELECT * FROM profiles WHERE link_code = ?", (code.upper(),)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_profile(row)
            return None

    async def list_profiles(self) -> List[Profile]:
        """Get every profile."""
        async with self.db.execute("SELECT * FROM profiles ORDER BY created_at") as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_profile(row) for row in rows]

    async def update_profile_timezone(self, profile_id: str, timezone_name: str) -> None:
        """Update a profile's timezone."""
        await self.db.execute(
            "UPDATE profiles SET timezone = ? WHERE id = ?", (timezone_name, profile_id)
        )
        await self.db.commit()

    async def update_profile_kind(self, profile_id: str, kind: ProfileKind) -> None:
        """Update a profile's kind."""
        await self.db.execute("UPDATE profiles SET kind = ? WHERE id = ?", (kind, profile_id))
        await self.db.commit()

    async def set_link_code(self, profile_id: str, code: str | None) -> None:
        """Set or clear a profile's family link code."""
        await self.db.execute(
            "UPDATE profiles SET link_code = ? WHERE id = ?",
            (code.upper() if code else None, profile_id),
        )
        await self.db.commit()

    # Family link operations

    async def create_family_link(self, familiar_id: str, elderly_id: str) -> FamilyLink:
        """Link a caregiver to a dependent. Linking twice is a no-op."""
        now = _now()
        await self.db.execute(
            """
            INSERT OR IGNORE INTO family_links (familiar_id, elderly_id, created_at)
            VALUES (?, ?, ?)
            """,
            (familiar_id, elderly_id, _ts(now)),
        )
        await self.db.commit()
        return FamilyLink(familiar_id=familiar_id, elderly_id=elderly_id, created_at=now)

    async def has_family_link(self, familiar_id: str, elderly_id: str) -> bool:
        """Check whether a caregiver is linked to a dependent."""
        async with self.db.execute(
            "SELECT 1 FROM family_links WHERE familiar_id = ? AND elderly_id = ?",
            (familiar_id, elderly_id),
        ) as cursor:
            return await cursor.fetchone() is not None

    async def list_elderly_for_familiar(self, familiar_id: str) -> List[Profile]:
        """Get the dependents a caregiver manages."""
        async with self.db.execute(
            """
            SELECT p.* FROM profiles p
            JOIN family_links l ON l.elderly_id = p.id
            WHERE l.familiar_id = ?
            ORDER BY p.name
            """,
            (familiar_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_profile(row) for row in rows]

    async def list_familiars_for_elderly(self, elderly_id: str) -> List[Profile]:
        """Get the caregivers linked to a dependent."""
        async with self.db.execute(
            """
            SELECT p.* FROM profiles p
            JOIN family_links l ON l.familiar_id = p.id
            WHERE l.elderly_id = ?
            ORDER BY p.name
            """,
            (elderly_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_profile(row) for row in rows]

    # Scheduled item operations

    async def create_medication(self, medication: Medication) -> Medication:
        """Create a new medication."""
        async with self.db.execute(
            """
            INSERT INTO medications (
                owner_id, title, dosage, recurrence, quantity_remaining,
                completed_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (
                medication.owner_id,
                medication.title,
                medication.dosage,
                rule_to_json(medication.recurrence),
                medication.quantity_remaining,
                _ts(medication.completed_at),
                _ts(medication.created_at or _now()),
            ),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()
        return self._row_to_medication(row)

    async def create_routine(self, routine: Routine) -> Routine:
        """Create a new routine."""
        async with self.db.execute(
            """
            INSERT INTO routines (
                owner_id, title, description, recurrence, completed_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (
                routine.owner_id,
                routine.title,
                routine.description,
                rule_to_json(routine.recurrence),
                _ts(routine.completed_at),
                _ts(routine.created_at or _now()),
            ),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()
        return self._row_to_routine(row)

    async def get_medication(self, medication_id: int) -> Medication | None:
        """Get a medication by ID."""
        async with self.db.execute(
            "SELECT * FROM medications WHERE id = ?", (medication_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_medication(row)
            return None

    async def get_routine(self, routine_id: int) -> Routine | None:
        """Get a routine by ID."""
        async with self.db.execute(
            "SELECT * FROM routines WHERE id = ?", (routine_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_routine(row)
            return None

    async def get_item(self, kind: ItemKind, item_id: int) -> ScheduledItem | None:
        """Get a medication or routine by kind and ID."""
        if kind == "medication":
            return await self.get_medication(item_id)
        return await self.get_routine(item_id)

    async def list_medications(self, owner_id: str) -> List[Medication]:
        """Get all medications of a profile."""
        async with self.db.execute(
            "SELECT * FROM medications WHERE owner_id = ? ORDER BY title, id",
            (owner_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return self._decode_items(rows, self._row_to_medication)

    async def list_routines(self, owner_id: str) -> List[Routine]:
        """Get all routines of a profile."""
        async with self.db.execute(
            "SELECT * FROM routines WHERE owner_id = ? ORDER BY title, id",
            (owner_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return self._decode_items(rows, self._row_to_routine)

    async def list_scheduled_items(self, owner_id: str) -> List[ScheduledItem]:
        """Get all medications, then all routines, of a profile."""
        medications: List[ScheduledItem] = list(await self.list_medications(owner_id))
        routines: List[ScheduledItem] = list(await self.list_routines(owner_id))
        return medications + routines

    async def update_completion(
        self,
        kind: ItemKind,
        item_id: int,
        completed: bool,
        at: datetime | None = None,
    ) -> ScheduledItem:
        """Mark an item done (at the given time) or back to pending."""
        if completed and at is None:
            raise ValueError("A completion timestamp is required when marking done")

        table = _TABLES[kind]
        async with self.db.execute(
            f"UPDATE {table} SET completed_at = ? WHERE id = ? RETURNING *",
            (_ts(at) if completed else None, item_id),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()

        if row is None:
            raise LookupError(f"No {kind} with id {item_id}")

        if kind == "medication":
            return self._row_to_medication(row)
        return self._row_to_routine(row)

    async def decrement_quantity(self, medication_id: int) -> int | None:
        """Take one unit from a medication's stock, never going below zero.

        The decrement is a single conditional UPDATE, so concurrent callers
        cannot push the stock negative.

        Returns:
            The remaining quantity, or None if stock is not tracked.
        """
        async with self.db.execute(
            """
            UPDATE medications SET quantity_remaining = quantity_remaining - 1
            WHERE id = ? AND quantity_remaining > 0
            RETURNING quantity_remaining
            """,
            (medication_id,),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()

        if row is not None:
            return row["quantity_remaining"]

        medication = await self.get_medication(medication_id)
        if medication is None:
            raise LookupError(f"No medication with id {medication_id}")
        return medication.quantity_remaining

    async def delete_medication(self, medication_id: int) -> None:
        """Delete a medication."""
        await self.db.execute("DELETE FROM medications WHERE id = ?", (medication_id,))
        await self.db.commit()

    async def delete_routine(self, routine_id: int) -> None:
        """Delete a routine."""
        await self.db.execute("DELETE FROM routines WHERE id = ?", (routine_id,))
        await self.db.commit()

    # Appointment operations

    async def create_appointment(self, appointment: Appointment) -> Appointment:
        """Create a new appointment."""
        async with self.db.execute(
            """
            INSERT INTO appointments (
                owner_id, title, kind, scheduled_at, location, description, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (
                appointment.owner_id,
                appointment.title,
                appointment.kind,
                _ts(appointment.scheduled_at),
                appointment.location,
                appointment.description,
                _ts(appointment.created_at or _now()),
            ),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()

        created = self._row_to_appointment(row)
        logger.info(f"Created appointment {created.id} for profile {created.owner_id}")
        return created

    async def get_appointment(self, appointment_id: int) -> Appointment | None:
        """Get an appointment by ID."""
        async with self.db.execute(
            "SELECT * FROM appointments WHERE id = ?", (appointment_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_appointment(row)
            return None

    async def list_appointments(
        self,
        owner_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> List[Appointment]:
        """Get a profile's appointments in time order, optionally within [since, until]."""
        query = "SELECT * FROM appointments WHERE owner_id = ?"
        params: list = [owner_id]
        if since:
            query += " AND scheduled_at >= ?"
            params.append(_ts(since))
        if until:
            query += " AND scheduled_at <= ?"
            params.append(_ts(until))
        query += " ORDER BY scheduled_at, id"

        async with self.db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_appointment(row) for row in rows]

    async def delete_appointment(self, appointment_id: int) -> None:
        """Delete an appointment."""
        await self.db.execute("DELETE FROM appointments WHERE id = ?", (appointment_id,))
        await self.db.commit()

    # Event history operations

    async def create_event(self, event: EventRecord) -> EventRecord:
        """Record a scheduled event."""
        async with self.db.execute(
            """
            INSERT INTO event_history (
                owner_id, event_type, scheduled_for, status, description,
                medication_id, routine_id, confirmed_at, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (
                event.owner_id,
                event.event_type,
                _ts(event.scheduled_for),
                event.status,
                event.description,
                event.medication_id,
                event.routine_id,
                _ts(event.confirmed_at),
                _ts(event.created_at or _now()),
            ),
        ) as cursor:
            row = await cursor.fetchone()
        await self.db.commit()
        return self._row_to_event(row)

    async def event_exists(
        self, kind: ItemKind, item_id: int, event_type: str, scheduled_for: datetime
    ) -> bool:
        """Check whether an event was already recorded for an item and slot."""
        column = "medication_id" if kind == "medication" else "routine_id"
        async with self.db.execute(
            f"""
            SELECT 1 FROM event_history
            WHERE {column} = ? AND event_type = ? AND scheduled_for = ?
            """,
            (item_id, event_type, _ts(scheduled_for)),
        ) as cursor:
            return await cursor.fetchone() is not None

    async def get_oldest_pending_event(self, owner_id: str) -> EventRecord | None:
        """Get the earliest pending event of a profile."""
        async with self.db.execute(
            """
            SELECT * FROM event_history
            WHERE owner_id = ? AND status = 'pendente'
            ORDER BY scheduled_for, id
            LIMIT 1
            """,
            (owner_id,),
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_event(row)
            return None

    async def confirm_event(self, event_id: int, at: datetime) -> None:
        """Mark an event as confirmed."""
        await self.db.execute(
            "UPDATE event_history SET status = 'confirmado', confirmed_at = ? WHERE id = ?",
            (_ts(at), event_id),
        )
        await self.db.commit()

    async def list_events(
        self, owner_id: str, since: datetime | None = None
    ) -> List[EventRecord]:
        """Get a profile's events, newest first, optionally since a time."""
        if since:
            query = """
                SELECT * FROM event_history
                WHERE owner_id = ? AND scheduled_for >= ?
                ORDER BY scheduled_for DESC
            """
            params: tuple = (owner_id, _ts(since))
        else:
            query = "SELECT * FROM event_history WHERE owner_id = ? ORDER BY scheduled_for DESC"
            params = (owner_id,)

        async with self.db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_event(row) for row in rows]

    # Helper methods

    def _decode_items(self, rows, convert):
        """Convert item rows, skipping any whose stored recurrence is unreadable."""
        items = []
        for row in rows:
            try:
                items.append(convert(row))
            except InvalidRule as e:
                logger.error(f"Skipping item {row['id']} of profile {row['owner_id']}: {e}")
        return items

    def _row_to_profile(self, row: aiosqlite.Row) -> Profile:
        """Convert a database row to a Profile object."""
        return Profile(
            id=row["id"],
            name=row["name"],
            kind=row["kind"],
            timezone=row["timezone"],
            telegram_id=row["telegram_id"],
            link_code=row["link_code"],
            created_at=_parse_ts(row["created_at"]),
        )

    def _row_to_medication(self, row: aiosqlite.Row) -> Medication:
        """Convert a database row to a Medication object."""
        return Medication(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            dosage=row["dosage"],
            recurrence=rule_from_json(row["recurrence"]),
            quantity_remaining=row["quantity_remaining"],
            completed_at=_parse_ts(row["completed_at"]),
            created_at=_parse_ts(row["created_at"]),
        )

    def _row_to_routine(self, row: aiosqlite.Row) -> Routine:
        """Convert a database row to a Routine object."""
        return Routine(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            description=row["description"],
            recurrence=rule_from_json(row["recurrence"]),
            completed_at=_parse_ts(row["completed_at"]),
            created_at=_parse_ts(row["created_at"]),
        )

    def _row_to_appointment(self, row: aiosqlite.Row) -> Appointment:
        """Convert a database row to an Appointment object."""
        return Appointment(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            kind=row["kind"],
            scheduled_at=_parse_ts(row["scheduled_at"]),  # type: ignore
            location=row["location"],
            description=row["description"],
            created_at=_parse_ts(row["created_at"]),
        )

    def _row_to_event(self, row: aiosqlite.Row) -> EventRecord:
        """Convert a database row to an EventRecord object."""
        return EventRecord(
            id=row["id"],
            owner_id=row["owner_id"],
            event_type=row["event_type"],
            scheduled_for=_parse_ts(row["scheduled_for"]),  # type: ignore
            status=row["status"],  # type: ignore
            description=row["description"],
            medication_id=row["medication_id"],
            routine_id=row["routine_id"],
            confirmed_at=_parse_ts(row["confirmed_at"]),
            created_at=_parse_ts(row["created_at"]),
        )
