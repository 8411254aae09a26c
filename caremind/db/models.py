"""Data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Literal

from caremind.engine.rules import RecurrenceRule

ProfileKind = Literal["individual", "familiar", "idoso"]
ItemKind = Literal["medication", "routine"]
EventStatus = Literal["pendente", "confirmado"]
AppointmentKind = Literal["consulta", "exame", "procedimento", "outros"]

APPOINTMENT_KINDS: tuple[str, ...] = ("consulta", "exame", "procedimento", "outros")

EVENT_MEDICATION_LATE = "medicamento_atrasado"
EVENT_ROUTINE_MISSED = "rotina_nao_concluida"


class InvalidItem(ValueError):
    """A scheduled item failed validation."""


@dataclass
class Profile:
    """A person whose items are tracked (self, caregiver or dependent)."""

    name: str
    kind: ProfileKind
    timezone: str
    id: str | None = None
    telegram_id: int | None = None  # None for dependents managed by a caregiver
    link_code: str | None = None
    created_at: datetime | None = None


@dataclass
class FamilyLink:
    """Caregiver (familiar) to dependent (elderly) association."""

    familiar_id: str
    elderly_id: str
    created_at: datetime | None = None


@dataclass
class ScheduledItem:
    """Common shape of medications and routines."""

    kind: ClassVar[ItemKind]

    owner_id: str
    title: str
    recurrence: RecurrenceRule | None = None  # None means one-off
    completed_at: datetime | None = None  # UTC
    created_at: datetime | None = None  # UTC, anchor for interval rules
    id: int | None = None

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise InvalidItem("Title must not be empty")

    @property
    def completed(self) -> bool:
        return self.completed_at is not None


@dataclass
class Medication(ScheduledItem):
    """A medication with optional stock tracking."""

    kind: ClassVar[ItemKind] = "medication"

    dosage: str | None = None
    quantity_remaining: int | None = None  # None means stock is not tracked

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.quantity_remaining is not None and self.quantity_remaining < 0:
            raise InvalidItem("Quantity must not be negative")


@dataclass
class Routine(ScheduledItem):
    """A recurring non-medication activity."""

    kind: ClassVar[ItemKind] = "routine"

    description: str | None = None


@dataclass
class EventRecord:
    """History entry for a scheduled event (late alerts, confirmations)."""

    owner_id: str
    event_type: str
    scheduled_for: datetime  # UTC
    status: EventStatus = "pendente"
    description: str | None = None
    medication_id: int | None = None
    routine_id: int | None = None
    confirmed_at: datetime | None = None
    created_at: datetime | None = None
    id: int | None = None


@dataclass
class Appointment:
    """A one-off dated commitment such as a doctor's visit or an exam.

    Appointments have no recurrence and no completion state; they are shown
    on the day they fall on and drop off afterwards.
    """

    owner_id: str
    title: str
    scheduled_at: datetime  # UTC
    kind: AppointmentKind = "consulta"
    location: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise InvalidItem("Title must not be empty")
        if self.kind not in APPOINTMENT_KINDS:
            raise InvalidItem(
                f"Unknown appointment kind {self.kind!r}; use one of {', '.join(APPOINTMENT_KINDS)}"
            )
