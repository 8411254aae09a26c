"""Recurrence rule model and its persisted JSON form."""

import json
import math
import re
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Union

# Discriminant values stored in the `tipo` field of persisted rules
TIPO_DIARIO = "diario"
TIPO_INTERVALO = "intervalo"
TIPO_DIAS_ALTERNADOS = "dias_alternados"
TIPO_SEMANAL = "semanal"

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$")


class InvalidRule(ValueError):
    """A recurrence rule is malformed."""


def parse_hhmm(value: str) -> time:
    """Parse an HH:MM (or HH:MM:SS) string into a time."""
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise InvalidRule(f"Invalid time {value!r}: expected HH:MM")
    hour, minute, second = match.groups()
    return time(int(hour), int(minute), int(second or 0))


def _check_times(times: tuple[str, ...]) -> None:
    for value in times:
        parse_hhmm(value)


@dataclass(frozen=True)
class Daily:
    """Occurs every calendar day at each listed time."""

    times: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "times", tuple(self.times))
        if not self.times:
            raise InvalidRule("Daily rule needs at least one time")
        _check_times(self.times)


@dataclass(frozen=True)
class Interval:
    """Occurs every N hours from start_at (or from item creation)."""

    hours_interval: float
    start_at: datetime | None = None

    def __post_init__(self) -> None:
        if isinstance(self.hours_interval, bool) or not isinstance(
            self.hours_interval, (int, float)
        ):
            raise InvalidRule("intervalo_horas must be a number")
        if not math.isfinite(self.hours_interval) or self.hours_interval <= 0:
            raise InvalidRule("intervalo_horas must be a finite number greater than zero")


@dataclass(frozen=True)
class AlternatingDays:
    """Occurs every N calendar days, anchored to the item's creation date."""

    day_interval: int
    times: tuple[str, ...] = ()  # only used by the missed-item monitor

    def __post_init__(self) -> None:
        object.__setattr__(self, "times", tuple(self.times))
        if isinstance(self.day_interval, bool) or not isinstance(self.day_interval, int):
            raise InvalidRule("intervalo_dias must be an integer")
        if self.day_interval < 1:
            raise InvalidRule("intervalo_dias must be at least 1")
        _check_times(self.times)


@dataclass(frozen=True)
class Weekly:
    """Occurs on the given weekdays (0 = Sunday) at a fixed time."""

    weekdays: frozenset[int]
    time: str

    def __post_init__(self) -> None:
        days = list(self.weekdays)
        for day in days:
            if isinstance(day, bool) or not isinstance(day, int) or not 0 <= day <= 6:
                raise InvalidRule(f"Invalid weekday {day!r}: expected 0 (Sunday) to 6")
        if not days:
            raise InvalidRule("dias_da_semana must not be empty")
        object.__setattr__(self, "weekdays", frozenset(days))
        parse_hhmm(self.time)


RecurrenceRule = Union[Daily, Interval, AlternatingDays, Weekly]

RULE_TYPES = (Daily, Interval, AlternatingDays, Weekly)


def ensure_rule(rule: Any) -> RecurrenceRule:
    """Return the rule unchanged, or raise InvalidRule for anything else."""
    if not isinstance(rule, RULE_TYPES):
        raise InvalidRule(f"Unsupported recurrence rule: {rule!r}")
    return rule


def scheduled_times(rule: RecurrenceRule) -> list[time]:
    """Times of day at which the rule fires, sorted. Empty for Interval."""
    rule = ensure_rule(rule)
    if isinstance(rule, Daily):
        values = rule.times
    elif isinstance(rule, Weekly):
        values = (rule.time,)
    elif isinstance(rule, AlternatingDays):
        values = rule.times
    else:
        values = ()
    return sorted(parse_hhmm(v) for v in values)


def _require(data: dict, key: str) -> Any:
    if data.get(key) is None:
        raise InvalidRule(f"Missing field '{key}' for tipo '{data.get('tipo')}'")
    return data[key]


def rule_from_dict(data: dict) -> RecurrenceRule:
    """Build a rule from its persisted dict form.

    Example:
        {"tipo": "semanal", "dias_da_semana": [1, 3, 5], "horario": "08:00"}
    """
    if not isinstance(data, dict):
        raise InvalidRule(f"Recurrence must be an object, got {type(data).__name__}")

    tipo = data.get("tipo")

    if tipo == TIPO_DIARIO:
        horarios = _require(data, "horarios")
        if not isinstance(horarios, list):
            raise InvalidRule("horarios must be a list")
        return Daily(times=tuple(horarios))

    elif tipo == TIPO_INTERVALO:
        inicio = data.get("inicio")
        start_at = None
        if inicio:
            try:
                start_at = datetime.fromisoformat(inicio)
            except (TypeError, ValueError):
                raise InvalidRule(f"Invalid inicio {inicio!r}") from None
        return Interval(hours_interval=_require(data, "intervalo_horas"), start_at=start_at)

    elif tipo == TIPO_DIAS_ALTERNADOS:
        horarios = data.get("horarios") or []
        if not isinstance(horarios, list):
            raise InvalidRule("horarios must be a list")
        return AlternatingDays(
            day_interval=_require(data, "intervalo_dias"), times=tuple(horarios)
        )

    elif tipo == TIPO_SEMANAL:
        dias = _require(data, "dias_da_semana")
        if not isinstance(dias, list):
            raise InvalidRule("dias_da_semana must be a list")
        return Weekly(weekdays=dias, time=_require(data, "horario"))

    raise InvalidRule(f"Unknown recurrence tipo {tipo!r}")


def rule_to_dict(rule: RecurrenceRule) -> dict:
    """Convert a rule to its persisted dict form."""
    rule = ensure_rule(rule)

    if isinstance(rule, Daily):
        return {"tipo": TIPO_DIARIO, "horarios": list(rule.times)}

    elif isinstance(rule, Interval):
        data: dict[str, Any] = {"tipo": TIPO_INTERVALO, "intervalo_horas": rule.hours_interval}
        if rule.start_at is not None:
            data["inicio"] = rule.start_at.isoformat()
        return data

    elif isinstance(rule, AlternatingDays):
        data = {"tipo": TIPO_DIAS_ALTERNADOS, "intervalo_dias": rule.day_interval}
        if rule.times:
            data["horarios"] = list(rule.times)
        return data

    return {
        "tipo": TIPO_SEMANAL,
        "dias_da_semana": sorted(rule.weekdays),
        "horario": rule.time,
    }


def rule_from_json(raw: str | None) -> RecurrenceRule | None:
    """Decode a stored JSON column. None or empty means a one-off item."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidRule(f"Recurrence is not valid JSON: {e}") from None
    if data is None:
        return None
    return rule_from_dict(data)


def rule_to_json(rule: RecurrenceRule | None) -> str | None:
    """Encode a rule for storage."""
    if rule is None:
        return None
    return json.dumps(rule_to_dict(rule))


def describe_rule(rule: RecurrenceRule | None) -> str:
    """Short human-readable description."""
    if rule is None:
        return "one-off"
    rule = ensure_rule(rule)
    if isinstance(rule, Daily):
        return "daily at " + ", ".join(rule.times)
    elif isinstance(rule, Interval):
        hours = rule.hours_interval
        hours_text = str(int(hours)) if float(hours).is_integer() else f"{hours:g}"
        return f"every {hours_text} hours"
    elif isinstance(rule, AlternatingDays):
        text = f"every {rule.day_interval} days"
        if rule.times:
            text += " at " + ", ".join(rule.times)
        return text
    names = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
    days = ", ".join(names[d] for d in sorted(rule.weekdays))
    return f"{days} at {rule.time}"
