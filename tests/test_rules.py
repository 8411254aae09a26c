"""Tests for recurrence rule validation and storage format."""

import json
from datetime import datetime, time

import pytest

from caremind.engine.rules import (
    AlternatingDays,
    Daily,
    Interval,
    InvalidRule,
    Weekly,
    describe_rule,
    parse_hhmm,
    rule_from_dict,
    rule_from_json,
    rule_to_dict,
    rule_to_json,
    scheduled_times,
)


def test_parse_hhmm():
    assert parse_hhmm("08:30") == time(8, 30)
    assert parse_hhmm(" 20:00 ") == time(20, 0)

    with pytest.raises(InvalidRule):
        parse_hhmm("25:00")
    with pytest.raises(InvalidRule):
        parse_hhmm("eight")


@pytest.mark.parametrize("value", ["08", "0800", "8:00", "08:00:00.5", "08:00+03:00", "24:00", None])
def test_parse_hhmm_only_accepts_stored_format(value):
    with pytest.raises(InvalidRule):
        parse_hhmm(value)


def test_parse_hhmm_with_seconds():
    assert parse_hhmm("08:30:15") == time(8, 30, 15)


def test_daily_requires_times():
    with pytest.raises(InvalidRule):
        Daily(times=())

    with pytest.raises(InvalidRule):
        Daily(times=("08:00", "8h"))


@pytest.mark.parametrize("hours", [0, -4, True, "8", float("nan"), float("inf")])
def test_interval_rejects_bad_hours(hours):
    with pytest.raises(InvalidRule):
        Interval(hours_interval=hours)


@pytest.mark.parametrize("days", [0, -1, 1.5, False])
def test_alternating_days_rejects_bad_interval(days):
    with pytest.raises(InvalidRule):
        AlternatingDays(day_interval=days)


def test_weekly_validation():
    with pytest.raises(InvalidRule):
        Weekly(weekdays=frozenset(), time="08:00")

    with pytest.raises(InvalidRule):
        Weekly(weekdays=frozenset({7}), time="08:00")

    with pytest.raises(InvalidRule):
        Weekly(weekdays=frozenset({1}), time="8 o'clock")


def test_rules_are_hashable_values():
    assert Daily(times=["08:00"]) == Daily(times=("08:00",))
    assert Weekly(weekdays={1, 3}, time="08:00") == Weekly(weekdays=frozenset({3, 1}), time="08:00")


def test_rule_from_dict_variants():
    assert rule_from_dict({"tipo": "diario", "horarios": ["08:00", "20:00"]}) == Daily(
        times=("08:00", "20:00")
    )
    assert rule_from_dict({"tipo": "intervalo", "intervalo_horas": 6}) == Interval(6)
    assert rule_from_dict({"tipo": "dias_alternados", "intervalo_dias": 2}) == AlternatingDays(2)
    assert rule_from_dict(
        {"tipo": "semanal", "dias_da_semana": [0, 6], "horario": "10:00"}
    ) == Weekly(weekdays=frozenset({0, 6}), time="10:00")


def test_rule_from_dict_interval_with_start():
    rule = rule_from_dict(
        {"tipo": "intervalo", "intervalo_horas": 8, "inicio": "2024-01-01T06:00:00"}
    )

    assert rule.start_at == datetime(2024, 1, 1, 6, 0)


@pytest.mark.parametrize(
    "data",
    [
        {"tipo": "mensal", "dia": 5},
        {"tipo": "diario"},
        {"tipo": "diario", "horarios": "08:00"},
        {"tipo": "semanal", "horario": "08:00"},
        {"tipo": "semanal", "dias_da_semana": [1]},
        {"tipo": "intervalo"},
        {"tipo": "intervalo", "intervalo_horas": 8, "inicio": "yesterday"},
        {"intervalo_dias": 2},
        ["diario"],
        {"tipo": "intervalo", "intervalo_horas": float("nan")},
        {"tipo": "intervalo", "intervalo_horas": float("inf")},
        {"tipo": "semanal", "dias_da_semana": [[1]], "horario": "08:00"},
        {"tipo": "semanal", "dias_da_semana": ["1"], "horario": "08:00"},
        {"tipo": "diario", "horarios": ["0800"]},
    ],
)
def test_rule_from_dict_rejects_malformed(data):
    with pytest.raises(InvalidRule):
        rule_from_dict(data)


def test_rule_to_dict_uses_stored_field_names():
    rule = Weekly(weekdays=frozenset({5, 1, 3}), time="08:00")

    assert rule_to_dict(rule) == {
        "tipo": "semanal",
        "dias_da_semana": [1, 3, 5],
        "horario": "08:00",
    }
    assert rule_to_dict(AlternatingDays(2)) == {"tipo": "dias_alternados", "intervalo_dias": 2}


def test_json_column():
    rule = Daily(times=("08:00",))

    assert json.loads(rule_to_json(rule)) == {"tipo": "diario", "horarios": ["08:00"]}
    assert rule_from_json(rule_to_json(rule)) == rule
    assert rule_to_json(None) is None
    assert rule_from_json(None) is None
    assert rule_from_json("") is None
    assert rule_from_json("null") is None

    with pytest.raises(InvalidRule):
        rule_from_json("{not json")
    with pytest.raises(InvalidRule):
        rule_from_json('{"tipo": "intervalo", "intervalo_horas": NaN}')


def test_scheduled_times():
    assert scheduled_times(Daily(times=("20:00", "08:00"))) == [time(8, 0), time(20, 0)]
    assert scheduled_times(Weekly(weekdays=frozenset({1}), time="07:30")) == [time(7, 30)]
    assert scheduled_times(AlternatingDays(2)) == []
    assert scheduled_times(Interval(8)) == []


def test_describe_rule():
    assert describe_rule(None) == "one-off"
    assert describe_rule(Daily(times=("08:00", "20:00"))) == "daily at 08:00, 20:00"
    assert describe_rule(Interval(8)) == "every 8 hours"
    assert describe_rule(Interval(1.5)) == "every 1.5 hours"
    assert describe_rule(AlternatingDays(2, times=("09:00",))) == "every 2 days at 09:00"
    assert describe_rule(Weekly(weekdays=frozenset({3, 1}), time="08:00")) == "Mon, Wed at 08:00"
