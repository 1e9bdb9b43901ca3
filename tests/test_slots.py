from datetime import date, datetime, timezone

import pytest

from agenda.services.exceptions import ValidationError
from agenda.services.slots import (
    covers,
    day_bounds,
    format_clock,
    generate_slots,
    parse_clock,
    parse_date,
    slot_window,
    weekday_index,
)
from agenda.services.store import AvailabilityRuleRecord, RuleScope


def _rule(rule_id: str, day: int, start: str, end: str, active: bool = True) -> AvailabilityRuleRecord:
    return AvailabilityRuleRecord(
        rule_id=rule_id,
        tenant_id="TEN-1",
        scope=RuleScope.SERVICE,
        scope_id="SVC-1",
        day_of_week=day,
        start_time=start,
        end_time=end,
        active=active,
    )


MONDAY = date(2030, 1, 7)


def test_weekday_index_counts_from_sunday() -> None:
    assert weekday_index(date(2030, 1, 6)) == 0
    assert weekday_index(MONDAY) == 1
    assert weekday_index(date(2030, 1, 12)) == 6


def test_monday_morning_window_yields_half_hour_slots() -> None:
    slots = generate_slots([_rule("R1", 1, "09:00", "12:00")], MONDAY, 30)

    assert [slot.time for slot in slots] == [
        "09:00",
        "09:30",
        "10:00",
        "10:30",
        "11:00",
        "11:30",
    ]


def test_slots_never_overflow_their_window() -> None:
    rules = [_rule("R1", 1, "09:00", "12:10"), _rule("R2", 1, "14:15", "16:00")]

    for duration in (15, 30, 45, 60, 90, 120):
        for slot in generate_slots(rules, MONDAY, duration):
            owner = next(rule for rule in rules if rule.rule_id == slot.rule_id)
            assert slot.end_minute == slot.start_minute + duration
            assert slot.end_minute <= parse_clock(owner.end_time)
            assert slot.start_minute >= parse_clock(owner.start_time)


def test_trailing_partial_slot_is_dropped() -> None:
    slots = generate_slots([_rule("R1", 1, "09:00", "11:00")], MONDAY, 90)

    assert [slot.time for slot in slots] == ["09:00", "09:30"]


def test_other_days_and_inactive_rules_are_ignored() -> None:
    rules = [
        _rule("R1", 2, "09:00", "12:00"),
        _rule("R2", 1, "09:00", "10:00", active=False),
    ]

    assert generate_slots(rules, MONDAY, 30) == []


def test_rules_are_merged_and_sorted_keeping_duplicates() -> None:
    rules = [
        _rule("R2", 1, "14:00", "15:00"),
        _rule("R1", 1, "09:00", "10:00"),
        _rule("R3", 1, "09:30", "10:00"),
    ]

    slots = generate_slots(rules, MONDAY, 30)

    assert [slot.time for slot in slots] == ["09:00", "09:30", "09:30", "14:00", "14:30"]


def test_custom_interval() -> None:
    slots = generate_slots([_rule("R1", 1, "09:00", "10:00")], MONDAY, 30, interval=15)

    assert [slot.time for slot in slots] == ["09:00", "09:15", "09:30"]


@pytest.mark.parametrize("value", ["9am", "24:00", "12:60", "", "1200"])
def test_parse_clock_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValidationError):
        parse_clock(value)


def test_clock_helpers() -> None:
    assert parse_clock("9:05") == 545
    assert format_clock(545) == "09:05"


def test_parse_date_rejects_bad_input() -> None:
    assert parse_date("2030-01-07") == MONDAY
    with pytest.raises(ValidationError):
        parse_date("07/01/2030")
    with pytest.raises(ValidationError):
        parse_date("2030-02-30")


def test_windows_are_computed_in_utc() -> None:
    start, end = day_bounds(MONDAY)
    assert start == datetime(2030, 1, 7, tzinfo=timezone.utc)
    assert (end - start).total_seconds() == 24 * 3600

    slot_start, slot_end = slot_window(MONDAY, parse_clock("23:30"), 60)
    assert slot_start == datetime(2030, 1, 7, 23, 30, tzinfo=timezone.utc)
    assert slot_end == datetime(2030, 1, 8, 0, 30, tzinfo=timezone.utc)


def test_covers_requires_a_single_containing_rule() -> None:
    rules = [_rule("R1", 1, "09:00", "10:00"), _rule("R2", 1, "10:00", "11:00")]

    assert covers(rules, MONDAY, parse_clock("09:00"), parse_clock("09:30"))
    assert not covers(rules, MONDAY, parse_clock("09:45"), parse_clock("10:15"))
    assert not covers(rules, date(2030, 1, 8), parse_clock("09:00"), parse_clock("09:30"))


def test_non_positive_duration_is_rejected() -> None:
    with pytest.raises(ValidationError):
        generate_slots([_rule("R1", 1, "09:00", "10:00")], MONDAY, 0)
