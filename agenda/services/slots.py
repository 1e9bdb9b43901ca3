"""Expand weekly availability rules into fixed-length candidate slots.

All arithmetic happens on minutes-from-midnight against the requested date
at UTC, so no local offset or daylight-saving shift can leak in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from enum import IntEnum
from typing import Iterable, List, Optional, Tuple

from agenda.services.exceptions import ValidationError
from agenda.services.store import AvailabilityRuleRecord

DEFAULT_INTERVAL_MINUTES = 30
MINUTES_PER_DAY = 24 * 60

_CLOCK_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Weekday(IntEnum):
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6


@dataclass(frozen=True)
class Slot:
    time: str
    start_minute: int
    end_minute: int
    rule_id: Optional[str] = None


def parse_clock(value: str) -> int:
    """Return minutes from midnight for an ``HH:MM`` string."""

    match = _CLOCK_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time {value!r}; expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_clock(minutes: int) -> str:
    hours, minute = divmod(minutes, 60)
    return f"{hours:02d}:{minute:02d}"


def parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).date() if value.tzinfo else value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_PATTERN.match(value.strip()):
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD", cause=exc) from exc


def weekday_index(day: date) -> int:
    """Weekday with Sunday as 0."""

    return (day.weekday() + 1) % 7


def midnight_utc(day: date) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=timezone.utc)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    start = midnight_utc(day)
    return start, start + timedelta(days=1)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def slot_window(day: date, start_minute: int, duration_minutes: int) -> Tuple[datetime, datetime]:
    start = midnight_utc(day) + timedelta(minutes=start_minute)
    return start, start + timedelta(minutes=duration_minutes)


def generate_slots(
    rules: Iterable[AvailabilityRuleRecord],
    day: date,
    slot_duration: int,
    interval: int = DEFAULT_INTERVAL_MINUTES,
) -> List[Slot]:
    if slot_duration <= 0:
        raise ValidationError("Slot duration must be a positive number of minutes")
    if interval <= 0:
        raise ValidationError("Slot interval must be a positive number of minutes")

    weekday = weekday_index(day)
    slots: List[Slot] = []
    for rule in rules:
        if not rule.active or rule.day_of_week != weekday:
            continue
        window_start = parse_clock(rule.start_time)
        window_end = parse_clock(rule.end_time)
        current = window_start
        # a slot must end inside its window; trailing partial slots are dropped
        while current + slot_duration <= window_end:
            slots.append(
                Slot(
                    time=format_clock(current),
                    start_minute=current,
                    end_minute=current + slot_duration,
                    rule_id=rule.rule_id,
                )
            )
            current += interval

    slots.sort(key=lambda slot: (slot.start_minute, slot.rule_id or ""))
    return slots


def covers(rules: Iterable[AvailabilityRuleRecord], day: date, start_minute: int, end_minute: int) -> bool:
    """True when one active rule for the weekday fully contains the minute range."""

    weekday = weekday_index(day)
    for rule in rules:
        if not rule.active or rule.day_of_week != weekday:
            continue
        if parse_clock(rule.start_time) <= start_minute and end_minute <= parse_clock(rule.end_time):
            return True
    return False
