"""Expansion of weekly availability rules into dated slots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

from tutorhub.shared.exceptions import InvalidRangeException
from tutorhub.shared.time_conversion import GapResolutionEnum, Instant, WallTime, load_zone, to_instant

ONE_WEEK = timedelta(days=7)


class WeeklyRule(Protocol):
    id: UUID
    tutor_id: UUID
    day_of_week: int
    start_time: time
    end_time: time


@dataclass(frozen=True, slots=True, order=True)
class Slot:
    """Bookable candidate interval; never persisted."""

    start: Instant
    end: Instant
    tutor_id: UUID
    rule_id: UUID

    def overlaps(self, start: Instant, end: Instant) -> bool:
        return self.start < end and start < self.end


def day_of_week(day: date) -> int:
    """Return 0 for Sunday through 6 for Saturday."""
    return day.isoweekday() % 7


def first_occurrence(weekday: int, range_start: date) -> date:
    """Return the first date on or after ``range_start`` falling on ``weekday``."""
    return range_start + timedelta(days=(weekday - day_of_week(range_start)) % 7)


def expand(
    rule: WeeklyRule,
    tutor_zone: str | ZoneInfo,
    range_start: date,
    range_end: date,
    gap_resolution: GapResolutionEnum = GapResolutionEnum.PRE_TRANSITION,
) -> list[Slot]:
    """Produce the rule's slots between ``range_start`` and ``range_end``, both inclusive.

    Occurrences whose converted end is not after the converted start are
    dropped; that only happens when a rule edge sits in a DST gap.
    """
    if range_start > range_end:
        raise InvalidRangeException("range_start must not be after range_end")
    if not 0 <= rule.day_of_week <= 6:
        raise InvalidRangeException("day_of_week must be between 0 and 6")
    if rule.start_time >= rule.end_time:
        raise InvalidRangeException("Rule start_time must be before end_time")

    zone = load_zone(tutor_zone)
    slots: list[Slot] = []
    current = first_occurrence(rule.day_of_week, range_start)
    while current <= range_end:
        start = to_instant(WallTime.of(current, rule.start_time), zone, gap_resolution)
        end = to_instant(WallTime.of(current, rule.end_time), zone, gap_resolution)
        if end > start:
            slots.append(Slot(start=start, end=end, tutor_id=rule.tutor_id, rule_id=rule.id))
        current += ONE_WEEK
    return slots
