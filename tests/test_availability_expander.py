from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from uuid import UUID, uuid4

import pytest

from tutorhub.modules.availability.expander import day_of_week, expand, first_occurrence
from tutorhub.shared.exceptions import InvalidRangeException
from tutorhub.shared.time_conversion import GapResolutionEnum, Instant


@dataclass
class FakeRule:
    day_of_week: int
    start_time: time
    end_time: time
    id: UUID = field(default_factory=uuid4)
    tutor_id: UUID = field(default_factory=uuid4)


def _utc(*args: int) -> Instant:
    return Instant(datetime(*args, tzinfo=UTC))


def test_day_of_week_counts_from_sunday() -> None:
    assert day_of_week(date(2023, 1, 1)) == 0
    assert day_of_week(date(2023, 1, 2)) == 1
    assert day_of_week(date(2023, 1, 7)) == 6


def test_first_occurrence_on_or_after_range_start() -> None:
    assert first_occurrence(1, date(2023, 1, 1)) == date(2023, 1, 2)
    assert first_occurrence(0, date(2023, 1, 1)) == date(2023, 1, 1)
    assert first_occurrence(0, date(2023, 1, 2)) == date(2023, 1, 8)


def test_monday_rule_expands_into_weekly_slots() -> None:
    rule = FakeRule(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))

    slots = expand(rule, "UTC", date(2023, 1, 1), date(2023, 1, 22))

    assert [slot.start for slot in slots] == [
        _utc(2023, 1, 2, 9, 0),
        _utc(2023, 1, 9, 9, 0),
        _utc(2023, 1, 16, 9, 0),
    ]
    assert all(slot.end - slot.start == slots[0].end - slots[0].start for slot in slots)
    assert {slot.rule_id for slot in slots} == {rule.id}
    assert {slot.tutor_id for slot in slots} == {rule.tutor_id}


def test_range_bounds_are_inclusive() -> None:
    rule = FakeRule(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))

    single_day = expand(rule, "UTC", date(2023, 1, 2), date(2023, 1, 2))
    ending_on_monday = expand(rule, "UTC", date(2023, 1, 1), date(2023, 1, 9))

    assert len(single_day) == 1
    assert len(ending_on_monday) == 2


def test_range_without_matching_weekday_is_empty() -> None:
    rule = FakeRule(day_of_week=3, start_time=time(9, 0), end_time=time(10, 0))

    assert expand(rule, "UTC", date(2023, 1, 1), date(2023, 1, 3)) == []


def test_reversed_range_is_rejected() -> None:
    rule = FakeRule(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))

    with pytest.raises(InvalidRangeException):
        expand(rule, "UTC", date(2023, 1, 22), date(2023, 1, 1))


@pytest.mark.parametrize(
    ("weekday", "start_time", "end_time"),
    [
        (7, time(9, 0), time(10, 0)),
        (-1, time(9, 0), time(10, 0)),
        (1, time(10, 0), time(10, 0)),
        (1, time(11, 0), time(10, 0)),
    ],
)
def test_malformed_rules_are_rejected(weekday: int, start_time: time, end_time: time) -> None:
    rule = FakeRule(day_of_week=weekday, start_time=start_time, end_time=end_time)

    with pytest.raises(InvalidRangeException):
        expand(rule, "UTC", date(2023, 1, 1), date(2023, 1, 22))


def test_wall_clock_is_kept_across_dst_change() -> None:
    rule = FakeRule(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))

    slots = expand(rule, "America/New_York", date(2024, 3, 4), date(2024, 3, 11))

    assert [slot.start for slot in slots] == [
        _utc(2024, 3, 4, 14, 0),
        _utc(2024, 3, 11, 13, 0),
    ]


def test_slot_starting_in_dst_gap_is_shifted_by_policy() -> None:
    rule = FakeRule(day_of_week=0, start_time=time(2, 30), end_time=time(4, 0))
    spring_forward = date(2024, 3, 10)

    default = expand(rule, "America/New_York", spring_forward, spring_forward)
    post = expand(
        rule,
        "America/New_York",
        spring_forward,
        spring_forward,
        GapResolutionEnum.POST_TRANSITION,
    )

    assert (default[0].start, default[0].end) == (_utc(2024, 3, 10, 7, 30), _utc(2024, 3, 10, 8, 0))
    assert (post[0].start, post[0].end) == (_utc(2024, 3, 10, 6, 30), _utc(2024, 3, 10, 8, 0))


def test_slot_collapsed_by_dst_gap_is_skipped() -> None:
    rule = FakeRule(day_of_week=0, start_time=time(2, 0), end_time=time(3, 0))

    slots = expand(rule, "America/New_York", date(2024, 3, 3), date(2024, 3, 17))

    assert [slot.start for slot in slots] == [
        _utc(2024, 3, 3, 7, 0),
        _utc(2024, 3, 17, 6, 0),
    ]


def test_slot_overlap_is_half_open() -> None:
    rule = FakeRule(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    slot = expand(rule, "UTC", date(2023, 1, 2), date(2023, 1, 2))[0]

    assert slot.overlaps(_utc(2023, 1, 2, 9, 30), _utc(2023, 1, 2, 10, 30))
    assert not slot.overlaps(_utc(2023, 1, 2, 10, 0), _utc(2023, 1, 2, 11, 0))
    assert not slot.overlaps(_utc(2023, 1, 2, 8, 0), _utc(2023, 1, 2, 9, 0))
