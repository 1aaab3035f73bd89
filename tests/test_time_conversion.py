from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta, timezone

import pytest

from tutorhub.shared.exceptions import InvalidRangeException
from tutorhub.shared.time_conversion import (
    GapResolutionEnum,
    Instant,
    WallTime,
    WallTimeKindEnum,
    classify_wall_time,
    load_zone,
    to_instant,
    to_local,
    to_zoned_datetime,
)

NEW_YORK = "America/New_York"


def _utc(*args: int) -> Instant:
    return Instant(datetime(*args, tzinfo=UTC))


def test_instant_is_normalized_to_utc() -> None:
    moscow = timezone(timedelta(hours=3))
    instant = Instant(datetime(2024, 1, 15, 12, 0, tzinfo=moscow))

    assert instant.as_datetime() == datetime(2024, 1, 15, 9, 0, tzinfo=UTC)
    assert instant.as_datetime().tzinfo is UTC
    assert instant == _utc(2024, 1, 15, 9, 0)


def test_instant_rejects_naive_datetime() -> None:
    with pytest.raises(InvalidRangeException):
        Instant(datetime(2024, 1, 15, 12, 0))


def test_wall_time_rejects_aware_datetime() -> None:
    with pytest.raises(InvalidRangeException):
        WallTime(datetime(2024, 1, 15, 12, 0, tzinfo=UTC))


def test_instant_arithmetic() -> None:
    start = _utc(2024, 1, 15, 9, 0)
    end = start + timedelta(minutes=90)

    assert end - start == timedelta(minutes=90)
    assert start < end


def test_regular_wall_time_round_trips() -> None:
    wall = WallTime.of(date(2024, 7, 1), time(9, 0))

    instant = to_instant(wall, NEW_YORK)

    assert instant == _utc(2024, 7, 1, 13, 0)
    assert to_local(instant, NEW_YORK) == wall
    assert classify_wall_time(wall, NEW_YORK) == WallTimeKindEnum.REGULAR


def test_spring_forward_gap_uses_pre_transition_offset_by_default() -> None:
    wall = WallTime.of(date(2024, 3, 10), time(2, 30))

    instant = to_instant(wall, NEW_YORK)

    assert classify_wall_time(wall, NEW_YORK) == WallTimeKindEnum.GAP
    assert instant == _utc(2024, 3, 10, 7, 30)
    assert to_local(instant, NEW_YORK) == WallTime.of(date(2024, 3, 10), time(3, 30))


def test_spring_forward_gap_with_post_transition_policy() -> None:
    wall = WallTime.of(date(2024, 3, 10), time(2, 30))

    instant = to_instant(wall, NEW_YORK, GapResolutionEnum.POST_TRANSITION)

    assert instant == _utc(2024, 3, 10, 6, 30)
    assert to_local(instant, NEW_YORK) == WallTime.of(date(2024, 3, 10), time(1, 30))


def test_fall_back_ambiguous_wall_time_resolves_to_earlier_instant() -> None:
    wall = WallTime.of(date(2024, 11, 3), time(1, 30))

    assert classify_wall_time(wall, NEW_YORK) == WallTimeKindEnum.AMBIGUOUS
    assert to_instant(wall, NEW_YORK) == _utc(2024, 11, 3, 5, 30)
    assert to_instant(wall, NEW_YORK, GapResolutionEnum.POST_TRANSITION) == _utc(2024, 11, 3, 5, 30)


def test_both_fall_back_instants_display_same_wall_time() -> None:
    first = _utc(2024, 11, 3, 5, 30)
    second = _utc(2024, 11, 3, 6, 30)
    expected = WallTime.of(date(2024, 11, 3), time(1, 30))

    assert to_local(first, NEW_YORK) == expected
    assert to_local(second, NEW_YORK) == expected
    assert to_zoned_datetime(first, NEW_YORK).utcoffset() == timedelta(hours=-4)
    assert to_zoned_datetime(second, NEW_YORK).utcoffset() == timedelta(hours=-5)


def test_unknown_zone_is_rejected() -> None:
    with pytest.raises(InvalidRangeException):
        load_zone("Mars/Olympus_Mons")

    with pytest.raises(InvalidRangeException):
        to_instant(WallTime.of(date(2024, 1, 1), time(9, 0)), "Not/AZone")


def test_zones_with_half_hour_offsets() -> None:
    wall = WallTime.of(date(2024, 1, 10), time(9, 0))

    assert to_instant(wall, "Asia/Kolkata") == _utc(2024, 1, 10, 3, 30)


def test_documented_2025_transitions() -> None:
    gap_instant = to_instant(WallTime.of(date(2025, 3, 9), time(2, 30)), NEW_YORK)

    assert to_local(gap_instant, NEW_YORK).time == time(3, 30)
    assert to_local(_utc(2025, 11, 2, 5, 30), NEW_YORK) == to_local(_utc(2025, 11, 2, 6, 30), NEW_YORK)
    assert to_local(_utc(2025, 11, 2, 6, 30), NEW_YORK).time == time(1, 30)


@pytest.mark.parametrize("zone", [NEW_YORK, "Europe/Berlin", "Australia/Sydney", "UTC"])
def test_round_trip_through_local_time_outside_transitions(zone: str) -> None:
    instant = _utc(2025, 1, 1, 0, 0)
    checked = 0
    while instant < _utc(2026, 1, 1, 0, 0):
        local = to_local(instant, zone)
        if classify_wall_time(local, zone) == WallTimeKindEnum.REGULAR:
            assert to_instant(local, zone) == instant
            checked += 1
        instant = instant + timedelta(hours=7)

    assert checked > 1200
