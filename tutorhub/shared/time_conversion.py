"""Conversion between local wall-clock times and absolute UTC instants.

``Instant`` and ``WallTime`` are distinct types so a zone-less local time can
never be stored or compared as if it were an absolute moment. All conversions
go through the IANA database shipped with ``zoneinfo``/``tzdata``.

Daylight-saving edge cases:

* A wall time inside a spring-forward gap never happens. It is resolved with
  the offset in force before the transition by default, so 02:30 on the New
  York spring-forward day becomes 07:30Z and renders back as 03:30. The
  ``post_transition`` policy uses the later offset instead (06:30Z, 01:30).
* A wall time inside a fall-back overlap happens twice. The earlier
  occurrence always wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from enum import StrEnum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tutorhub.shared.exceptions import InvalidRangeException


class GapResolutionEnum(StrEnum):
    """Which UTC offset to apply to a wall time that falls in a DST gap."""

    PRE_TRANSITION = "pre_transition"
    POST_TRANSITION = "post_transition"


class WallTimeKindEnum(StrEnum):
    """How a wall time maps onto instants in a given zone."""

    REGULAR = "regular"
    GAP = "gap"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True, slots=True, order=True)
class Instant:
    """Absolute point in time, always held in UTC."""

    value: datetime

    def __post_init__(self) -> None:
        if self.value.tzinfo is None or self.value.utcoffset() is None:
            raise InvalidRangeException("Instant requires a timezone-aware datetime")
        object.__setattr__(self, "value", self.value.astimezone(UTC))

    @classmethod
    def from_datetime(cls, value: datetime) -> Instant:
        return cls(value)

    def as_datetime(self) -> datetime:
        return self.value

    def isoformat(self) -> str:
        return self.value.isoformat()

    def __add__(self, delta: timedelta) -> Instant:
        if not isinstance(delta, timedelta):
            return NotImplemented
        return Instant(self.value + delta)

    def __sub__(self, other: Instant) -> timedelta:
        if not isinstance(other, Instant):
            return NotImplemented
        return self.value - other.value


@dataclass(frozen=True, slots=True, order=True)
class WallTime:
    """Local calendar date and clock reading with no zone attached."""

    value: datetime

    def __post_init__(self) -> None:
        if self.value.tzinfo is not None:
            raise InvalidRangeException("WallTime must not carry a timezone")
        object.__setattr__(self, "value", self.value.replace(fold=0))

    @classmethod
    def of(cls, day: date, clock: time) -> WallTime:
        return cls(datetime.combine(day, clock))

    @property
    def date(self) -> date:
        return self.value.date()

    @property
    def time(self) -> time:
        return self.value.time()

    def isoformat(self) -> str:
        return self.value.isoformat()


def load_zone(zone: str | ZoneInfo) -> ZoneInfo:
    """Resolve an IANA zone name, rejecting unknown names."""
    if isinstance(zone, ZoneInfo):
        return zone
    try:
        return ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidRangeException(f"Unknown timezone: {zone}") from exc


def classify_wall_time(wall: WallTime, zone: str | ZoneInfo) -> WallTimeKindEnum:
    """Tell whether a wall time is regular, skipped or repeated in ``zone``."""
    tz = load_zone(zone)
    earlier = wall.value.replace(tzinfo=tz, fold=0)
    later = wall.value.replace(tzinfo=tz, fold=1)
    if earlier.utcoffset() == later.utcoffset():
        return WallTimeKindEnum.REGULAR

    round_trip = earlier.astimezone(UTC).astimezone(tz).replace(tzinfo=None, fold=0)
    if round_trip != wall.value:
        return WallTimeKindEnum.GAP
    return WallTimeKindEnum.AMBIGUOUS


def to_instant(
    wall: WallTime,
    zone: str | ZoneInfo,
    gap_resolution: GapResolutionEnum = GapResolutionEnum.PRE_TRANSITION,
) -> Instant:
    """Convert a wall time in ``zone`` to an instant."""
    tz = load_zone(zone)
    fold = 0
    if (
        gap_resolution == GapResolutionEnum.POST_TRANSITION
        and classify_wall_time(wall, tz) == WallTimeKindEnum.GAP
    ):
        fold = 1
    return Instant(wall.value.replace(tzinfo=tz, fold=fold))


def to_local(instant: Instant, zone: str | ZoneInfo) -> WallTime:
    """Project an instant onto the wall clock of ``zone``."""
    tz = load_zone(zone)
    return WallTime(instant.value.astimezone(tz).replace(tzinfo=None))


def to_zoned_datetime(instant: Instant, zone: str | ZoneInfo) -> datetime:
    """Return an aware datetime carrying the local offset, for display payloads."""
    return instant.value.astimezone(load_zone(zone))
