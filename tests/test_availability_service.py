from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from decimal import Decimal
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from tutorhub.core.enums import RoleEnum
from tutorhub.modules.availability.schemas import WeeklyAvailabilityRuleCreate, WeeklyAvailabilityRuleUpdate
from tutorhub.modules.availability.service import AvailabilityService
from tutorhub.modules.identity.schemas import TutorRecord
from tutorhub.shared.exceptions import (
    ConflictException,
    InvalidRangeException,
    NotFoundException,
    UnauthorizedException,
)
from tutorhub.shared.time_conversion import GapResolutionEnum


@dataclass
class FakeRule:
    tutor_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)


@dataclass
class FakeAppointment:
    start_at: datetime
    end_at: datetime


class FakeAvailabilityRepository:
    def __init__(self, rules: list[FakeRule] | None = None) -> None:
        self.rules: list[FakeRule] = rules or []

    async def create_rule(
        self,
        tutor_id: UUID,
        day_of_week: int,
        start_time: time,
        end_time: time,
    ) -> FakeRule:
        rule = FakeRule(tutor_id=tutor_id, day_of_week=day_of_week, start_time=start_time, end_time=end_time)
        self.rules.append(rule)
        return rule

    async def get_rule_by_id(self, rule_id: UUID) -> FakeRule | None:
        return next((rule for rule in self.rules if rule.id == rule_id), None)

    async def list_rules_for_tutor(self, tutor_id: UUID, *, active_only: bool = False) -> list[FakeRule]:
        return [
            rule
            for rule in self.rules
            if rule.tutor_id == tutor_id and (rule.is_active or not active_only)
        ]

    async def find_overlapping_rule(
        self,
        tutor_id: UUID,
        day_of_week: int,
        start_time: time,
        end_time: time,
        exclude_rule_id: UUID | None = None,
    ) -> FakeRule | None:
        for rule in self.rules:
            if (
                rule.tutor_id == tutor_id
                and rule.day_of_week == day_of_week
                and rule.is_active
                and rule.id != exclude_rule_id
                and rule.start_time < end_time
                and start_time < rule.end_time
            ):
                return rule
        return None

    async def save(self, rule: FakeRule) -> FakeRule:
        return rule


class FakeAppointmentsRepository:
    def __init__(self, booked: list[FakeAppointment] | None = None) -> None:
        self.booked = booked or []
        self.queries: list[tuple[UUID, datetime, datetime]] = []

    async def list_active_between(self, tutor_id: UUID, start_at: datetime, end_at: datetime) -> list[FakeAppointment]:
        self.queries.append((tutor_id, start_at, end_at))
        return [item for item in self.booked if item.start_at < end_at and start_at < item.end_at]


class FakeDirectory:
    def __init__(self, tutors: dict[UUID, str]) -> None:
        self.tutors = tutors

    async def get_tutor(self, tutor_id: UUID) -> TutorRecord:
        if tutor_id not in self.tutors:
            raise NotFoundException("Tutor not found")
        return TutorRecord(id=tutor_id, timezone=self.tutors[tutor_id], hourly_rate=Decimal("50.00"))


def make_actor(role: RoleEnum, user_id: UUID | None = None) -> SimpleNamespace:
    return SimpleNamespace(id=user_id or uuid4(), role=SimpleNamespace(name=role))


def _build_service(
    tutor_id: UUID,
    rules: list[FakeRule] | None = None,
    booked: list[FakeAppointment] | None = None,
    *,
    max_range_days: int = 92,
) -> tuple[AvailabilityService, FakeAvailabilityRepository]:
    repository = FakeAvailabilityRepository(rules)
    service = AvailabilityService(
        repository,
        FakeAppointmentsRepository(booked),
        FakeDirectory({tutor_id: "America/New_York"}),
        max_range_days=max_range_days,
        gap_resolution=GapResolutionEnum.PRE_TRANSITION,
    )
    return service, repository


@pytest.mark.asyncio
async def test_tutor_creates_rule_for_themself() -> None:
    tutor_id = uuid4()
    service, repository = _build_service(tutor_id)
    tutor = make_actor(RoleEnum.TUTOR, tutor_id)

    rule = await service.create_rule(
        WeeklyAvailabilityRuleCreate(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0)),
        tutor,
    )

    assert rule.tutor_id == tutor_id
    assert repository.rules == [rule]


@pytest.mark.asyncio
async def test_overlapping_rule_on_same_day_is_rejected() -> None:
    tutor_id = uuid4()
    existing = FakeRule(tutor_id=tutor_id, day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    service, _ = _build_service(tutor_id, [existing])

    with pytest.raises(ConflictException):
        await service.create_rule(
            WeeklyAvailabilityRuleCreate(day_of_week=1, start_time=time(9, 30), end_time=time(11, 0)),
            make_actor(RoleEnum.TUTOR, tutor_id),
        )


@pytest.mark.asyncio
async def test_adjacent_rule_is_accepted() -> None:
    tutor_id = uuid4()
    existing = FakeRule(tutor_id=tutor_id, day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    service, repository = _build_service(tutor_id, [existing])

    await service.create_rule(
        WeeklyAvailabilityRuleCreate(day_of_week=1, start_time=time(10, 0), end_time=time(11, 0)),
        make_actor(RoleEnum.TUTOR, tutor_id),
    )

    assert len(repository.rules) == 2


@pytest.mark.asyncio
async def test_other_tutor_cannot_manage_rules() -> None:
    tutor_id = uuid4()
    service, _ = _build_service(tutor_id)

    with pytest.raises(UnauthorizedException):
        await service.create_rule(
            WeeklyAvailabilityRuleCreate(
                tutor_id=tutor_id,
                day_of_week=1,
                start_time=time(9, 0),
                end_time=time(10, 0),
            ),
            make_actor(RoleEnum.TUTOR),
        )


@pytest.mark.asyncio
async def test_admin_creates_rule_for_unknown_tutor_gets_not_found() -> None:
    service, _ = _build_service(uuid4())

    with pytest.raises(NotFoundException):
        await service.create_rule(
            WeeklyAvailabilityRuleCreate(
                tutor_id=uuid4(),
                day_of_week=1,
                start_time=time(9, 0),
                end_time=time(10, 0),
            ),
            make_actor(RoleEnum.ADMIN),
        )


@pytest.mark.asyncio
async def test_update_rejects_window_that_becomes_empty() -> None:
    tutor_id = uuid4()
    rule = FakeRule(tutor_id=tutor_id, day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    service, _ = _build_service(tutor_id, [rule])

    with pytest.raises(InvalidRangeException):
        await service.update_rule(
            rule.id,
            WeeklyAvailabilityRuleUpdate(end_time=time(9, 0)),
            make_actor(RoleEnum.TUTOR, tutor_id),
        )


@pytest.mark.asyncio
async def test_disabled_rule_does_not_block_and_is_not_expanded() -> None:
    tutor_id = uuid4()
    rule = FakeRule(tutor_id=tutor_id, day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    service, _ = _build_service(tutor_id, [rule])
    tutor = make_actor(RoleEnum.TUTOR, tutor_id)

    await service.update_rule(rule.id, WeeklyAvailabilityRuleUpdate(is_active=False), tutor)
    slots = await service.list_open_slots(tutor_id, date(2024, 1, 1), date(2024, 1, 15))
    await service.create_rule(
        WeeklyAvailabilityRuleCreate(day_of_week=1, start_time=time(9, 0), end_time=time(10, 0)),
        tutor,
    )

    assert rule.is_active is False
    assert slots == []


@pytest.mark.asyncio
async def test_open_slots_exclude_booked_intervals() -> None:
    tutor_id = uuid4()
    rule = FakeRule(tutor_id=tutor_id, day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    booked = [
        FakeAppointment(
            start_at=datetime(2024, 1, 8, 14, 30, tzinfo=UTC),
            end_at=datetime(2024, 1, 8, 15, 0, tzinfo=UTC),
        ),
        FakeAppointment(
            start_at=datetime(2024, 1, 15, 15, 0, tzinfo=UTC),
            end_at=datetime(2024, 1, 15, 16, 0, tzinfo=UTC),
        ),
    ]
    service, _ = _build_service(tutor_id, [rule], booked)

    slots = await service.list_open_slots(tutor_id, date(2024, 1, 1), date(2024, 1, 15))

    assert [slot.start.as_datetime() for slot in slots] == [
        datetime(2024, 1, 1, 14, 0, tzinfo=UTC),
        datetime(2024, 1, 15, 14, 0, tzinfo=UTC),
    ]


@pytest.mark.asyncio
async def test_open_slots_are_sorted_across_rules() -> None:
    tutor_id = uuid4()
    rules = [
        FakeRule(tutor_id=tutor_id, day_of_week=3, start_time=time(9, 0), end_time=time(10, 0)),
        FakeRule(tutor_id=tutor_id, day_of_week=1, start_time=time(15, 0), end_time=time(16, 0)),
    ]
    service, _ = _build_service(tutor_id, rules)

    slots = await service.list_open_slots(tutor_id, date(2024, 1, 1), date(2024, 1, 7))

    assert [slot.rule_id for slot in slots] == [rules[1].id, rules[0].id]


@pytest.mark.asyncio
async def test_slot_range_limit_is_enforced() -> None:
    tutor_id = uuid4()
    service, _ = _build_service(tutor_id, max_range_days=7)

    with pytest.raises(InvalidRangeException):
        await service.list_open_slots(tutor_id, date(2024, 1, 1), date(2024, 1, 8))
    with pytest.raises(InvalidRangeException):
        await service.list_open_slots(tutor_id, date(2024, 1, 8), date(2024, 1, 1))

    assert await service.list_open_slots(tutor_id, date(2024, 1, 1), date(2024, 1, 7)) == []


@pytest.mark.asyncio
async def test_describe_slots_renders_display_zone() -> None:
    tutor_id = uuid4()
    rule = FakeRule(tutor_id=tutor_id, day_of_week=1, start_time=time(9, 0), end_time=time(10, 0))
    service, _ = _build_service(tutor_id, [rule])
    slots = await service.list_open_slots(tutor_id, date(2024, 1, 1), date(2024, 1, 1))

    in_berlin = await service.describe_slots(tutor_id, slots, "Europe/Berlin")
    in_tutor_zone = await service.describe_slots(tutor_id, slots, None)

    assert in_berlin[0].start_at == datetime(2024, 1, 1, 14, 0, tzinfo=UTC)
    assert in_berlin[0].local_start_at.hour == 15
    assert in_berlin[0].timezone == "Europe/Berlin"
    assert in_tutor_zone[0].local_start_at.hour == 9
    assert in_tutor_zone[0].timezone == "America/New_York"

    with pytest.raises(InvalidRangeException):
        await service.describe_slots(tutor_id, slots, "Nowhere/City")
