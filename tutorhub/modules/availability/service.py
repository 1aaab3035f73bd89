"""Availability business logic: weekly rules and the open-slot view."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutorhub.core.config import get_settings
from tutorhub.core.database import get_db_session
from tutorhub.core.enums import RoleEnum
from tutorhub.modules.appointments.repository import AppointmentsRepository
from tutorhub.modules.availability.expander import Slot, expand
from tutorhub.modules.availability.models import WeeklyAvailabilityRule
from tutorhub.modules.availability.repository import AvailabilityRepository
from tutorhub.modules.availability.schemas import (
    SlotRead,
    WeeklyAvailabilityRuleCreate,
    WeeklyAvailabilityRuleUpdate,
)
from tutorhub.modules.identity.models import User
from tutorhub.modules.identity.service import UserDirectory, build_user_directory
from tutorhub.shared.exceptions import (
    ConflictException,
    InvalidRangeException,
    NotFoundException,
    UnauthorizedException,
)
from tutorhub.shared.time_conversion import GapResolutionEnum, Instant, load_zone, to_zoned_datetime

settings = get_settings()


class AvailabilityService:
    """Availability domain service."""

    def __init__(
        self,
        repository: AvailabilityRepository,
        appointments_repository: AppointmentsRepository,
        directory: UserDirectory,
        *,
        max_range_days: int = 92,
        gap_resolution: GapResolutionEnum = GapResolutionEnum.PRE_TRANSITION,
    ) -> None:
        self.repository = repository
        self.appointments_repository = appointments_repository
        self.directory = directory
        self.max_range_days = max_range_days
        self.gap_resolution = gap_resolution

    @staticmethod
    def _ensure_can_manage(tutor_id: UUID, actor: User) -> None:
        if actor.role.name != RoleEnum.ADMIN and actor.id != tutor_id:
            raise UnauthorizedException("Only the tutor or admin can manage availability")

    async def _ensure_no_overlap(
        self,
        tutor_id: UUID,
        day_of_week: int,
        start_time,
        end_time,
        exclude_rule_id: UUID | None = None,
    ) -> None:
        clash = await self.repository.find_overlapping_rule(
            tutor_id,
            day_of_week,
            start_time,
            end_time,
            exclude_rule_id=exclude_rule_id,
        )
        if clash is not None:
            raise ConflictException("Rule overlaps an existing active rule on the same day")

    async def create_rule(self, payload: WeeklyAvailabilityRuleCreate, actor: User) -> WeeklyAvailabilityRule:
        """Create weekly rule for a tutor (tutor themself or admin)."""
        tutor_id = payload.tutor_id or actor.id
        self._ensure_can_manage(tutor_id, actor)
        await self.directory.get_tutor(tutor_id)

        await self._ensure_no_overlap(tutor_id, payload.day_of_week, payload.start_time, payload.end_time)
        return await self.repository.create_rule(
            tutor_id=tutor_id,
            day_of_week=payload.day_of_week,
            start_time=payload.start_time,
            end_time=payload.end_time,
        )

    async def update_rule(
        self,
        rule_id: UUID,
        payload: WeeklyAvailabilityRuleUpdate,
        actor: User,
    ) -> WeeklyAvailabilityRule:
        """Apply partial update; disabling is the only way to retire a rule."""
        rule = await self.repository.get_rule_by_id(rule_id)
        if rule is None:
            raise NotFoundException("Availability rule not found")
        self._ensure_can_manage(rule.tutor_id, actor)

        changes = payload.model_dump(exclude_unset=True)
        start_time = changes.get("start_time", rule.start_time)
        end_time = changes.get("end_time", rule.end_time)
        is_active = changes.get("is_active", rule.is_active)
        if start_time >= end_time:
            raise InvalidRangeException("start_time must be before end_time")
        if is_active:
            await self._ensure_no_overlap(
                rule.tutor_id,
                rule.day_of_week,
                start_time,
                end_time,
                exclude_rule_id=rule.id,
            )

        rule.start_time = start_time
        rule.end_time = end_time
        rule.is_active = is_active
        return await self.repository.save(rule)

    async def list_rules(self, tutor_id: UUID) -> list[WeeklyAvailabilityRule]:
        """List all rules of a tutor, active and disabled."""
        await self.directory.get_tutor(tutor_id)
        return await self.repository.list_rules_for_tutor(tutor_id)

    def _validate_range(self, range_start: date, range_end: date) -> None:
        if range_start > range_end:
            raise InvalidRangeException("range_start must not be after range_end")
        if (range_end - range_start).days + 1 > self.max_range_days:
            raise InvalidRangeException(f"Date range must not exceed {self.max_range_days} days")

    async def list_open_slots(self, tutor_id: UUID, range_start: date, range_end: date) -> list[Slot]:
        """Expand active rules over the range and drop slots already booked."""
        self._validate_range(range_start, range_end)
        tutor = await self.directory.get_tutor(tutor_id)
        rules = await self.repository.list_rules_for_tutor(tutor_id, active_only=True)

        candidates: list[Slot] = []
        for rule in rules:
            candidates.extend(expand(rule, tutor.timezone, range_start, range_end, self.gap_resolution))
        if not candidates:
            return []
        candidates.sort()

        window_end = max(slot.end for slot in candidates)
        booked = await self.appointments_repository.list_active_between(
            tutor_id,
            candidates[0].start.as_datetime(),
            window_end.as_datetime(),
        )
        intervals = [(Instant(item.start_at), Instant(item.end_at)) for item in booked]
        return [
            slot
            for slot in candidates
            if not any(slot.overlaps(start, end) for start, end in intervals)
        ]

    async def describe_slots(
        self,
        tutor_id: UUID,
        slots: list[Slot],
        display_timezone: str | None,
    ) -> list[SlotRead]:
        """Render slots with UTC bounds and local bounds in the requested (or tutor's) zone."""
        zone_name = display_timezone
        if zone_name is None:
            zone_name = (await self.directory.get_tutor(tutor_id)).timezone
        zone = load_zone(zone_name)
        return [
            SlotRead(
                tutor_id=slot.tutor_id,
                rule_id=slot.rule_id,
                start_at=slot.start.as_datetime(),
                end_at=slot.end.as_datetime(),
                timezone=zone_name,
                local_start_at=to_zoned_datetime(slot.start, zone),
                local_end_at=to_zoned_datetime(slot.end, zone),
            )
            for slot in slots
        ]


async def get_availability_service(session: AsyncSession = Depends(get_db_session)) -> AvailabilityService:
    """Dependency provider for availability service."""
    return AvailabilityService(
        AvailabilityRepository(session),
        AppointmentsRepository(session),
        build_user_directory(session),
        max_range_days=settings.availability_max_range_days,
        gap_resolution=GapResolutionEnum(settings.dst_gap_resolution),
    )
