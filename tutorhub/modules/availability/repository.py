"""Availability repository layer."""

from __future__ import annotations

from datetime import time
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorhub.modules.availability.models import WeeklyAvailabilityRule


class AvailabilityRepository:
    """DB operations for weekly availability rules."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_rule(
        self,
        tutor_id: UUID,
        day_of_week: int,
        start_time: time,
        end_time: time,
    ) -> WeeklyAvailabilityRule:
        rule = WeeklyAvailabilityRule(
            tutor_id=tutor_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_active=True,
        )
        self.session.add(rule)
        await self.session.flush()
        return rule

    async def get_rule_by_id(self, rule_id: UUID) -> WeeklyAvailabilityRule | None:
        stmt = select(WeeklyAvailabilityRule).where(WeeklyAvailabilityRule.id == rule_id)
        return await self.session.scalar(stmt)

    async def list_rules_for_tutor(
        self,
        tutor_id: UUID,
        *,
        active_only: bool = False,
    ) -> list[WeeklyAvailabilityRule]:
        stmt = select(WeeklyAvailabilityRule).where(WeeklyAvailabilityRule.tutor_id == tutor_id)
        if active_only:
            stmt = stmt.where(WeeklyAvailabilityRule.is_active.is_(True))
        stmt = stmt.order_by(WeeklyAvailabilityRule.day_of_week.asc(), WeeklyAvailabilityRule.start_time.asc())
        return list((await self.session.scalars(stmt)).all())

    async def find_overlapping_rule(
        self,
        tutor_id: UUID,
        day_of_week: int,
        start_time: time,
        end_time: time,
        exclude_rule_id: UUID | None = None,
    ) -> WeeklyAvailabilityRule | None:
        stmt = select(WeeklyAvailabilityRule).where(
            WeeklyAvailabilityRule.tutor_id == tutor_id,
            WeeklyAvailabilityRule.day_of_week == day_of_week,
            WeeklyAvailabilityRule.is_active.is_(True),
            WeeklyAvailabilityRule.start_time < end_time,
            WeeklyAvailabilityRule.end_time > start_time,
        )
        if exclude_rule_id is not None:
            stmt = stmt.where(WeeklyAvailabilityRule.id != exclude_rule_id)
        return await self.session.scalar(stmt.limit(1))

    async def save(self, rule: WeeklyAvailabilityRule) -> WeeklyAvailabilityRule:
        await self.session.flush()
        return rule
