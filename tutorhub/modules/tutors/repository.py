"""Tutors repository layer."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorhub.modules.tutors.models import TutorProfile


class TutorsRepository:
    """DB operations for tutor profiles."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_profile(
        self,
        user_id: UUID,
        display_name: str,
        hourly_rate: Decimal | None,
        currency: str = "USD",
        bio: str = "",
    ) -> TutorProfile:
        profile = TutorProfile(
            user_id=user_id,
            display_name=display_name,
            hourly_rate=hourly_rate,
            currency=currency,
            bio=bio,
        )
        self.session.add(profile)
        await self.session.flush()
        return profile

    async def get_profile_by_user_id(self, user_id: UUID) -> TutorProfile | None:
        stmt = select(TutorProfile).where(TutorProfile.user_id == user_id)
        return await self.session.scalar(stmt)
