"""Identity business logic layer."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from tutorhub.core.config import get_settings
from tutorhub.core.database import get_db_session
from tutorhub.core.enums import RoleEnum
from tutorhub.core.security import bearer_scheme, decode_token
from tutorhub.modules.identity.models import User
from tutorhub.modules.identity.repository import IdentityRepository
from tutorhub.modules.identity.schemas import StudentRecord, TutorRecord
from tutorhub.shared.exceptions import NotFoundException, UnauthorizedException

settings = get_settings()


class IdentityService:
    """Identity domain service."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def ensure_default_roles(self) -> None:
        """Ensure all default roles exist."""
        for role_name in (RoleEnum.STUDENT, RoleEnum.TUTOR, RoleEnum.ADMIN):
            role = await self.repository.get_role_by_name(role_name)
            if role is None:
                await self.repository.create_role(role_name)

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise UnauthorizedException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise UnauthorizedException("Token subject is missing")

        try:
            user_id = UUID(subject)
        except ValueError as exc:
            raise UnauthorizedException("Token subject is malformed") from exc

        user = await self.repository.get_user_by_id(user_id)
        if user is None:
            raise UnauthorizedException("User not found")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")

        return user


class UserDirectory:
    """Tutor and student lookup used by scheduling and ledger services."""

    def __init__(self, repository: IdentityRepository, default_hourly_rate: Decimal) -> None:
        self.repository = repository
        self.default_hourly_rate = default_hourly_rate

    async def _get_active_user(self, user_id: UUID, role: RoleEnum) -> User | None:
        user = await self.repository.get_user_by_id(user_id)
        if user is None or not user.is_active or user.role.name != role:
            return None
        return user

    async def get_tutor(self, tutor_id: UUID) -> TutorRecord:
        """Return tutor timezone and hourly rate."""
        user = await self._get_active_user(tutor_id, RoleEnum.TUTOR)
        if user is None:
            raise NotFoundException("Tutor not found")

        profile = user.tutor_profile
        hourly_rate = self.default_hourly_rate
        currency = "USD"
        if profile is not None:
            currency = profile.currency
            if profile.hourly_rate is not None:
                hourly_rate = profile.hourly_rate
        return TutorRecord(id=user.id, timezone=user.timezone, hourly_rate=hourly_rate, currency=currency)

    async def get_student(self, student_id: UUID) -> StudentRecord:
        """Return student timezone."""
        user = await self._get_active_user(student_id, RoleEnum.STUDENT)
        if user is None:
            raise NotFoundException("Student not found")
        return StudentRecord(id=user.id, timezone=user.timezone)


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(credentials.credentials)


def require_roles(*roles: RoleEnum):
    """Dependency factory for role-based access."""

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role.name not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted for your role",
            )
        return current_user

    return _checker


def build_user_directory(session: AsyncSession) -> UserDirectory:
    """Build directory bound to the given session."""
    return UserDirectory(IdentityRepository(session), settings.tutor_default_hourly_rate)
