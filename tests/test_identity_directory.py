from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from fastapi import HTTPException

from tutorhub.core.enums import RoleEnum
from tutorhub.core.security import create_access_token
from tutorhub.modules.identity.service import IdentityService, UserDirectory, require_roles
from tutorhub.shared.exceptions import NotFoundException, UnauthorizedException


@dataclass
class FakeUser:
    role: SimpleNamespace
    timezone: str = "Europe/Berlin"
    is_active: bool = True
    tutor_profile: SimpleNamespace | None = None
    id: UUID = field(default_factory=uuid4)


class FakeIdentityRepository:
    def __init__(self, users: list[FakeUser]) -> None:
        self.users = {user.id: user for user in users}
        self.roles: list[RoleEnum] = [RoleEnum.STUDENT]

    async def get_user_by_id(self, user_id: UUID) -> FakeUser | None:
        return self.users.get(user_id)

    async def get_role_by_name(self, role_name: RoleEnum):
        return role_name if role_name in self.roles else None

    async def create_role(self, role_name: RoleEnum):
        self.roles.append(role_name)
        return role_name


def _user(role: RoleEnum, **kwargs) -> FakeUser:
    return FakeUser(role=SimpleNamespace(name=role), **kwargs)


@pytest.mark.asyncio
async def test_ensure_default_roles_creates_missing_only() -> None:
    repository = FakeIdentityRepository([])

    await IdentityService(repository).ensure_default_roles()
    await IdentityService(repository).ensure_default_roles()

    assert sorted(repository.roles) == sorted([RoleEnum.STUDENT, RoleEnum.TUTOR, RoleEnum.ADMIN])


@pytest.mark.asyncio
async def test_access_token_resolves_active_user() -> None:
    user = _user(RoleEnum.STUDENT)
    service = IdentityService(FakeIdentityRepository([user]))

    resolved = await service.get_user_from_access_token(create_access_token(str(user.id), role="student"))

    assert resolved is user


@pytest.mark.asyncio
async def test_access_token_rejections() -> None:
    inactive = _user(RoleEnum.STUDENT, is_active=False)
    service = IdentityService(FakeIdentityRepository([inactive]))

    with pytest.raises(UnauthorizedException):
        await service.get_user_from_access_token(create_access_token(str(inactive.id)))
    with pytest.raises(UnauthorizedException):
        await service.get_user_from_access_token(create_access_token(str(uuid4())))
    with pytest.raises(UnauthorizedException):
        await service.get_user_from_access_token(create_access_token("not-a-uuid"))
    with pytest.raises(UnauthorizedException):
        await service.get_user_from_access_token(create_access_token(str(inactive.id), type="refresh"))
    with pytest.raises(HTTPException) as exc:
        await service.get_user_from_access_token("garbage.token.value")
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_directory_returns_tutor_with_profile_rate() -> None:
    tutor = _user(
        RoleEnum.TUTOR,
        timezone="America/New_York",
        tutor_profile=SimpleNamespace(hourly_rate=Decimal("72.50"), currency="EUR"),
    )
    directory = UserDirectory(FakeIdentityRepository([tutor]), Decimal("50.00"))

    record = await directory.get_tutor(tutor.id)

    assert record.id == tutor.id
    assert record.timezone == "America/New_York"
    assert record.hourly_rate == Decimal("72.50")
    assert record.currency == "EUR"


@pytest.mark.asyncio
async def test_directory_falls_back_to_default_rate() -> None:
    tutor = _user(RoleEnum.TUTOR, tutor_profile=SimpleNamespace(hourly_rate=None, currency="USD"))
    bare_tutor = _user(RoleEnum.TUTOR)
    directory = UserDirectory(FakeIdentityRepository([tutor, bare_tutor]), Decimal("50.00"))

    assert (await directory.get_tutor(tutor.id)).hourly_rate == Decimal("50.00")
    assert (await directory.get_tutor(bare_tutor.id)).hourly_rate == Decimal("50.00")


@pytest.mark.asyncio
async def test_directory_checks_role_and_activity() -> None:
    student = _user(RoleEnum.STUDENT)
    inactive_tutor = _user(RoleEnum.TUTOR, is_active=False)
    directory = UserDirectory(FakeIdentityRepository([student, inactive_tutor]), Decimal("50.00"))

    with pytest.raises(NotFoundException):
        await directory.get_tutor(student.id)
    with pytest.raises(NotFoundException):
        await directory.get_tutor(inactive_tutor.id)
    with pytest.raises(NotFoundException):
        await directory.get_student(inactive_tutor.id)

    assert (await directory.get_student(student.id)).timezone == "Europe/Berlin"


@pytest.mark.asyncio
async def test_require_roles_rejects_other_roles() -> None:
    checker = require_roles(RoleEnum.TUTOR, RoleEnum.ADMIN)
    tutor = _user(RoleEnum.TUTOR)

    assert await checker(current_user=tutor) is tutor
    with pytest.raises(HTTPException) as exc:
        await checker(current_user=_user(RoleEnum.STUDENT))
    assert exc.value.status_code == 403
