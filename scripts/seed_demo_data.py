"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import time
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from tutorhub.core.config import get_settings
from tutorhub.core.database import SessionLocal, close_engine
from tutorhub.core.enums import RoleEnum
from tutorhub.modules.availability.repository import AvailabilityRepository
from tutorhub.modules.identity.models import User
from tutorhub.modules.identity.repository import IdentityRepository
from tutorhub.modules.tutors.repository import TutorsRepository

DEMO_ADMIN_EMAIL = "demo-admin@tutorhub.dev"
DEMO_TUTOR_EMAIL = "demo-tutor@tutorhub.dev"
DEMO_STUDENT_EMAIL = "demo-student@tutorhub.dev"

DEMO_TUTOR_TIMEZONE = "America/New_York"
DEMO_STUDENT_TIMEZONE = "Europe/Berlin"
DEMO_TUTOR_HOURLY_RATE = Decimal("45.00")

# (day_of_week, start, end); 0 = Sunday.
DEMO_RULES = (
    (1, time(9, 0), time(10, 0)),
    (1, time(14, 0), time(15, 30)),
    (3, time(9, 0), time(10, 0)),
    (5, time(17, 0), time(18, 0)),
)


@dataclass(slots=True)
class SeedStats:
    roles_created: int = 0
    users_created: int = 0
    users_updated: int = 0
    tutor_profile_created: bool = False
    rules_created: int = 0


async def _ensure_roles(repository: IdentityRepository) -> int:
    created = 0
    for role_name in (RoleEnum.STUDENT, RoleEnum.TUTOR, RoleEnum.ADMIN):
        if await repository.get_role_by_name(role_name) is None:
            await repository.create_role(role_name)
            created += 1
    return created


async def _ensure_user(
    repository: IdentityRepository,
    *,
    email: str,
    full_name: str,
    role_name: RoleEnum,
    timezone: str,
) -> tuple[User, bool]:
    role = await repository.get_role_by_name(role_name)
    if role is None:
        raise RuntimeError(f"Role {role_name} was not found after ensure_roles")

    user = await repository.get_user_by_email(email)
    if user is None:
        user = await repository.create_user(
            email=email,
            full_name=full_name,
            timezone=timezone,
            role_id=role.id,
        )
        return user, True

    user.role_id = role.id
    user.full_name = full_name
    user.timezone = timezone
    user.is_active = True
    await repository.session.flush()
    await repository.session.refresh(user, attribute_names=["role"])
    return user, False


async def _ensure_tutor_profile(session: AsyncSession, tutor_user: User) -> bool:
    repository = TutorsRepository(session)
    profile = await repository.get_profile_by_user_id(tutor_user.id)
    if profile is None:
        await repository.create_profile(
            user_id=tutor_user.id,
            display_name="Demo Tutor",
            hourly_rate=DEMO_TUTOR_HOURLY_RATE,
            bio="Tutor account for demo scenarios: algebra, calculus and exam prep.",
        )
        return True

    profile.display_name = "Demo Tutor"
    profile.hourly_rate = DEMO_TUTOR_HOURLY_RATE
    await session.flush()
    return False


async def _ensure_demo_rules(session: AsyncSession, tutor_user: User) -> int:
    repository = AvailabilityRepository(session)
    created = 0
    for day_of_week, start_time, end_time in DEMO_RULES:
        clash = await repository.find_overlapping_rule(tutor_user.id, day_of_week, start_time, end_time)
        if clash is not None:
            continue
        await repository.create_rule(
            tutor_id=tutor_user.id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
        )
        created += 1
    return created


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            identity = IdentityRepository(session)
            stats.roles_created = await _ensure_roles(identity)

            _, admin_created = await _ensure_user(
                identity,
                email=DEMO_ADMIN_EMAIL,
                full_name="Demo Admin",
                role_name=RoleEnum.ADMIN,
                timezone="UTC",
            )
            tutor_user, tutor_created = await _ensure_user(
                identity,
                email=DEMO_TUTOR_EMAIL,
                full_name="Demo Tutor",
                role_name=RoleEnum.TUTOR,
                timezone=DEMO_TUTOR_TIMEZONE,
            )
            _, student_created = await _ensure_user(
                identity,
                email=DEMO_STUDENT_EMAIL,
                full_name="Demo Student",
                role_name=RoleEnum.STUDENT,
                timezone=DEMO_STUDENT_TIMEZONE,
            )

            stats.users_created = sum([admin_created, tutor_created, student_created])
            stats.users_updated = 3 - stats.users_created

            stats.tutor_profile_created = await _ensure_tutor_profile(session, tutor_user)
            stats.rules_created = await _ensure_demo_rules(session, tutor_user)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for TutorHub (users, tutor profile, "
            "weekly availability rules)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Roles created: {stats.roles_created}")
    print(f"- Users created: {stats.users_created}")
    print(f"- Users updated: {stats.users_updated}")
    print(f"- Tutor profile created: {stats.tutor_profile_created}")
    print(f"- Availability rules created: {stats.rules_created}")
    print("")
    print("Demo accounts (non-production only; tokens come from the identity provider):")
    print(f"- admin:   {DEMO_ADMIN_EMAIL}")
    print(f"- tutor:   {DEMO_TUTOR_EMAIL} ({DEMO_TUTOR_TIMEZONE})")
    print(f"- student: {DEMO_STUDENT_EMAIL} ({DEMO_STUDENT_TIMEZONE})")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
