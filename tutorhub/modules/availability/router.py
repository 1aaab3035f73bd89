"""Availability API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from tutorhub.core.enums import RoleEnum
from tutorhub.modules.availability.schemas import (
    SlotRead,
    WeeklyAvailabilityRuleCreate,
    WeeklyAvailabilityRuleRead,
    WeeklyAvailabilityRuleUpdate,
)
from tutorhub.modules.availability.service import AvailabilityService, get_availability_service
from tutorhub.modules.identity.service import get_current_user, require_roles

router = APIRouter(prefix="/availability", tags=["availability"])


@router.post("/rules", response_model=WeeklyAvailabilityRuleRead, status_code=status.HTTP_201_CREATED)
async def create_rule(
    payload: WeeklyAvailabilityRuleCreate,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(require_roles(RoleEnum.TUTOR, RoleEnum.ADMIN)),
) -> WeeklyAvailabilityRuleRead:
    """Create weekly availability rule."""
    rule = await service.create_rule(payload, current_user)
    return WeeklyAvailabilityRuleRead.model_validate(rule)


@router.patch("/rules/{rule_id}", response_model=WeeklyAvailabilityRuleRead)
async def update_rule(
    rule_id: UUID,
    payload: WeeklyAvailabilityRuleUpdate,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(require_roles(RoleEnum.TUTOR, RoleEnum.ADMIN)),
) -> WeeklyAvailabilityRuleRead:
    """Update or disable weekly availability rule."""
    rule = await service.update_rule(rule_id, payload, current_user)
    return WeeklyAvailabilityRuleRead.model_validate(rule)


@router.get("/tutors/{tutor_id}/rules", response_model=list[WeeklyAvailabilityRuleRead])
async def list_rules(
    tutor_id: UUID,
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> list[WeeklyAvailabilityRuleRead]:
    """List tutor's weekly availability rules."""
    rules = await service.list_rules(tutor_id)
    return [WeeklyAvailabilityRuleRead.model_validate(rule) for rule in rules]


@router.get("/tutors/{tutor_id}/slots", response_model=list[SlotRead])
async def list_open_slots(
    tutor_id: UUID,
    range_start: date = Query(),
    range_end: date = Query(),
    timezone: str | None = Query(default=None, max_length=64),
    service: AvailabilityService = Depends(get_availability_service),
    current_user=Depends(get_current_user),
) -> list[SlotRead]:
    """List bookable slots of a tutor between two dates, both inclusive."""
    slots = await service.list_open_slots(tutor_id, range_start, range_end)
    return await service.describe_slots(tutor_id, slots, timezone)
