"""Appointments API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Header, status

from tutorhub.core.enums import RoleEnum
from tutorhub.modules.appointments.schemas import AppointmentCreate, AppointmentRead, AppointmentUpdate
from tutorhub.modules.appointments.service import BookingArbiter, get_booking_arbiter
from tutorhub.modules.identity.service import get_current_user
from tutorhub.shared.exceptions import InvalidRangeException
from tutorhub.shared.pagination import Page, build_page, get_pagination_params
from tutorhub.shared.time_conversion import Instant

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=AppointmentRead, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    payload: AppointmentCreate,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=128),
    service: BookingArbiter = Depends(get_booking_arbiter),
    current_user=Depends(get_current_user),
) -> AppointmentRead:
    """Book a tutor for an absolute time interval."""
    student_id = payload.student_id
    if student_id is None:
        if current_user.role.name != RoleEnum.STUDENT:
            raise InvalidRangeException("student_id is required unless a student books for themself")
        student_id = current_user.id

    appointment = await service.book(
        tutor_id=payload.tutor_id,
        student_id=student_id,
        subject=payload.subject,
        start=Instant(payload.start_at),
        end=Instant(payload.end_at),
        actor=current_user,
        notes=payload.notes,
        idempotency_key=idempotency_key,
    )
    return AppointmentRead.model_validate(appointment)


@router.get("/my", response_model=Page[AppointmentRead])
async def list_my_appointments(
    pagination=Depends(get_pagination_params),
    service: BookingArbiter = Depends(get_booking_arbiter),
    current_user=Depends(get_current_user),
) -> Page[AppointmentRead]:
    """List appointments of current user."""
    items, total = await service.list_my_appointments(current_user, pagination)
    return build_page([AppointmentRead.model_validate(item) for item in items], total, pagination)


@router.get("/{appointment_id}", response_model=AppointmentRead)
async def get_appointment(
    appointment_id: UUID,
    service: BookingArbiter = Depends(get_booking_arbiter),
    current_user=Depends(get_current_user),
) -> AppointmentRead:
    """Return one appointment."""
    appointment = await service.get_appointment(appointment_id, current_user)
    return AppointmentRead.model_validate(appointment)


@router.patch("/{appointment_id}", response_model=AppointmentRead)
async def update_appointment(
    appointment_id: UUID,
    payload: AppointmentUpdate,
    service: BookingArbiter = Depends(get_booking_arbiter),
    current_user=Depends(get_current_user),
) -> AppointmentRead:
    """Change appointment status or notes."""
    appointment = await service.update_appointment(appointment_id, payload, current_user)
    return AppointmentRead.model_validate(appointment)
