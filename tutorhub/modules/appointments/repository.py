"""Appointments repository layer."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorhub.core.enums import AppointmentStatusEnum
from tutorhub.modules.appointments.models import TUTOR_NO_OVERLAP_CONSTRAINT, Appointment
from tutorhub.shared.exceptions import ConflictException, TransientStorageError
from tutorhub.shared.pagination import PaginationParams

EXCLUSION_VIOLATION = "23P01"
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03", "57014"})
IDEMPOTENCY_KEY_CONSTRAINT = "uq_appointments_idempotency_key"


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _constraint_name(exc: DBAPIError) -> str:
    orig = getattr(exc, "orig", None)
    for source in (getattr(orig, "diag", None), getattr(orig, "__cause__", None)):
        name = getattr(source, "constraint_name", None)
        if name:
            return str(name)

    text = str(orig)
    for name in (TUTOR_NO_OVERLAP_CONSTRAINT, IDEMPOTENCY_KEY_CONSTRAINT):
        if name in text:
            return name
    return ""


def is_overlap_violation(exc: IntegrityError) -> bool:
    return (
        _sqlstate(exc) == EXCLUSION_VIOLATION
        or _constraint_name(exc) == TUTOR_NO_OVERLAP_CONSTRAINT
    )


def is_idempotency_key_violation(exc: IntegrityError) -> bool:
    return _constraint_name(exc) == IDEMPOTENCY_KEY_CONSTRAINT


def is_transient_error(exc: DBAPIError) -> bool:
    """Connection loss, serialization failure, deadlock or lock timeout."""
    if exc.connection_invalidated:
        return True
    sqlstate = _sqlstate(exc) or ""
    return sqlstate in TRANSIENT_SQLSTATES or sqlstate.startswith("08")


def _active_overlap_filter(tutor_id: UUID, start_at: datetime, end_at: datetime):
    return (
        Appointment.tutor_id == tutor_id,
        Appointment.status != AppointmentStatusEnum.CANCELLED,
        Appointment.start_at < end_at,
        Appointment.end_at > start_at,
    )


class AppointmentsRepository:
    """DB operations for appointments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Commit on success; roll back and classify storage failures otherwise."""
        try:
            yield
            await self.session.commit()
        except DBAPIError as exc:
            await self.session.rollback()
            if is_transient_error(exc):
                raise TransientStorageError(str(exc.orig)) from exc
            raise
        except BaseException:
            await self.session.rollback()
            raise

    async def find_overlapping(
        self,
        tutor_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> Appointment | None:
        stmt = select(Appointment).where(*_active_overlap_filter(tutor_id, start_at, end_at)).limit(1)
        return await self.session.scalar(stmt)

    async def insert_if_no_overlap(
        self,
        *,
        tutor_id: UUID,
        student_id: UUID,
        subject: str,
        start_at: datetime,
        end_at: datetime,
        notes: str | None,
        idempotency_key: str | None,
    ) -> Appointment:
        try:
            async with self.session.begin_nested():
                if await self.find_overlapping(tutor_id, start_at, end_at) is not None:
                    raise ConflictException("Tutor already has an appointment in this interval")
                appointment = Appointment(
                    tutor_id=tutor_id,
                    student_id=student_id,
                    subject=subject,
                    start_at=start_at,
                    end_at=end_at,
                    status=AppointmentStatusEnum.SCHEDULED,
                    notes=notes,
                    idempotency_key=idempotency_key,
                )
                self.session.add(appointment)
                await self.session.flush()
        except IntegrityError as exc:
            if is_overlap_violation(exc):
                raise ConflictException("Tutor already has an appointment in this interval") from exc
            if is_idempotency_key_violation(exc):
                raise ConflictException("Idempotency key was already used") from exc
            raise
        except DBAPIError as exc:
            if is_transient_error(exc):
                raise TransientStorageError(str(exc.orig)) from exc
            raise
        return appointment

    async def get_by_idempotency_key(self, idempotency_key: str) -> Appointment | None:
        stmt = select(Appointment).where(Appointment.idempotency_key == idempotency_key)
        return await self.session.scalar(stmt)

    async def get_appointment_by_id(self, appointment_id: UUID) -> Appointment | None:
        stmt = select(Appointment).where(Appointment.id == appointment_id)
        return await self.session.scalar(stmt)

    async def get_appointment_for_update(self, appointment_id: UUID) -> Appointment | None:
        stmt = (
            select(Appointment)
            .where(Appointment.id == appointment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def list_active_between(
        self,
        tutor_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> list[Appointment]:
        stmt = (
            select(Appointment)
            .where(*_active_overlap_filter(tutor_id, start_at, end_at))
            .order_by(Appointment.start_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_for_user(
        self,
        user_id: UUID | None,
        params: PaginationParams,
    ) -> tuple[list[Appointment], int]:
        base_stmt: Select[tuple[Appointment]] = select(Appointment)
        if user_id is not None:
            base_stmt = base_stmt.where(
                or_(Appointment.tutor_id == user_id, Appointment.student_id == user_id),
            )
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = params.apply(base_stmt.order_by(Appointment.start_at.desc()))
        items = list((await self.session.scalars(stmt)).all())
        return items, total

    async def save(self, appointment: Appointment) -> Appointment:
        await self.session.flush()
        return appointment
