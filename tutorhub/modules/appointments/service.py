"""Appointment business logic: race-safe booking and status lifecycle."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutorhub.core.config import get_settings
from tutorhub.core.database import get_db_session
from tutorhub.core.enums import AppointmentStatusEnum, RoleEnum
from tutorhub.core.locks import KeyedLock, get_keyed_lock
from tutorhub.core.metrics import BOOKING_CRITICAL_SECTION_SECONDS, record_booking_outcome
from tutorhub.modules.appointments.models import Appointment
from tutorhub.modules.appointments.repository import AppointmentsRepository
from tutorhub.modules.appointments.schemas import AppointmentUpdate
from tutorhub.modules.audit.repository import AuditRepository
from tutorhub.modules.identity.models import User
from tutorhub.modules.identity.service import UserDirectory, build_user_directory
from tutorhub.modules.ledger.service import LedgerAccumulator, build_ledger_accumulator
from tutorhub.modules.notifications.events import AppointmentBooked, AppointmentCancelled
from tutorhub.modules.notifications.service import NotificationTrigger, OutboxNotificationTrigger
from tutorhub.shared.exceptions import (
    ConflictException,
    InvalidRangeException,
    InvalidStatusTransitionException,
    NotFoundException,
    ServiceUnavailableException,
    TransientStorageError,
    UnauthorizedException,
)
from tutorhub.shared.pagination import PaginationParams
from tutorhub.shared.time_conversion import Instant

settings = get_settings()
logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AppointmentStatusEnum, frozenset[AppointmentStatusEnum]] = {
    AppointmentStatusEnum.SCHEDULED: frozenset(
        {AppointmentStatusEnum.CONFIRMED, AppointmentStatusEnum.CANCELLED},
    ),
    AppointmentStatusEnum.CONFIRMED: frozenset(
        {AppointmentStatusEnum.COMPLETED, AppointmentStatusEnum.CANCELLED},
    ),
    AppointmentStatusEnum.COMPLETED: frozenset(),
    AppointmentStatusEnum.CANCELLED: frozenset(),
}

OVERLAP_MESSAGE = "Tutor already has an appointment in this interval"


def ensure_transition(current: AppointmentStatusEnum, target: AppointmentStatusEnum) -> None:
    """Raise if ``current`` cannot move to ``target``."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionException(
            f"Cannot change appointment status from {current.value} to {target.value}",
        )


def tutor_lock_key(tutor_id: UUID) -> str:
    return f"tutor:{tutor_id}"


class BookingArbiter:
    """Appointments domain service.

    ``book`` serializes all attempts for one tutor through a keyed lock and
    inserts under a storage exclusion constraint, so two overlapping
    bookings can never both commit even if the lock is bypassed.
    """

    def __init__(
        self,
        repository: AppointmentsRepository,
        directory: UserDirectory,
        ledger: LedgerAccumulator,
        audit_repository: AuditRepository,
        notifications: NotificationTrigger,
        keyed_lock: KeyedLock,
        *,
        lock_timeout_seconds: float = 10.0,
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
    ) -> None:
        self.repository = repository
        self.directory = directory
        self.ledger = ledger
        self.audit_repository = audit_repository
        self.notifications = notifications
        self.keyed_lock = keyed_lock
        self.lock_timeout_seconds = lock_timeout_seconds
        self.retry_attempts = retry_attempts
        self.retry_backoff_seconds = retry_backoff_seconds

    async def book(
        self,
        *,
        tutor_id: UUID,
        student_id: UUID,
        subject: str,
        start: Instant,
        end: Instant,
        actor: User,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> Appointment:
        """Create an appointment unless the tutor is already booked in [start, end)."""
        if end <= start:
            raise InvalidRangeException("Appointment end must be after start")

        await self.directory.get_tutor(tutor_id)
        await self.directory.get_student(student_id)

        if actor.role.name != RoleEnum.ADMIN and actor.id not in (tutor_id, student_id):
            raise UnauthorizedException("Only the student, the tutor or admin can book this appointment")

        start_at = start.as_datetime()
        end_at = end.as_datetime()
        request = (tutor_id, student_id, subject, start_at, end_at)

        if idempotency_key:
            existing = await self.repository.get_by_idempotency_key(idempotency_key)
            if existing is not None:
                return self._replay(existing, request)

        clash = await self.repository.find_overlapping(tutor_id, start_at, end_at)
        if clash is not None:
            # The original request may have committed since the key lookup above.
            if idempotency_key and clash.idempotency_key == idempotency_key:
                return self._replay(clash, request)
            record_booking_outcome("conflict")
            logger.info("Booking rejected before lock: tutor %s busy at %s", tutor_id, start_at)
            raise ConflictException(OVERLAP_MESSAGE)

        try:
            async with asyncio.timeout(self.lock_timeout_seconds):
                async with self.keyed_lock.hold(tutor_lock_key(tutor_id)):
                    started_at = perf_counter()
                    try:
                        return await self._commit_booking(request, notes, idempotency_key)
                    finally:
                        BOOKING_CRITICAL_SECTION_SECONDS.observe(perf_counter() - started_at)
        except TimeoutError as exc:
            record_booking_outcome("unavailable")
            logger.error(
                "Booking for tutor %s timed out after %.2fs",
                tutor_id,
                self.lock_timeout_seconds,
            )
            raise ServiceUnavailableException("Booking timed out, please retry") from exc

    def _replay(self, existing: Appointment, request: tuple) -> Appointment:
        stored = (
            existing.tutor_id,
            existing.student_id,
            existing.subject,
            existing.start_at,
            existing.end_at,
        )
        if stored != request:
            raise ConflictException("Idempotency key was already used for a different booking")
        record_booking_outcome("replayed")
        logger.info("Replayed appointment %s for idempotency key", existing.id)
        return existing

    async def _commit_booking(
        self,
        request: tuple,
        notes: str | None,
        idempotency_key: str | None,
    ) -> Appointment:
        tutor_id, student_id, subject, start_at, end_at = request

        if idempotency_key:
            existing = await self.repository.get_by_idempotency_key(idempotency_key)
            if existing is not None:
                return self._replay(existing, request)

        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.repository.transaction():
                    appointment = await self.repository.insert_if_no_overlap(
                        tutor_id=tutor_id,
                        student_id=student_id,
                        subject=subject,
                        start_at=start_at,
                        end_at=end_at,
                        notes=notes,
                        idempotency_key=idempotency_key,
                    )
                    await self.notifications.publish(
                        AppointmentBooked(
                            appointment_id=appointment.id,
                            tutor_id=tutor_id,
                            student_id=student_id,
                            subject=subject,
                            start_at=start_at,
                            end_at=end_at,
                        ),
                    )
            except ConflictException:
                record_booking_outcome("conflict")
                logger.info("Booking rejected: tutor %s busy at %s", tutor_id, start_at)
                raise
            except TransientStorageError as exc:
                if attempt >= self.retry_attempts:
                    record_booking_outcome("unavailable")
                    logger.error(
                        "Booking for tutor %s failed after %s attempts: %s",
                        tutor_id,
                        attempt,
                        exc,
                    )
                    raise ServiceUnavailableException("Storage is temporarily unavailable, please retry") from exc
                logger.warning(
                    "Transient storage error on booking attempt %s for tutor %s: %s",
                    attempt,
                    tutor_id,
                    exc,
                )
                await asyncio.sleep(self.retry_backoff_seconds * attempt)
                continue

            record_booking_outcome("created")
            logger.info("Created appointment %s for tutor %s at %s", appointment.id, tutor_id, start_at)
            return appointment

    @staticmethod
    def _authorize_transition(
        appointment: Appointment,
        target: AppointmentStatusEnum,
        actor: User,
    ) -> None:
        if actor.role.name == RoleEnum.ADMIN:
            return
        if target == AppointmentStatusEnum.CANCELLED:
            allowed = (appointment.tutor_id, appointment.student_id)
        else:
            allowed = (appointment.tutor_id,)
        if actor.id not in allowed:
            raise UnauthorizedException(f"Not allowed to mark appointment as {target.value}")

    async def update_appointment(
        self,
        appointment_id: UUID,
        payload: AppointmentUpdate,
        actor: User,
    ) -> Appointment:
        """Apply a status transition and/or notes change."""
        appointment = await self.repository.get_appointment_for_update(appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found")

        is_participant = actor.id in (appointment.tutor_id, appointment.student_id)
        if actor.role.name != RoleEnum.ADMIN and not is_participant:
            raise UnauthorizedException("Only participants or admin can update appointment")

        changes = payload.model_dump(exclude_unset=True)
        target = changes.get("status")
        if target is not None and target != appointment.status:
            self._authorize_transition(appointment, target, actor)
            ensure_transition(appointment.status, target)
            previous = appointment.status
            appointment.status = target

            if target == AppointmentStatusEnum.COMPLETED:
                tutor = await self.directory.get_tutor(appointment.tutor_id)
                await self.ledger.on_completed(appointment, tutor.hourly_rate)
            elif target == AppointmentStatusEnum.CANCELLED:
                await self.notifications.publish(
                    AppointmentCancelled(
                        appointment_id=appointment.id,
                        tutor_id=appointment.tutor_id,
                        student_id=appointment.student_id,
                        cancelled_by=actor.id,
                        start_at=appointment.start_at,
                        end_at=appointment.end_at,
                    ),
                )

            await self.audit_repository.create_audit_log(
                actor_id=actor.id,
                action="appointment.status.changed",
                entity_type="appointment",
                entity_id=str(appointment.id),
                payload={"from": previous.value, "to": target.value},
            )
            logger.info("Appointment %s moved from %s to %s", appointment.id, previous.value, target.value)

        if "notes" in changes:
            appointment.notes = changes["notes"]

        return await self.repository.save(appointment)

    async def get_appointment(self, appointment_id: UUID, actor: User) -> Appointment:
        """Return an appointment visible to its participants or an admin."""
        appointment = await self.repository.get_appointment_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found")
        if actor.role.name != RoleEnum.ADMIN and actor.id not in (appointment.tutor_id, appointment.student_id):
            raise UnauthorizedException("Only participants or admin can view appointment")
        return appointment

    async def list_my_appointments(
        self,
        actor: User,
        params: PaginationParams,
    ) -> tuple[list[Appointment], int]:
        """List appointments of current user (all of them for admin)."""
        user_id = None if actor.role.name == RoleEnum.ADMIN else actor.id
        return await self.repository.list_for_user(user_id, params)


async def get_booking_arbiter(session: AsyncSession = Depends(get_db_session)) -> BookingArbiter:
    """Dependency provider for appointments service."""
    audit_repository = AuditRepository(session)
    notifications = OutboxNotificationTrigger(audit_repository)
    return BookingArbiter(
        AppointmentsRepository(session),
        build_user_directory(session),
        build_ledger_accumulator(session, audit_repository, notifications),
        audit_repository,
        notifications,
        get_keyed_lock(),
        lock_timeout_seconds=settings.booking_lock_timeout_seconds,
        retry_attempts=settings.booking_storage_retry_attempts,
        retry_backoff_seconds=settings.booking_storage_retry_backoff_seconds,
    )
