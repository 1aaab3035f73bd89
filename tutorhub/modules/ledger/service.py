"""Ledger business logic: hours accumulation, payment standing and settlement."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutorhub.core.config import get_settings
from tutorhub.core.database import get_db_session
from tutorhub.core.enums import LedgerPaymentStatusEnum, PaymentStatusEnum, RoleEnum
from tutorhub.core.metrics import LEDGER_SETTLEMENTS_TOTAL
from tutorhub.modules.appointments.models import Appointment
from tutorhub.modules.audit.repository import AuditRepository
from tutorhub.modules.identity.models import User
from tutorhub.modules.identity.service import UserDirectory, build_user_directory
from tutorhub.modules.ledger.models import LectureHoursLedger, LectureSession, Payment
from tutorhub.modules.ledger.repository import LedgerRepository
from tutorhub.modules.ledger.schemas import LedgerKey, LedgerRead
from tutorhub.modules.notifications.events import PaymentDue
from tutorhub.modules.notifications.service import NotificationTrigger, OutboxNotificationTrigger
from tutorhub.shared.exceptions import (
    ConflictException,
    InvalidRangeException,
    NotFoundException,
    NothingToSettleException,
    UnauthorizedException,
)
from tutorhub.shared.pagination import PaginationParams
from tutorhub.shared.time_conversion import Instant
from tutorhub.shared.utils import SECONDS_PER_HOUR, quantize_hours, quantize_money, seconds_to_hours, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

ZERO = Decimal("0")
MICROSECONDS_PER_SECOND = Decimal(1_000_000)
REMINDER_TIERS = (LedgerPaymentStatusEnum.DUE_SOON, LedgerPaymentStatusEnum.OVERDUE)


def classify_payment_status(
    unpaid_hours: Decimal,
    payment_interval_hours: Decimal,
    due_soon_window_hours: Decimal = Decimal("2"),
) -> LedgerPaymentStatusEnum:
    """Classify a ledger as up-to-date, due soon or overdue."""
    if unpaid_hours <= ZERO:
        return LedgerPaymentStatusEnum.UP_TO_DATE
    if unpaid_hours >= payment_interval_hours:
        return LedgerPaymentStatusEnum.OVERDUE
    if unpaid_hours >= payment_interval_hours - due_soon_window_hours:
        return LedgerPaymentStatusEnum.DUE_SOON
    return LedgerPaymentStatusEnum.UP_TO_DATE


def duration_seconds(start: Instant, end: Instant) -> Decimal:
    """Exact elapsed seconds between two instants, independent of any wall clock."""
    microseconds = (end - start) // timedelta(microseconds=1)
    return Decimal(microseconds) / MICROSECONDS_PER_SECOND


def duration_hours(start: Instant, end: Instant) -> Decimal:
    """Elapsed hours between two instants, rounded for display."""
    return seconds_to_hours(duration_seconds(start, end))


def billable_amount(seconds: Decimal, hourly_rate: Decimal) -> Decimal:
    """Price exact elapsed seconds at an hourly rate, rounding once to cents."""
    return quantize_money(seconds * hourly_rate / SECONDS_PER_HOUR)


@dataclass(frozen=True, slots=True)
class LedgerUpdate:
    """Result of recording one completed appointment."""

    ledger: LectureHoursLedger
    session: LectureSession
    hours_added: Decimal
    payment_status: LedgerPaymentStatusEnum
    payment_due_fired: bool


class LedgerAccumulator:
    """Ledger domain service.

    Every mutation row-locks the ledger (``SELECT ... FOR UPDATE``) for the
    rest of the transaction, so completions and settlements on one key
    commit in a single order while different keys never contend.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        directory: UserDirectory,
        audit_repository: AuditRepository,
        notifications: NotificationTrigger,
        *,
        default_payment_interval_hours: Decimal = Decimal("10"),
        due_soon_window_hours: Decimal = Decimal("2"),
        payment_due_days: int = 7,
    ) -> None:
        self.repository = repository
        self.directory = directory
        self.audit_repository = audit_repository
        self.notifications = notifications
        self.default_payment_interval_hours = default_payment_interval_hours
        self.due_soon_window_hours = due_soon_window_hours
        self.payment_due_days = payment_due_days

    def payment_status(self, ledger: LectureHoursLedger) -> LedgerPaymentStatusEnum:
        return classify_payment_status(
            ledger.unpaid_seconds / SECONDS_PER_HOUR,
            ledger.payment_interval_hours,
            self.due_soon_window_hours,
        )

    def to_read(self, ledger: LectureHoursLedger) -> LedgerRead:
        return LedgerRead(
            id=ledger.id,
            student_id=ledger.student_id,
            tutor_id=ledger.tutor_id,
            subject=ledger.subject,
            total_hours=seconds_to_hours(ledger.total_seconds),
            unpaid_hours=seconds_to_hours(ledger.unpaid_seconds),
            payment_interval_hours=ledger.payment_interval_hours,
            last_session_at=ledger.last_session_at,
            payment_status=self.payment_status(ledger),
            created_at=ledger.created_at,
            updated_at=ledger.updated_at,
        )

    @staticmethod
    def _ensure_can_manage(ledger_tutor_id: UUID, actor: User) -> None:
        if actor.role.name != RoleEnum.ADMIN and actor.id != ledger_tutor_id:
            raise UnauthorizedException("Only the ledger's tutor or admin can manage payments")

    async def _publish_payment_due(
        self,
        ledger: LectureHoursLedger,
        status: LedgerPaymentStatusEnum,
        amount: Decimal,
        payment_id: UUID | None = None,
    ) -> None:
        await self.notifications.publish(
            PaymentDue(
                ledger_id=ledger.id,
                student_id=ledger.student_id,
                tutor_id=ledger.tutor_id,
                subject=ledger.subject,
                unpaid_hours=seconds_to_hours(ledger.unpaid_seconds),
                payment_interval_hours=ledger.payment_interval_hours,
                payment_status=status,
                payment_id=payment_id,
                amount=amount,
            ),
        )

    async def on_completed(self, appointment: Appointment, tutor_hourly_rate: Decimal) -> LedgerUpdate:
        """Add a completed appointment's hours to its ledger, creating the ledger if needed."""
        ledger = await self.repository.lock_ledger(
            student_id=appointment.student_id,
            tutor_id=appointment.tutor_id,
            subject=appointment.subject,
            payment_interval_hours=self.default_payment_interval_hours,
        )

        recorded = await self.repository.get_session_by_appointment_id(appointment.id)
        if recorded is not None:
            return LedgerUpdate(
                ledger=ledger,
                session=recorded,
                hours_added=ZERO,
                payment_status=self.payment_status(ledger),
                payment_due_fired=False,
            )

        start = Instant(appointment.start_at)
        end = Instant(appointment.end_at)
        seconds = duration_seconds(start, end)
        hours = seconds_to_hours(seconds)

        ledger.total_seconds = ledger.total_seconds + seconds
        ledger.unpaid_seconds = ledger.unpaid_seconds + seconds
        if ledger.last_session_at is None or Instant(ledger.last_session_at) < end:
            ledger.last_session_at = end.as_datetime()

        lecture_session = await self.repository.create_session(
            ledger_id=ledger.id,
            appointment_id=appointment.id,
            duration_seconds=seconds,
            start_at=start.as_datetime(),
            end_at=end.as_datetime(),
            notes=appointment.notes,
        )

        status = self.payment_status(ledger)
        fired = False
        if status in REMINDER_TIERS and ledger.reminder_status != status:
            ledger.reminder_status = status
            await self._publish_payment_due(
                ledger,
                status,
                amount=billable_amount(ledger.unpaid_seconds, tutor_hourly_rate),
            )
            fired = True
            logger.info(
                "Ledger %s is %s with %s unpaid hours",
                ledger.id,
                status.value,
                seconds_to_hours(ledger.unpaid_seconds),
            )

        await self.repository.save(ledger)
        logger.info(
            "Recorded %s hours for appointment %s on ledger %s",
            hours,
            appointment.id,
            ledger.id,
        )
        return LedgerUpdate(
            ledger=ledger,
            session=lecture_session,
            hours_added=hours,
            payment_status=status,
            payment_due_fired=fired,
        )

    async def settle(self, key: LedgerKey, actor: User) -> Payment:
        """Pay off all unpaid hours of a ledger at the tutor's current rate."""
        self._ensure_can_manage(key.tutor_id, actor)

        ledger = await self.repository.get_ledger_for_update_by_key(key.student_id, key.tutor_id, key.subject)
        if ledger is None:
            raise NotFoundException("Ledger not found")
        if ledger.unpaid_seconds <= ZERO:
            raise NothingToSettleException("Ledger has no unpaid hours to settle")

        tutor = await self.directory.get_tutor(ledger.tutor_id)
        hours = seconds_to_hours(ledger.unpaid_seconds)
        amount = billable_amount(ledger.unpaid_seconds, tutor.hourly_rate)
        now = utc_now()

        payment = await self.repository.get_open_payment_for_update(ledger.id)
        if payment is not None:
            payment.status = PaymentStatusEnum.PAID
            payment.amount = amount
            payment.currency = tutor.currency
            payment.hours_included = hours
            payment.paid_date = now
        else:
            payment = await self.repository.create_payment(
                ledger_id=ledger.id,
                amount=amount,
                currency=tutor.currency,
                hours_included=hours,
                status=PaymentStatusEnum.PAID,
                due_date=now.date(),
                paid_date=now,
            )

        ledger.unpaid_seconds = ZERO
        ledger.reminder_status = None
        await self.repository.save(ledger)

        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="ledger.settled",
            entity_type="lecture_hours_ledger",
            entity_id=str(ledger.id),
            payload={
                "payment_id": str(payment.id),
                "hours": str(hours),
                "amount": str(amount),
                "hourly_rate": str(tutor.hourly_rate),
            },
        )
        LEDGER_SETTLEMENTS_TOTAL.inc()
        logger.info("Settled ledger %s: %s hours for %s", ledger.id, hours, amount)
        return payment

    async def request_payment(self, key: LedgerKey, actor: User) -> Payment:
        """Issue (or refresh) a DUE payment covering the current unpaid hours."""
        self._ensure_can_manage(key.tutor_id, actor)

        ledger = await self.repository.get_ledger_for_update_by_key(key.student_id, key.tutor_id, key.subject)
        if ledger is None:
            raise NotFoundException("Ledger not found")
        if ledger.unpaid_seconds <= ZERO:
            raise NothingToSettleException("Ledger has no unpaid hours to request payment for")

        tutor = await self.directory.get_tutor(ledger.tutor_id)
        hours = seconds_to_hours(ledger.unpaid_seconds)
        amount = billable_amount(ledger.unpaid_seconds, tutor.hourly_rate)
        due_date = (utc_now() + timedelta(days=self.payment_due_days)).date()

        payment = await self.repository.get_open_payment_for_update(ledger.id)
        if payment is not None:
            payment.amount = amount
            payment.currency = tutor.currency
            payment.hours_included = hours
            await self.repository.save(payment)
        else:
            payment = await self.repository.create_payment(
                ledger_id=ledger.id,
                amount=amount,
                currency=tutor.currency,
                hours_included=hours,
                status=PaymentStatusEnum.DUE,
                due_date=due_date,
                paid_date=None,
            )

        await self._publish_payment_due(ledger, self.payment_status(ledger), amount, payment.id)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="payment.requested",
            entity_type="payment",
            entity_id=str(payment.id),
            payload={"ledger_id": str(ledger.id), "amount": str(amount)},
        )
        return payment

    async def send_payment_reminder(self, payment_id: UUID, actor: User) -> Payment:
        """Record a reminder against an open payment and announce it."""
        payment = await self.repository.get_payment_for_update(payment_id)
        if payment is None:
            raise NotFoundException("Payment not found")

        ledger = await self.repository.get_ledger_by_id(payment.ledger_id)
        if ledger is None:
            raise NotFoundException("Ledger not found")
        self._ensure_can_manage(ledger.tutor_id, actor)

        if payment.status == PaymentStatusEnum.PAID:
            raise ConflictException("Payment is already paid")

        payment.reminders_sent += 1
        payment.last_reminder_at = utc_now()
        await self.repository.save(payment)

        await self._publish_payment_due(ledger, self.payment_status(ledger), payment.amount, payment.id)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="payment.reminder.sent",
            entity_type="payment",
            entity_id=str(payment.id),
            payload={"reminders_sent": payment.reminders_sent},
        )
        return payment

    async def update_payment_interval(
        self,
        ledger_id: UUID,
        payment_interval_hours: Decimal,
        actor: User,
    ) -> LectureHoursLedger:
        """Change how many unpaid hours a ledger may accrue before it is overdue."""
        if payment_interval_hours <= ZERO:
            raise InvalidRangeException("payment_interval_hours must be positive")

        ledger = await self.repository.get_ledger_by_id(ledger_id, for_update=True)
        if ledger is None:
            raise NotFoundException("Ledger not found")
        self._ensure_can_manage(ledger.tutor_id, actor)

        previous = ledger.payment_interval_hours
        ledger.payment_interval_hours = quantize_hours(payment_interval_hours)
        if self.payment_status(ledger) not in REMINDER_TIERS:
            ledger.reminder_status = None
        await self.repository.save(ledger)

        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="ledger.payment_interval.updated",
            entity_type="lecture_hours_ledger",
            entity_id=str(ledger.id),
            payload={"from": str(previous), "to": str(ledger.payment_interval_hours)},
        )
        return ledger

    async def get_ledger(self, ledger_id: UUID, actor: User) -> LectureHoursLedger:
        """Return a ledger visible to its student, its tutor or an admin."""
        ledger = await self.repository.get_ledger_by_id(ledger_id)
        if ledger is None:
            raise NotFoundException("Ledger not found")
        if actor.role.name != RoleEnum.ADMIN and actor.id not in (ledger.student_id, ledger.tutor_id):
            raise UnauthorizedException("Only ledger participants or admin can view it")
        return ledger

    async def list_ledgers(
        self,
        actor: User,
        params: PaginationParams,
    ) -> tuple[list[LectureHoursLedger], int]:
        """List ledgers for current user (all of them for admin)."""
        user_id = None if actor.role.name == RoleEnum.ADMIN else actor.id
        return await self.repository.list_ledgers(user_id, params)


def build_ledger_accumulator(
    session: AsyncSession,
    audit_repository: AuditRepository,
    notifications: NotificationTrigger,
) -> LedgerAccumulator:
    """Build accumulator sharing the caller's session and outbox."""
    return LedgerAccumulator(
        LedgerRepository(session),
        build_user_directory(session),
        audit_repository,
        notifications,
        default_payment_interval_hours=settings.ledger_default_payment_interval_hours,
        due_soon_window_hours=settings.ledger_due_soon_window_hours,
        payment_due_days=settings.ledger_payment_due_days,
    )


async def get_ledger_accumulator(session: AsyncSession = Depends(get_db_session)) -> LedgerAccumulator:
    """Dependency provider for ledger service."""
    audit_repository = AuditRepository(session)
    return build_ledger_accumulator(session, audit_repository, OutboxNotificationTrigger(audit_repository))
