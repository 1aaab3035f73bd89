"""Ledger repository layer."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import Select, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tutorhub.core.enums import PaymentStatusEnum
from tutorhub.modules.ledger.models import LectureHoursLedger, LectureSession, Payment
from tutorhub.shared.pagination import PaginationParams
from tutorhub.shared.utils import utc_now


class LedgerRepository:
    """DB operations for lecture hours ledgers, sessions and payments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _ledger_key_filter(self, student_id: UUID, tutor_id: UUID, subject: str):
        return (
            LectureHoursLedger.student_id == student_id,
            LectureHoursLedger.tutor_id == tutor_id,
            LectureHoursLedger.subject == subject,
        )

    async def lock_ledger(
        self,
        student_id: UUID,
        tutor_id: UUID,
        subject: str,
        payment_interval_hours: Decimal,
    ) -> LectureHoursLedger:
        """Create the ledger if missing, then return it row-locked for this transaction."""
        now = utc_now()
        insert_stmt = (
            pg_insert(LectureHoursLedger)
            .values(
                id=uuid4(),
                student_id=student_id,
                tutor_id=tutor_id,
                subject=subject,
                total_seconds=Decimal("0"),
                unpaid_seconds=Decimal("0"),
                payment_interval_hours=payment_interval_hours,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["student_id", "tutor_id", "subject"])
        )
        await self.session.execute(insert_stmt)

        stmt = (
            select(LectureHoursLedger)
            .where(*self._ledger_key_filter(student_id, tutor_id, subject))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await self.session.scalars(stmt)).one()

    async def get_ledger_for_update_by_key(
        self,
        student_id: UUID,
        tutor_id: UUID,
        subject: str,
    ) -> LectureHoursLedger | None:
        stmt = (
            select(LectureHoursLedger)
            .where(*self._ledger_key_filter(student_id, tutor_id, subject))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_ledger_by_id(self, ledger_id: UUID, *, for_update: bool = False) -> LectureHoursLedger | None:
        stmt = select(LectureHoursLedger).where(LectureHoursLedger.id == ledger_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.session.scalar(stmt)

    async def list_ledgers(
        self,
        user_id: UUID | None,
        params: PaginationParams,
    ) -> tuple[list[LectureHoursLedger], int]:
        base_stmt: Select[tuple[LectureHoursLedger]] = select(LectureHoursLedger)
        if user_id is not None:
            base_stmt = base_stmt.where(
                or_(LectureHoursLedger.student_id == user_id, LectureHoursLedger.tutor_id == user_id),
            )
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = params.apply(base_stmt.order_by(LectureHoursLedger.updated_at.desc()))
        items = list((await self.session.scalars(stmt)).all())
        return items, total

    async def get_session_by_appointment_id(self, appointment_id: UUID) -> LectureSession | None:
        stmt = select(LectureSession).where(LectureSession.appointment_id == appointment_id)
        return await self.session.scalar(stmt)

    async def create_session(
        self,
        ledger_id: UUID,
        appointment_id: UUID,
        duration_seconds: Decimal,
        start_at: datetime,
        end_at: datetime,
        notes: str | None,
    ) -> LectureSession:
        lecture_session = LectureSession(
            ledger_id=ledger_id,
            appointment_id=appointment_id,
            duration_seconds=duration_seconds,
            start_at=start_at,
            end_at=end_at,
            notes=notes,
        )
        self.session.add(lecture_session)
        await self.session.flush()
        return lecture_session

    async def get_open_payment_for_update(self, ledger_id: UUID) -> Payment | None:
        stmt = (
            select(Payment)
            .where(Payment.ledger_id == ledger_id, Payment.status == PaymentStatusEnum.DUE)
            .order_by(Payment.created_at.desc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def get_payment_for_update(self, payment_id: UUID) -> Payment | None:
        stmt = (
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def create_payment(
        self,
        ledger_id: UUID,
        amount: Decimal,
        currency: str,
        hours_included: Decimal,
        status: PaymentStatusEnum,
        due_date: date,
        paid_date: datetime | None,
    ) -> Payment:
        payment = Payment(
            ledger_id=ledger_id,
            amount=amount,
            currency=currency,
            hours_included=hours_included,
            status=status,
            due_date=due_date,
            paid_date=paid_date,
            reminders_sent=0,
        )
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def save(self, entity: LectureHoursLedger | Payment) -> None:
        await self.session.flush()
