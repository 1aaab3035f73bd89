"""Lecture hours ledger ORM models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorhub.core.database import Base, BaseModelMixin, enum_values
from tutorhub.core.enums import LedgerPaymentStatusEnum, PaymentStatusEnum


class LectureHoursLedger(BaseModelMixin, Base):
    """Running hours balance for one (student, tutor, subject) triple."""

    __tablename__ = "lecture_hours_ledgers"
    __table_args__ = (
        UniqueConstraint("student_id", "tutor_id", "subject", name="uq_lecture_hours_ledgers_key"),
        CheckConstraint("unpaid_seconds >= 0", name="unpaid_seconds_non_negative"),
        CheckConstraint("unpaid_seconds <= total_seconds", name="unpaid_within_total"),
        CheckConstraint("payment_interval_hours > 0", name="payment_interval_positive"),
    )

    student_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    tutor_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(128), nullable=False)
    # Elapsed time is kept exact; hours are derived on read and at billing.
    total_seconds: Mapped[Decimal] = mapped_column(Numeric(16, 6), default=Decimal("0"), nullable=False)
    unpaid_seconds: Mapped[Decimal] = mapped_column(Numeric(16, 6), default=Decimal("0"), nullable=False)
    payment_interval_hours: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    last_session_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reminder_status: Mapped[LedgerPaymentStatusEnum | None] = mapped_column(
        SAEnum(
            LedgerPaymentStatusEnum,
            name="ledger_payment_status_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        nullable=True,
    )

    sessions: Mapped[list["LectureSession"]] = relationship(back_populates="ledger")
    payments: Mapped[list["Payment"]] = relationship(back_populates="ledger")


class LectureSession(BaseModelMixin, Base):
    """One completed appointment counted into a ledger."""

    __tablename__ = "lecture_sessions"

    ledger_id: Mapped[UUID] = mapped_column(
        ForeignKey("lecture_hours_ledgers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    appointment_id: Mapped[UUID] = mapped_column(
        ForeignKey("appointments.id", ondelete="RESTRICT"),
        unique=True,
        nullable=False,
    )
    duration_seconds: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    ledger: Mapped[LectureHoursLedger] = relationship(back_populates="sessions")


class Payment(BaseModelMixin, Base):
    """Settlement record; immutable once paid apart from reminder bookkeeping."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="amount_non_negative"),
        CheckConstraint("hours_included >= 0", name="hours_included_non_negative"),
    )

    ledger_id: Mapped[UUID] = mapped_column(
        ForeignKey("lecture_hours_ledgers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    hours_included: Mapped[Decimal] = mapped_column(Numeric(10, 4), nullable=False)
    status: Mapped[PaymentStatusEnum] = mapped_column(
        SAEnum(PaymentStatusEnum, name="payment_status_enum", native_enum=False, values_callable=enum_values),
        default=PaymentStatusEnum.DUE,
        nullable=False,
        index=True,
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reminders_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_reminder_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    ledger: Mapped[LectureHoursLedger] = relationship(back_populates="payments")
