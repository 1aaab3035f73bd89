"""Appointment ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DDL, CheckConstraint, DateTime, Enum as SAEnum, ForeignKey, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from tutorhub.core.database import Base, BaseModelMixin, enum_values
from tutorhub.core.enums import AppointmentStatusEnum

TUTOR_NO_OVERLAP_CONSTRAINT = "ex_appointments_tutor_no_overlap"


class Appointment(BaseModelMixin, Base):
    """Authoritative booking record; start and end are UTC instants."""

    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("start_at < end_at", name="start_before_end"),
        Index("ix_appointments_tutor_window", "tutor_id", "start_at", "end_at"),
    )

    tutor_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    subject: Mapped[str] = mapped_column(String(128), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[AppointmentStatusEnum] = mapped_column(
        SAEnum(AppointmentStatusEnum, name="appointment_status_enum", native_enum=False, values_callable=enum_values),
        default=AppointmentStatusEnum.SCHEDULED,
        nullable=False,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)


event.listen(
    Appointment.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Appointment.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE appointments ADD CONSTRAINT {TUTOR_NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (tutor_id WITH =, tstzrange(start_at, end_at, '[)') WITH &&) "
        "WHERE (status <> 'cancelled')",
    ).execute_if(dialect="postgresql"),
)
