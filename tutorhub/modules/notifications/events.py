"""Domain events handed to the notification sink."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID

from tutorhub.core.enums import LedgerPaymentStatusEnum


@dataclass(frozen=True, slots=True)
class AppointmentBooked:
    aggregate_type: ClassVar[str] = "appointment"
    event_type: ClassVar[str] = "appointment.booked"

    appointment_id: UUID
    tutor_id: UUID
    student_id: UUID
    subject: str
    start_at: datetime
    end_at: datetime

    @property
    def aggregate_id(self) -> str:
        return str(self.appointment_id)

    def to_payload(self) -> dict:
        return {
            "appointment_id": str(self.appointment_id),
            "tutor_id": str(self.tutor_id),
            "student_id": str(self.student_id),
            "subject": self.subject,
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class AppointmentCancelled:
    aggregate_type: ClassVar[str] = "appointment"
    event_type: ClassVar[str] = "appointment.cancelled"

    appointment_id: UUID
    tutor_id: UUID
    student_id: UUID
    cancelled_by: UUID | None
    start_at: datetime
    end_at: datetime

    @property
    def aggregate_id(self) -> str:
        return str(self.appointment_id)

    def to_payload(self) -> dict:
        return {
            "appointment_id": str(self.appointment_id),
            "tutor_id": str(self.tutor_id),
            "student_id": str(self.student_id),
            "cancelled_by": str(self.cancelled_by) if self.cancelled_by else None,
            "start_at": self.start_at.isoformat(),
            "end_at": self.end_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class PaymentDue:
    """Fired when a ledger enters due-soon or overdue, or a payment reminder is sent."""

    aggregate_type: ClassVar[str] = "ledger"
    event_type: ClassVar[str] = "payment.due"

    ledger_id: UUID
    student_id: UUID
    tutor_id: UUID
    subject: str
    unpaid_hours: Decimal
    payment_interval_hours: Decimal
    payment_status: LedgerPaymentStatusEnum
    payment_id: UUID | None = None
    amount: Decimal | None = None

    @property
    def aggregate_id(self) -> str:
        return str(self.ledger_id)

    def to_payload(self) -> dict:
        return {
            "ledger_id": str(self.ledger_id),
            "student_id": str(self.student_id),
            "tutor_id": str(self.tutor_id),
            "subject": self.subject,
            "unpaid_hours": str(self.unpaid_hours),
            "payment_interval_hours": str(self.payment_interval_hours),
            "payment_status": self.payment_status.value,
            "payment_id": str(self.payment_id) if self.payment_id else None,
            "amount": str(self.amount) if self.amount is not None else None,
        }


DomainEvent = AppointmentBooked | AppointmentCancelled | PaymentDue
