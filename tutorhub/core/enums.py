"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class AppointmentStatusEnum(StrEnum):
    """Appointment lifecycle status."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatusEnum(StrEnum):
    """Settlement record status."""

    DUE = "due"
    PAID = "paid"


class LedgerPaymentStatusEnum(StrEnum):
    """Payment standing of a lecture hours ledger, computed on demand."""

    UP_TO_DATE = "up_to_date"
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
