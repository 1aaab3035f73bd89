"""Ledger schemas."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tutorhub.core.enums import LedgerPaymentStatusEnum, PaymentStatusEnum


class LedgerKey(BaseModel):
    """Identifies a ledger by its (student, tutor, subject) triple."""

    student_id: UUID
    tutor_id: UUID
    subject: str = Field(min_length=1, max_length=128)


class PaymentIntervalUpdate(BaseModel):
    """Change the unpaid-hours threshold of a ledger."""

    payment_interval_hours: Decimal = Field(gt=0, max_digits=10, decimal_places=4)


class LedgerRead(BaseModel):
    """Ledger output schema with computed payment standing."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    tutor_id: UUID
    subject: str
    total_hours: Decimal
    unpaid_hours: Decimal
    payment_interval_hours: Decimal
    last_session_at: datetime | None
    payment_status: LedgerPaymentStatusEnum
    created_at: datetime
    updated_at: datetime


class PaymentRead(BaseModel):
    """Payment output schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    ledger_id: UUID
    amount: Decimal
    currency: str
    hours_included: Decimal
    status: PaymentStatusEnum
    due_date: date
    paid_date: datetime | None
    reminders_sent: int
    last_reminder_at: datetime | None
    created_at: datetime
    updated_at: datetime
