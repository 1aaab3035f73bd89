"""Appointment schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from tutorhub.core.enums import AppointmentStatusEnum


class AppointmentCreate(BaseModel):
    """Booking request; instants must carry an offset."""

    tutor_id: UUID
    student_id: UUID | None = None
    subject: str = Field(min_length=1, max_length=128)
    start_at: AwareDatetime
    end_at: AwareDatetime
    notes: str | None = Field(default=None, max_length=2000)


class AppointmentUpdate(BaseModel):
    """Partial appointment update; only fields present in the request are applied."""

    status: AppointmentStatusEnum | None = None
    notes: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def require_any_field(self) -> "AppointmentUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one of status or notes must be provided")
        if "status" in self.model_fields_set and self.status is None:
            raise ValueError("status cannot be null")
        return self


class AppointmentRead(BaseModel):
    """Appointment response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tutor_id: UUID
    student_id: UUID
    subject: str
    start_at: datetime
    end_at: datetime
    status: AppointmentStatusEnum
    notes: str | None
    created_at: datetime
    updated_at: datetime
