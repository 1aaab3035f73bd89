"""Identity schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from tutorhub.core.enums import RoleEnum


class RoleRead(BaseModel):
    """Role response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: RoleEnum


class UserRead(BaseModel):
    """User output schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    timezone: str
    is_active: bool
    role: RoleRead
    created_at: datetime
    updated_at: datetime


class TutorRecord(BaseModel):
    """Tutor facts the scheduling core needs: zone and billing rate."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    timezone: str
    hourly_rate: Decimal
    currency: str = "USD"


class StudentRecord(BaseModel):
    """Student facts the scheduling core needs."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    timezone: str
