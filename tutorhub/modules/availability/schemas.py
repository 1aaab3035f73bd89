"""Availability schemas."""

from __future__ import annotations

from datetime import datetime, time
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator


def _whole_minute(value: time | None) -> time | None:
    if value is not None and (value.second or value.microsecond or value.tzinfo is not None):
        raise ValueError("Times must be plain HH:MM wall-clock values")
    return value


WallClock = Annotated[time, AfterValidator(_whole_minute)]


class WeeklyAvailabilityRuleCreate(BaseModel):
    """Create weekly availability rule request (0 = Sunday ... 6 = Saturday)."""

    tutor_id: UUID | None = None
    day_of_week: int = Field(ge=0, le=6)
    start_time: WallClock
    end_time: WallClock

    @model_validator(mode="after")
    def validate_window(self) -> "WeeklyAvailabilityRuleCreate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class WeeklyAvailabilityRuleUpdate(BaseModel):
    """Partial rule update; only fields present in the request are applied."""

    start_time: WallClock | None = None
    end_time: WallClock | None = None
    is_active: bool | None = None

    @model_validator(mode="after")
    def reject_nulls(self) -> "WeeklyAvailabilityRuleUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class WeeklyAvailabilityRuleRead(BaseModel):
    """Weekly availability rule response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tutor_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool
    created_at: datetime
    updated_at: datetime


class SlotRead(BaseModel):
    """Open slot with UTC bounds plus the same bounds in the display zone."""

    tutor_id: UUID
    rule_id: UUID
    start_at: datetime
    end_at: datetime
    timezone: str
    local_start_at: datetime
    local_end_at: datetime
