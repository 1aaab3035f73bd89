"""Availability ORM models."""

from __future__ import annotations

from datetime import time
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, SmallInteger, Time
from sqlalchemy.orm import Mapped, mapped_column

from tutorhub.core.database import Base, BaseModelMixin


class WeeklyAvailabilityRule(BaseModelMixin, Base):
    """Recurring weekly window in the tutor's own wall-clock time.

    ``day_of_week`` counts from Sunday (0) to Saturday (6). The zone is read
    from the tutor at expansion time and never stored here.
    """

    __tablename__ = "weekly_availability_rules"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="day_of_week_range"),
        CheckConstraint("start_time < end_time", name="start_before_end"),
        Index("ix_weekly_availability_rules_tutor_day", "tutor_id", "day_of_week"),
    )

    tutor_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    end_time: Mapped[time] = mapped_column(Time(timezone=False), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
