"""Shared utility functions."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

HOURS_QUANTUM = Decimal("0.0001")
MONEY_QUANTUM = Decimal("0.01")
SECONDS_PER_HOUR = Decimal(3600)


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(UTC)


def quantize_hours(value: Decimal) -> Decimal:
    """Round an hours amount to the stored precision."""
    return value.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_money(value: Decimal) -> Decimal:
    """Round a money amount to cents."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def seconds_to_hours(seconds: Decimal) -> Decimal:
    """Convert an exact seconds amount to hours at the displayed precision."""
    return quantize_hours(Decimal(seconds) / SECONDS_PER_HOUR)
