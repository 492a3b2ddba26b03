"""Countdown projection of an event's remaining time."""
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Tuple

from processor.models import Event, Projection, TimeUnit

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

ONE_DECIMAL = Decimal("0.1")


def _one_decimal(value: float) -> str:
    """Format with one decimal place, rounding exact ties up."""
    return str(Decimal(value).quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP))


def project(target: datetime, now: datetime, unit: TimeUnit = TimeUnit.DAYS) -> Projection:
    """
    Project the time remaining until ``target`` into ``unit``.

    Negative remaining time is clamped to zero. ``is_past`` comes from the
    unclamped difference, so an event ends exactly at its target instant.

    Args:
        target: Instant the countdown targets
        now: Current instant
        unit: Display unit

    Returns:
        Projection with a one-decimal string for days/hours and a whole
        number for minutes/seconds
    """
    remaining_ms = (target - now) // timedelta(milliseconds=1)
    is_past = remaining_ms <= 0
    delta = max(0, remaining_ms)

    if unit is TimeUnit.DAYS:
        value = _one_decimal(delta / MS_PER_DAY)
    elif unit is TimeUnit.HOURS:
        value = _one_decimal(delta / MS_PER_HOUR)
    elif unit is TimeUnit.MINUTES:
        value = delta // MS_PER_MINUTE
    elif unit is TimeUnit.SECONDS:
        value = delta // MS_PER_SECOND
    else:
        raise ValueError(f"Unsupported time unit: {unit}")

    return Projection(value=value, is_past=is_past, unit=unit)


def project_all(
    events: Iterable[Event],
    now: datetime,
    unit: TimeUnit = TimeUnit.DAYS
) -> List[Tuple[Event, Projection]]:
    """Project every event against the same ``now`` snapshot."""
    return [(event, project(event.target_instant, now, unit)) for event in events]
