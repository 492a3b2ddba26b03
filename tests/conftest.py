"""Shared fixtures for countdown board tests."""
from datetime import datetime, timedelta

import pytest

from processor.clock import to_epoch_ms
from processor.models import Event, EventKind, HolidayCategory
from storage.kv_store import InMemoryKeyValueStore


class FakeClock:
    """Controllable time source."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def now_ms(self) -> int:
        return to_epoch_ms(self.current)

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock fixed at 2026-10-19 12:00 local time."""
    return FakeClock(datetime(2026, 10, 19, 12, 0, 0))


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


def make_holiday(event_id, title, date, created_at=1000):
    return Event(
        id=event_id,
        title=title,
        date=date,
        kind=EventKind.HOLIDAY,
        created_at=created_at,
        color='from-red-600 to-amber-500',
        description=f'{title} description',
        holiday_category=HolidayCategory.PUBLIC,
        days_off=3,
        traditions=('赏月', '吃月饼'),
        greeting=f'{title}快乐',
    )


def make_custom(event_id, title, date, created_at=0):
    return Event(
        id=event_id,
        title=title,
        date=date,
        kind=EventKind.CUSTOM,
        created_at=created_at,
        color='from-blue-500 to-cyan-400',
    )


@pytest.fixture
def sample_holidays():
    return [
        make_holiday('holiday-0-1000', '春节', '2027-02-06T00:00:00'),
        make_holiday('holiday-1-1000', '元旦', '2027-01-01T00:00:00'),
    ]
