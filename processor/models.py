"""Data models for countdown events."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class EventKind(str, Enum):
    """Discriminates holiday and user-created events."""
    HOLIDAY = 'holiday'
    CUSTOM = 'custom'


class HolidayCategory(str, Enum):
    """Kind of holiday: statutory, traditional festival or memorial day."""
    PUBLIC = 'public'
    TRADITIONAL = 'traditional'
    MEMORIAL = 'memorial'


class SortOption(str, Enum):
    """Ordering applied to the combined event list."""
    DATE_ASC = 'DATE_ASC'
    TITLE_ASC = 'TITLE_ASC'
    CREATED_DESC = 'CREATED_DESC'


class TimeUnit(str, Enum):
    """Unit a countdown is displayed in."""
    DAYS = 'DAYS'
    HOURS = 'HOURS'
    MINUTES = 'MINUTES'
    SECONDS = 'SECONDS'


def parse_instant(value: str) -> datetime:
    """
    Parse an event date string into a datetime.

    Accepts ``YYYY-MM-DD`` (midnight) and ``YYYY-MM-DDTHH:MM[:SS]``. Values
    with a UTC offset are converted to naive local time.

    Raises:
        ValueError: If the value is not a valid date/time
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid event date: {value!r}")
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


@dataclass(frozen=True)
class Event:
    """Countdown target, either a holiday or a custom event."""
    id: str
    title: str
    date: str
    kind: EventKind
    created_at: int = 0
    color: str = ''
    description: Optional[str] = None
    holiday_category: Optional[HolidayCategory] = None
    days_off: Optional[int] = None
    traditions: Tuple[str, ...] = field(default_factory=tuple)
    greeting: Optional[str] = None

    @property
    def target_instant(self) -> datetime:
        return parse_instant(self.date)

    @property
    def is_holiday(self) -> bool:
        return self.kind is EventKind.HOLIDAY

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the event to its persisted JSON form.

        Holiday-only fields are written only for holiday events.
        """
        item = {
            'id': self.id,
            'title': self.title,
            'date': self.date,
            'type': self.kind.value,
            'color': self.color,
            'createdAt': self.created_at,
        }

        if self.description:
            item['description'] = self.description
        if self.is_holiday:
            if self.holiday_category:
                item['holidayType'] = self.holiday_category.value
            if self.days_off is not None:
                item['daysOff'] = self.days_off
            item['traditions'] = list(self.traditions)
            if self.greeting:
                item['greetings'] = self.greeting

        return item

    @classmethod
    def from_dict(cls, item: Dict[str, Any]) -> 'Event':
        """
        Build an event from its persisted JSON form.

        Records without ``createdAt`` (written by older versions) get 0.

        Raises:
            ValueError: If a required field is missing or invalid
        """
        if not isinstance(item, dict):
            raise ValueError(f"Event record must be an object, got {type(item).__name__}")

        event_id = item.get('id')
        title = item.get('title')
        date = item.get('date')
        if not event_id or not isinstance(event_id, str):
            raise ValueError("Event record missing id")
        if not title or not isinstance(title, str):
            raise ValueError(f"Event '{event_id}' missing title")
        parse_instant(date)

        kind = EventKind(item.get('type', EventKind.CUSTOM.value))

        holiday_category = None
        days_off = None
        traditions: Tuple[str, ...] = ()
        greeting = None
        if kind is EventKind.HOLIDAY:
            if item.get('holidayType'):
                holiday_category = HolidayCategory(item['holidayType'])
            if item.get('daysOff') is not None:
                days_off = int(item['daysOff'])
                if days_off < 0:
                    raise ValueError(f"Event '{event_id}' has negative daysOff")
            traditions = tuple(str(t) for t in item.get('traditions') or ())
            greeting = item.get('greetings') or None

        return cls(
            id=event_id,
            title=title,
            date=date,
            kind=kind,
            created_at=int(item.get('createdAt') or 0),
            color=item.get('color') or '',
            description=item.get('description') or None,
            holiday_category=holiday_category,
            days_off=days_off,
            traditions=traditions,
            greeting=greeting,
        )


@dataclass(frozen=True)
class Projection:
    """Remaining time until an event in one display unit."""
    value: Union[int, str]
    is_past: bool
    unit: TimeUnit

    @property
    def display(self) -> str:
        if isinstance(self.value, int):
            return f"{self.value:,}"
        return self.value
