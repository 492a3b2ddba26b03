"""Persistence of user-created countdown events."""
import json
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from processor.clock import SystemClock
from processor.exceptions import StorageError, StoreParseError, ValidationError
from processor.models import Event, EventKind
from storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

CUSTOM_EVENTS_KEY = 'custom_events'
DEFAULT_COLOR = 'from-blue-500 to-cyan-400'


class CustomEventStore:
    """Owns creation, deletion and persistence of custom events."""

    def __init__(self, store: KeyValueStore, clock=None):
        self.store = store
        self.clock = clock or SystemClock()
        self._events: List[Event] = []

    @property
    def events(self) -> List[Event]:
        return list(self._events)

    def load(self) -> List[Event]:
        """
        Load custom events from the store.

        Corrupt data is logged and treated as an empty list.

        Returns:
            List of custom events in persisted order
        """
        try:
            raw = self.store.get(CUSTOM_EVENTS_KEY)
        except StorageError as e:
            logger.error(f"Failed to read custom events: {e}")
            self._events = []
            return []

        if not raw:
            self._events = []
            return []

        try:
            items = self._decode(raw)
        except StoreParseError as e:
            logger.error(f"Failed to parse custom events: {e}")
            self._events = []
            return []

        events = []
        for item in items:
            try:
                event = Event.from_dict(item)
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid custom event record: {e}")
                continue
            if event.kind is not EventKind.CUSTOM:
                logger.warning(f"Skipping non-custom record '{event.id}' in custom events")
                continue
            events.append(event)

        self._events = events
        logger.info(f"Loaded {len(events)} custom events")
        return self.events

    def add(
        self,
        title: str,
        date: str,
        time: Optional[str] = None,
        color: str = DEFAULT_COLOR
    ) -> Event:
        """
        Create and persist a new custom event.

        Args:
            title: Display name
            date: Date in YYYY-MM-DD format
            time: Optional time of day in HH:MM format (default 00:00)
            color: Presentation color token

        Returns:
            The created Event

        Raises:
            ValidationError: If title or date is missing or malformed
        """
        title = (title or '').strip()
        date = (date or '').strip()
        time = (time or '').strip() or '00:00'

        if not title:
            raise ValidationError("Event title is required")
        if not date:
            raise ValidationError("Event date is required")

        try:
            parsed_date = datetime.strptime(date, '%Y-%m-%d')
            parsed_time = datetime.strptime(time, '%H:%M')
        except ValueError as e:
            raise ValidationError(f"Invalid event date or time: {date} {time}") from e

        created_at = self.clock.now_ms()
        event = Event(
            id=self.generate_event_id(created_at),
            title=title,
            date=f"{parsed_date:%Y-%m-%d}T{parsed_time:%H:%M}:00",
            kind=EventKind.CUSTOM,
            created_at=created_at,
            color=color or DEFAULT_COLOR,
        )

        self._persist(self._events + [event])
        self._events.append(event)
        logger.info(f"Added custom event '{event.title}' ({event.id})")
        return event

    def remove(self, event_id: str) -> bool:
        """
        Remove a custom event by id.

        Args:
            event_id: Id of the event to remove

        Returns:
            True if an event was removed, False if none matched
        """
        remaining = [event for event in self._events if event.id != event_id]
        if len(remaining) == len(self._events):
            logger.debug(f"No custom event with id '{event_id}' to remove")
            return False

        self._persist(remaining)
        self._events = remaining
        logger.info(f"Removed custom event {event_id}")
        return True

    @staticmethod
    def generate_event_id(created_at: int) -> str:
        """
        Generate a unique id for a custom event.

        The creation timestamp keeps ids roughly ordered; the random suffix
        keeps events created in the same millisecond apart.
        """
        return f"custom-{created_at}-{uuid.uuid4().hex[:8]}"

    def _decode(self, raw: str) -> list:
        try:
            items = json.loads(raw)
        except ValueError as e:
            raise StoreParseError(str(e)) from e
        if not isinstance(items, list):
            raise StoreParseError(f"expected a list, got {type(items).__name__}")
        return items

    def _persist(self, events: List[Event]) -> None:
        payload = json.dumps([event.to_dict() for event in events], ensure_ascii=False)
        try:
            self.store.set(CUSTOM_EVENTS_KEY, payload)
        except StorageError as e:
            logger.error(f"Failed to persist custom events: {e}")
            raise
