"""Holiday provider backed by the Gemini text-generation API."""
import json
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from processor.clock import SystemClock
from processor.models import Event, EventKind, HolidayCategory
from provider.fallback import fallback_holidays, holiday_color

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """You are a helpful Chinese calendar expert. Identify the next 5 major Chinese holidays (public holidays and traditional festivals) occurring strictly after today's date: {today}.

For each holiday, provide:
- name: Official Chinese name (Simplified Chinese)
- date: The start date in YYYY-MM-DD format
- description: A brief description explaining the significance (in Chinese, 20-40 characters)
- holidayType: One of "public" (法定假日), "traditional" (传统节日), or "memorial" (纪念日)
- daysOff: Number of official days off (0 if not a public holiday)
- traditions: Array of 2-3 key traditions/customs (in Chinese, each 4-8 characters)
- greetings: A common greeting/blessing phrase for this holiday (in Chinese)

Return a JSON array sorted by date."""

RESPONSE_SCHEMA = {
    'type': 'ARRAY',
    'items': {
        'type': 'OBJECT',
        'properties': {
            'name': {'type': 'STRING'},
            'date': {'type': 'STRING', 'description': 'YYYY-MM-DD format'},
            'description': {'type': 'STRING'},
            'holidayType': {'type': 'STRING', 'description': 'public, traditional, or memorial'},
            'daysOff': {'type': 'NUMBER'},
            'traditions': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
            'greetings': {'type': 'STRING'},
        },
        'required': [
            'name', 'date', 'description', 'holidayType', 'daysOff', 'traditions', 'greetings'
        ],
    },
}


class GeminiHolidayProvider:
    """Fetches upcoming Chinese holidays from Gemini, with a local fallback."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
    DEFAULT_MODEL = "gemini-2.5-flash"
    MAX_RETRIES = 3

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: int = 30,
        retry_delay: float = 1,
        clock=None
    ):
        """
        Initialize the holiday provider.

        Args:
            api_key: Gemini API key; without one only fallback data is served
            model: Model name used for generation
            timeout: HTTP request timeout in seconds (default: 30)
            retry_delay: Base delay in seconds for exponential backoff
            clock: Time source (defaults to the system clock)
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.retry_delay = retry_delay
        self.clock = clock or SystemClock()

    @property
    def url(self) -> str:
        return f"{self.BASE_URL}/{self.model}:generateContent"

    def fetch(self) -> List[Event]:
        """
        Fetch upcoming holidays, falling back to local data on any failure.

        Returns:
            List of holiday Events sorted by date
        """
        if not self.api_key:
            logger.warning("API key not found, returning fallback holidays")
            return fallback_holidays(self.clock.now())

        try:
            return self.fetch_remote()
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(
                f"Failed to fetch holidays via AI: {e}",
                extra={'error_type': type(e).__name__}
            )
            return fallback_holidays(self.clock.now())

    def fetch_remote(self) -> List[Event]:
        """
        Fetch upcoming holidays from the remote API.

        Returns:
            List of holiday Events

        Raises:
            requests.RequestException: If all retry attempts fail
            ValueError: If the response body cannot be decoded
        """
        now = self.clock.now()
        response_data = self._request_generation(now.strftime('%Y-%m-%d'))
        items = self._extract_items(response_data)
        events = self._parse_holidays(items, self.clock.now_ms())

        logger.info(f"Successfully fetched {len(events)} holidays")
        return events

    def _request_generation(self, today: str) -> Dict[str, Any]:
        """
        Call the generateContent endpoint with retry logic.

        Args:
            today: Today's date in YYYY-MM-DD format

        Returns:
            Decoded JSON response

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        body = {
            'contents': [{'parts': [{'text': PROMPT_TEMPLATE.format(today=today)}]}],
            'generationConfig': {
                'responseMimeType': 'application/json',
                'responseSchema': RESPONSE_SCHEMA,
            },
        }
        headers = {'x-goog-api-key': self.api_key}

        for attempt in range(self.MAX_RETRIES):
            try:
                logger.info(f"Requesting holidays (attempt {attempt + 1}/{self.MAX_RETRIES})")
                response = requests.post(
                    self.url,
                    json=body,
                    headers=headers,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()

            except requests.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.MAX_RETRIES} retry attempts failed. Last error: {e}"
                    )
                    raise

    def _extract_items(self, response_data: Dict[str, Any]) -> List[Any]:
        """Pull the generated JSON array out of a generateContent response."""
        text = response_data['candidates'][0]['content']['parts'][0].get('text') or '[]'
        items = json.loads(text)
        if not isinstance(items, list):
            raise ValueError(f"Expected a JSON array of holidays, got {type(items).__name__}")
        return items

    def _parse_holidays(self, items: List[Any], fetched_at: int) -> List[Event]:
        events = []
        for index, item in enumerate(items):
            try:
                events.append(self._parse_holiday(item, index, fetched_at))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid holiday record {index}: {e}")
                continue
        return events

    def _parse_holiday(self, item: Dict[str, Any], index: int, fetched_at: int) -> Event:
        """
        Convert one generated record into a holiday Event.

        Raises:
            KeyError: If a required field is missing
            ValueError: If the date, type or day count is invalid
        """
        name = item['name'].strip()
        if not name:
            raise ValueError("holiday name is empty")

        date = f"{datetime.strptime(item['date'].strip(), '%Y-%m-%d'):%Y-%m-%d}T00:00:00"

        days_off = int(item.get('daysOff') or 0)
        if days_off < 0:
            raise ValueError(f"negative daysOff for {name}")

        return Event(
            id=f"holiday-{index}-{fetched_at}",
            title=name,
            date=date,
            kind=EventKind.HOLIDAY,
            created_at=fetched_at,
            color=holiday_color(name),
            description=item.get('description') or None,
            holiday_category=HolidayCategory(item['holidayType']),
            days_off=days_off,
            traditions=tuple(str(t) for t in item.get('traditions') or ()),
            greeting=item.get('greetings') or None,
        )
