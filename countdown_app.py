"""Application shell for the holiday countdown board."""
import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from processor.aggregator import view
from processor.clock import SystemClock
from processor.countdown import project_all
from processor.models import Event, Projection, SortOption, TimeUnit
from provider.holiday_provider import GeminiHolidayProvider
from storage.custom_event_store import DEFAULT_COLOR, CustomEventStore
from storage.holiday_cache import HolidayCacheManager
from storage.kv_store import (
    DynamoDBKeyValueStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
)

logger = logging.getLogger(__name__)

REFRESH_CHECK_INTERVAL_SECONDS = 60
NOW_TICK_INTERVAL_SECONDS = 1

# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED_LOG_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including ``extra`` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_LOG_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


@dataclass
class AppConfig:
    """Settings read from the environment."""
    storage_backend: str = 'file'
    store_path: Path = Path.home() / '.countdown-board' / 'store.json'
    table_name: str = 'countdown-board'
    log_level: str = 'INFO'
    api_key: Optional[str] = None
    model: str = GeminiHolidayProvider.DEFAULT_MODEL
    timeout_seconds: int = 30


def load_config(environ: Optional[Dict[str, str]] = None) -> AppConfig:
    """Read configuration from environment variables."""
    env = os.environ if environ is None else environ
    defaults = AppConfig()
    return AppConfig(
        storage_backend=env.get('STORAGE_BACKEND', defaults.storage_backend).lower(),
        store_path=Path(env['STORE_PATH']).expanduser() if env.get('STORE_PATH') else defaults.store_path,
        table_name=env.get('TABLE_NAME', defaults.table_name),
        log_level=env.get('LOG_LEVEL', defaults.log_level),
        api_key=env.get('API_KEY') or env.get('GEMINI_API_KEY') or None,
        model=env.get('GEMINI_MODEL', defaults.model),
        timeout_seconds=int(env.get('TIMEOUT_SECONDS', str(defaults.timeout_seconds))),
    )


def build_store(config: AppConfig) -> KeyValueStore:
    if config.storage_backend == 'dynamodb':
        return DynamoDBKeyValueStore(table_name=config.table_name)
    if config.storage_backend == 'memory':
        return InMemoryKeyValueStore()
    if config.storage_backend == 'file':
        return JsonFileKeyValueStore(config.store_path)
    raise ValueError(f"Unknown STORAGE_BACKEND: {config.storage_backend}")


class CountdownApp:
    """
    Composes the holiday cache and custom event store into one board.

    Owns the shared ``now`` snapshot and the two periodic tasks: a holiday
    freshness re-check and the ``now`` tick.
    """

    def __init__(
        self,
        cache_manager: HolidayCacheManager,
        event_store: CustomEventStore,
        clock=None,
        refresh_interval: float = REFRESH_CHECK_INTERVAL_SECONDS,
        tick_interval: float = NOW_TICK_INTERVAL_SECONDS
    ):
        self.cache_manager = cache_manager
        self.event_store = event_store
        self.clock = clock or SystemClock()
        self.refresh_interval = refresh_interval
        self.tick_interval = tick_interval
        self.sort_option = SortOption.DATE_ASC
        self.now = self.clock.now()
        self._tasks: List[asyncio.Task] = []

    @classmethod
    def from_config(cls, config: AppConfig) -> 'CountdownApp':
        clock = SystemClock()
        store = build_store(config)
        provider = GeminiHolidayProvider(
            api_key=config.api_key,
            model=config.model,
            timeout=config.timeout_seconds,
            clock=clock
        )
        return cls(
            cache_manager=HolidayCacheManager(store, provider, clock=clock),
            event_store=CustomEventStore(store, clock=clock),
            clock=clock
        )

    @property
    def holidays(self) -> List[Event]:
        return self.cache_manager.holidays

    async def initialize(self, force: bool = False) -> None:
        """
        Load custom events and holidays.

        Args:
            force: Refetch holidays even when the cache is fresh
        """
        self.event_store.load()
        await self.cache_manager.get_holidays(force=force)
        self.tick()

    async def refresh_holidays(self, force: bool = False) -> List[Event]:
        return await self.cache_manager.get_holidays(force=force)

    def add_event(
        self,
        title: str,
        date: str,
        time: Optional[str] = None,
        color: str = DEFAULT_COLOR
    ) -> Event:
        return self.event_store.add(title, date, time, color)

    def delete_event(self, event_id: str) -> bool:
        return self.event_store.remove(event_id)

    def display_events(self) -> List[Event]:
        return view(self.cache_manager.holidays, self.event_store.events, self.sort_option)

    def projections(self, unit: TimeUnit = TimeUnit.DAYS) -> List[Tuple[Event, Projection]]:
        """Project every displayed event against the current ``now`` snapshot."""
        return project_all(self.display_events(), self.now, unit)

    def tick(self) -> None:
        self.now = self.clock.now()

    def start(self) -> None:
        """Start the periodic tasks on the running event loop."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.ensure_future(self._every(self.refresh_interval, self._check_freshness)),
            asyncio.ensure_future(self._every(self.tick_interval, self._tick)),
        ]
        logger.info("Started periodic tasks")

    async def stop(self) -> None:
        """Stop the periodic tasks; an in-flight holiday fetch still completes."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Stopped periodic tasks")

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def _every(self, interval: float, callback) -> None:
        while True:
            await asyncio.sleep(interval)
            await callback()

    async def _check_freshness(self) -> None:
        await self.cache_manager.get_holidays(force=False)

    async def _tick(self) -> None:
        self.tick()


def format_line(event: Event, projection: Projection) -> str:
    """Render one board line for console output."""
    unit_labels = {
        TimeUnit.DAYS: '天',
        TimeUnit.HOURS: '小时',
        TimeUnit.MINUTES: '分钟',
        TimeUnit.SECONDS: '秒',
    }
    target = event.target_instant
    countdown = '已结束' if projection.is_past else f"{projection.display} {unit_labels[projection.unit]}"
    return f"{target.month}月{target.day}日  {event.title}  {countdown}"


SORT_CHOICES = {
    'date': SortOption.DATE_ASC,
    'title': SortOption.TITLE_ASC,
    'created': SortOption.CREATED_DESC,
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='countdown-board',
        description='Show countdowns to upcoming holidays and your own events.'
    )
    parser.add_argument(
        '--unit', choices=[u.value.lower() for u in TimeUnit], default='days',
        help='Countdown unit (default: days)'
    )
    parser.add_argument(
        '--sort', choices=sorted(SORT_CHOICES), default='date',
        help='Ordering of the board (default: date)'
    )
    parser.add_argument(
        '--refresh', action='store_true',
        help='Ignore the holiday cache and refetch'
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, config: AppConfig) -> List[str]:
    app = CountdownApp.from_config(config)
    await app.initialize(force=args.refresh)

    app.sort_option = SORT_CHOICES[args.sort]
    lines = [
        format_line(event, projection)
        for event, projection in app.projections(TimeUnit(args.unit.upper()))
    ]
    logger.info(
        "Board rendered",
        extra={'holidays': len(app.holidays), 'custom_events': len(app.event_store.events)}
    )
    return lines


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point."""
    args = parse_args(argv)
    config = load_config()
    setup_logging(config.log_level)

    try:
        lines = asyncio.run(run(args, config))
    except Exception as e:
        logger.error(
            f"Countdown board failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return 1

    for line in lines:
        print(line)
    return 0


if __name__ == '__main__':
    sys.exit(main())
