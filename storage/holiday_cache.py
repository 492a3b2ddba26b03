"""Time-boxed cache of holidays returned by the holiday provider."""
import asyncio
import json
import logging
from typing import List, Optional

from processor.clock import SystemClock
from processor.exceptions import CacheParseError, ProviderFailure, StorageError
from processor.models import Event
from storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_KEY_HOLIDAYS = 'timeflux_cached_holidays'
CACHE_KEY_TIMESTAMP = 'timeflux_holidays_last_fetch'
CACHE_DURATION_MS = 24 * 60 * 60 * 1000


class HolidayCacheManager:
    """Decides between cached holidays and a provider refetch."""

    def __init__(self, store: KeyValueStore, provider, clock=None):
        """
        Initialize the cache manager.

        Args:
            store: Key-value store holding the cache envelope
            provider: Object with a blocking ``fetch()`` returning holiday events
            clock: Time source (defaults to the system clock)
        """
        self.store = store
        self.provider = provider
        self.clock = clock or SystemClock()
        self.holidays: List[Event] = []
        self._inflight: Optional[asyncio.Task] = None

    async def get_holidays(self, force: bool = False) -> List[Event]:
        """
        Return current holidays, refetching when the cache is stale.

        Concurrent calls share a single in-flight refresh.

        Args:
            force: Skip the freshness check and always call the provider

        Returns:
            List of holiday events, possibly empty; never raises
        """
        if self._inflight is not None:
            logger.debug("Holiday refresh already in progress, joining it")
            return await asyncio.shield(self._inflight)

        if not force:
            cached = self._read_fresh_cache()
            if cached is not None:
                logger.debug(f"Holiday cache hit with {len(cached)} events")
                self.holidays = cached
                return cached

        task = asyncio.ensure_future(self._refresh())
        self._inflight = task
        task.add_done_callback(self._clear_inflight)
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None

    async def _refresh(self) -> List[Event]:
        fetch_time = self.clock.now_ms()
        try:
            holidays = await self._fetch_from_provider()
        except ProviderFailure as e:
            logger.error(f"Holiday provider failed: {e}", extra={'error_type': type(e).__name__})
            fallback = self._read_cached_payload()
            self.holidays = fallback if fallback is not None else []
            logger.info(f"Serving {len(self.holidays)} previously cached holidays")
            return self.holidays

        self._write_cache(holidays, fetch_time)
        self.holidays = holidays
        return holidays

    async def _fetch_from_provider(self) -> List[Event]:
        logger.info("Fetching holidays from provider")
        try:
            result = await asyncio.to_thread(self.provider.fetch)
        except Exception as e:
            raise ProviderFailure(f"{type(e).__name__}: {e}") from e

        if not isinstance(result, list) or not all(isinstance(e, Event) for e in result):
            raise ProviderFailure(f"Provider returned unusable data: {type(result).__name__}")

        logger.info(f"Fetched {len(result)} holidays from provider")
        return result

    def _read_fresh_cache(self) -> Optional[List[Event]]:
        """
        Read the cached payload if it is younger than the cache window.

        Returns:
            Cached events, or None on a miss, stale entry or corrupt data
        """
        try:
            timestamp = self.store.get(CACHE_KEY_TIMESTAMP)
            payload = self.store.get(CACHE_KEY_HOLIDAYS)
        except StorageError as e:
            logger.warning(f"Could not read holiday cache: {e}")
            return None

        if not timestamp or not payload:
            return None

        try:
            fetched_at = int(timestamp)
        except ValueError:
            logger.warning(f"Cache timestamp is corrupt: {timestamp!r}")
            return None

        if self.clock.now_ms() - fetched_at >= CACHE_DURATION_MS:
            logger.info("Holiday cache is stale")
            return None

        try:
            return self._parse_payload(payload)
        except CacheParseError as e:
            logger.warning(f"Cache parse error, refetching: {e}")
            return None

    def _read_cached_payload(self) -> Optional[List[Event]]:
        """Read the cached payload regardless of its age."""
        try:
            payload = self.store.get(CACHE_KEY_HOLIDAYS)
        except StorageError as e:
            logger.warning(f"Could not read holiday cache: {e}")
            return None

        if not payload:
            return None

        try:
            return self._parse_payload(payload)
        except CacheParseError as e:
            logger.warning(f"Cache parse error: {e}")
            return None

    def _parse_payload(self, payload: str) -> List[Event]:
        try:
            items = json.loads(payload)
            if not isinstance(items, list):
                raise ValueError(f"expected a list, got {type(items).__name__}")
            return [Event.from_dict(item) for item in items]
        except (ValueError, TypeError, KeyError) as e:
            raise CacheParseError(str(e)) from e

    def _write_cache(self, holidays: List[Event], fetch_time: int) -> None:
        payload = json.dumps([event.to_dict() for event in holidays], ensure_ascii=False)
        try:
            self.store.set_many({
                CACHE_KEY_HOLIDAYS: payload,
                CACHE_KEY_TIMESTAMP: str(fetch_time),
            })
        except StorageError as e:
            logger.error(f"Failed to persist holiday cache: {e}")
            return

        logger.info(f"Cached {len(holidays)} holidays")
