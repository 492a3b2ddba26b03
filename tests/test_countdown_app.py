"""Integration tests for the countdown board application shell."""
import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from conftest import FakeClock, make_holiday
from countdown_app import (
    AppConfig,
    CountdownApp,
    JsonFormatter,
    build_store,
    format_line,
    load_config,
    main,
)
from processor.exceptions import ValidationError
from processor.models import Projection, SortOption, TimeUnit
from storage.custom_event_store import CustomEventStore
from storage.holiday_cache import HolidayCacheManager
from storage.kv_store import InMemoryKeyValueStore, JsonFileKeyValueStore


@pytest.fixture
def provider(sample_holidays):
    provider = Mock()
    provider.fetch.return_value = sample_holidays
    return provider


@pytest.fixture
def app(kv_store, provider, clock):
    return CountdownApp(
        cache_manager=HolidayCacheManager(kv_store, provider, clock=clock),
        event_store=CustomEventStore(kv_store, clock=clock),
        clock=clock,
        refresh_interval=0.01,
        tick_interval=0.01
    )


class TestCountdownApp:
    """Test cases for CountdownApp."""

    @pytest.mark.asyncio
    async def test_launch_scenario(self, provider):
        """Test add, reload and project for a single custom event."""
        clock = FakeClock(datetime(2029, 12, 31, 9, 0, 0))
        store = InMemoryKeyValueStore()
        provider.fetch.return_value = []
        app = CountdownApp(
            HolidayCacheManager(store, provider, clock=clock),
            CustomEventStore(store, clock=clock),
            clock=clock
        )
        await app.initialize()

        app.add_event('Launch', '2030-01-01', '09:00', 'from-pink-500 to-rose-400')
        events = CustomEventStore(store, clock=clock).load()

        assert len(events) == 1
        [(event, projection)] = app.projections(TimeUnit.DAYS)
        assert event.title == 'Launch'
        assert projection.value == "1.0"
        assert projection.is_past is False

    @pytest.mark.asyncio
    async def test_initialize_loads_both_sources(self, app, kv_store, clock, provider):
        """Test initialize reads custom events and fetches holidays."""
        CustomEventStore(kv_store, clock=clock).add('Trip', '2026-12-24')

        await app.initialize()

        assert len(app.holidays) == 2
        assert [e.title for e in app.event_store.events] == ['Trip']
        provider.fetch.assert_called_once()

    @pytest.mark.asyncio
    async def test_display_events_follows_sort_option(self, app):
        """Test the merged view reflects the current sort selection."""
        await app.initialize()
        app.add_event('Anniversary', '2026-12-01')

        assert app.sort_option is SortOption.DATE_ASC
        assert [e.title for e in app.display_events()] == ['Anniversary', '元旦', '春节']

        app.sort_option = SortOption.CREATED_DESC
        assert app.display_events()[0].title == 'Anniversary'

        app.sort_option = SortOption.TITLE_ASC
        assert [e.title for e in app.display_events()] == ['春节', '元旦', 'Anniversary']

    @pytest.mark.asyncio
    async def test_delete_event(self, app):
        """Test deleting a custom event removes it from the view."""
        await app.initialize()
        event = app.add_event('Trip', '2026-12-24')

        assert app.delete_event(event.id) is True
        assert app.delete_event(event.id) is False
        assert event not in app.display_events()

    @pytest.mark.asyncio
    async def test_delete_holiday_is_refused(self, app):
        """Test holidays cannot be removed through the event store."""
        await app.initialize()

        assert app.delete_event('holiday-0-1000') is False
        assert len(app.holidays) == 2

    def test_add_event_validation(self, app):
        """Test invalid input surfaces as ValidationError."""
        with pytest.raises(ValidationError):
            app.add_event('', '2030-01-01')

    @pytest.mark.asyncio
    async def test_projections_use_now_snapshot(self, app, clock):
        """Test projections only move when the snapshot is ticked."""
        await app.initialize()
        app.add_event('Soon', '2026-10-19', '12:00')

        clock.advance(seconds=30)
        soon = [p for e, p in app.projections(TimeUnit.SECONDS) if e.title == 'Soon'][0]
        assert soon.is_past is True
        assert soon.value == 0

        app.add_event('Later', '2026-10-19', '13:00')
        before = {e.title: p.value for e, p in app.projections(TimeUnit.SECONDS)}
        app.tick()
        after = {e.title: p.value for e, p in app.projections(TimeUnit.SECONDS)}
        assert before['Later'] - after['Later'] == 30

    @pytest.mark.asyncio
    async def test_manual_refresh_forces_fetch(self, app, provider):
        """Test a manual refresh bypasses the fresh cache."""
        await app.initialize()
        await app.refresh_holidays(force=True)

        assert provider.fetch.call_count == 2

    @pytest.mark.asyncio
    async def test_forced_initialize_fetches_once(self, app, provider):
        """Test a forced start-up refetches holidays exactly once over a fresh cache."""
        await app.initialize()
        provider.fetch.reset_mock()

        await app.initialize(force=True)

        provider.fetch.assert_called_once()

    @pytest.mark.asyncio
    async def test_periodic_tasks_start_and_stop(self, app, clock, provider):
        """Test the timers tick now and re-check freshness until stopped."""
        await app.initialize()
        clock.advance(days=1)

        app.start()
        assert app.running is True
        await asyncio.sleep(0.1)
        await app.stop()

        assert app.running is False
        assert app.now == clock.now()
        assert provider.fetch.call_count == 2

        calls = provider.fetch.call_count
        clock.advance(days=2)
        await asyncio.sleep(0.05)
        assert provider.fetch.call_count == calls

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_set_of_tasks(self, app):
        """Test start is idempotent."""
        app.start()
        tasks = list(app._tasks)
        app.start()

        assert app._tasks == tasks
        await app.stop()


class TestConfig:
    """Test cases for environment configuration."""

    def test_defaults(self):
        """Test defaults when nothing is set."""
        config = load_config({})

        assert config.storage_backend == 'file'
        assert config.table_name == 'countdown-board'
        assert config.api_key is None
        assert config.model == 'gemini-2.5-flash'
        assert config.timeout_seconds == 30

    def test_environment_overrides(self):
        """Test values are read from the environment."""
        config = load_config({
            'STORAGE_BACKEND': 'DynamoDB',
            'STORE_PATH': '/tmp/board.json',
            'TABLE_NAME': 'boards',
            'LOG_LEVEL': 'DEBUG',
            'GEMINI_API_KEY': 'secret',
            'TIMEOUT_SECONDS': '5',
        })

        assert config.storage_backend == 'dynamodb'
        assert config.store_path == Path('/tmp/board.json')
        assert config.table_name == 'boards'
        assert config.log_level == 'DEBUG'
        assert config.api_key == 'secret'
        assert config.timeout_seconds == 5

    def test_build_store(self, tmp_path):
        """Test the backend is chosen from configuration."""
        assert isinstance(build_store(AppConfig(storage_backend='memory')), InMemoryKeyValueStore)
        assert isinstance(
            build_store(AppConfig(storage_backend='file', store_path=tmp_path / 's.json')),
            JsonFileKeyValueStore
        )
        with pytest.raises(ValueError):
            build_store(AppConfig(storage_backend='redis'))


def test_json_formatter_includes_extra():
    """Test structured log output carries extra fields."""
    record = logging.makeLogRecord({
        'name': 'countdown_app',
        'levelname': 'ERROR',
        'msg': 'Holiday provider failed',
        'error_type': 'ProviderFailure',
    })

    data = json.loads(JsonFormatter().format(record))

    assert data['message'] == 'Holiday provider failed'
    assert data['level'] == 'ERROR'
    assert data['error_type'] == 'ProviderFailure'


def test_format_line():
    """Test console lines show the date, title and countdown."""
    event = make_holiday('holiday-0', '春节', '2027-02-06T00:00:00')

    assert format_line(event, Projection('110.5', False, TimeUnit.DAYS)) == '2月6日  春节  110.5 天'
    assert format_line(event, Projection(0, True, TimeUnit.SECONDS)) == '2月6日  春节  已结束'


class TestMain:
    """Test cases for the console entry point."""

    @patch('countdown_app.setup_logging')
    def test_main_prints_fallback_board(self, mock_setup_logging, capsys, monkeypatch):
        """Test a run without an API key prints the fallback holidays."""
        monkeypatch.setenv('STORAGE_BACKEND', 'memory')
        monkeypatch.delenv('API_KEY', raising=False)
        monkeypatch.delenv('GEMINI_API_KEY', raising=False)

        exit_code = main(['--unit', 'hours', '--sort', 'title'])

        assert exit_code == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 5
        assert all('小时' in line for line in lines)

    @patch('countdown_app.setup_logging')
    def test_main_refresh_fetches_once(self, mock_setup_logging, monkeypatch):
        """Test --refresh results in a single holiday fetch."""
        monkeypatch.setenv('STORAGE_BACKEND', 'memory')

        with patch('countdown_app.GeminiHolidayProvider.fetch', return_value=[]) as mock_fetch:
            exit_code = main(['--refresh'])

        assert exit_code == 0
        assert mock_fetch.call_count == 1

    @patch('countdown_app.setup_logging')
    def test_main_reports_failure(self, mock_setup_logging, monkeypatch):
        """Test unexpected errors give a non-zero exit code."""
        monkeypatch.setenv('STORAGE_BACKEND', 'redis')

        assert main([]) == 1
