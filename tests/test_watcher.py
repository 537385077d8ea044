"""Tests for the settings watcher."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from trash_monitor.aggregator import UsageSnapshot
from trash_monitor.config import Settings, SettingsStore
from trash_monitor.errors import ConfigLoadFailed
from trash_monitor.monitor import ThresholdMonitor
from trash_monitor.watcher import ConfigWatcher


class _ZeroAggregator:
    def aggregate(self) -> UsageSnapshot:
        return UsageSnapshot(total_bytes=0)


@pytest.fixture
def logger() -> logging.Logger:
    """Create test logger."""
    return logging.getLogger("test-watcher")


@pytest.fixture
def store(tmp_path: Path, logger: logging.Logger) -> SettingsStore:
    """Create a settings store with defaults on disk."""
    store = SettingsStore(tmp_path / "config.yaml", logger=logger)
    store.save(Settings())
    return store


@pytest.fixture
def monitor(logger: logging.Logger) -> ThresholdMonitor:
    """Create an idle monitor using default settings."""
    return ThresholdMonitor(
        _ZeroAggregator(),  # type: ignore[arg-type]
        Settings().monitor_config(),
        logger,
    )


@pytest.fixture
def watcher(store: SettingsStore, monitor: ThresholdMonitor, logger: logging.Logger) -> ConfigWatcher:
    """Create a settings watcher."""
    return ConfigWatcher(store, monitor, logger, initial=Settings(), interval=0.02)


class TestPoll:
    """Tests for a single settings poll."""

    @pytest.mark.asyncio
    async def test_unchanged_settings(self, watcher: ConfigWatcher, monitor: ThresholdMonitor) -> None:
        """Test that an unchanged file does not touch the monitor."""
        config = monitor.config

        assert await watcher.poll() is False
        assert monitor.config is config

    @pytest.mark.asyncio
    async def test_threshold_change_applied(
        self, watcher: ConfigWatcher, store: SettingsStore, monitor: ThresholdMonitor
    ) -> None:
        """Test that a new threshold reaches the monitor."""
        store.save(Settings(threshold_bytes=5000))

        assert await watcher.poll() is True
        assert monitor.config.threshold_bytes == 5000

    @pytest.mark.asyncio
    async def test_interval_change_converted_to_seconds(
        self, watcher: ConfigWatcher, store: SettingsStore, monitor: ThresholdMonitor
    ) -> None:
        """Test that the millisecond interval is applied in seconds."""
        store.save(Settings(poll_interval_ms=2500))

        assert await watcher.poll() is True
        assert monitor.config.poll_interval == 2.5

    @pytest.mark.asyncio
    async def test_corrupt_file_keeps_last_known_good(
        self, watcher: ConfigWatcher, store: SettingsStore, monitor: ThresholdMonitor
    ) -> None:
        """Test that a broken file is counted and otherwise ignored."""
        store.save(Settings(threshold_bytes=5000))
        await watcher.poll()

        store.path.write_text("threshold_bytes: [")

        assert await watcher.poll() is False
        assert watcher.load_failures == 1
        assert monitor.config.threshold_bytes == 5000
        assert watcher.settings.threshold_bytes == 5000

    @pytest.mark.asyncio
    async def test_invalid_value_keeps_last_known_good(
        self, watcher: ConfigWatcher, store: SettingsStore, monitor: ThresholdMonitor
    ) -> None:
        """Test that a non-positive threshold in the file is rejected."""
        store.path.write_text("threshold_bytes: 0\n")

        assert await watcher.poll() is False
        assert watcher.load_failures == 1
        assert monitor.config.threshold_bytes == Settings().threshold_bytes

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["tray: oops\n", "reclaim: 5\n", "logging: x\n"])
    async def test_wrong_section_shape_keeps_last_known_good(
        self, watcher: ConfigWatcher, store: SettingsStore, monitor: ThresholdMonitor, content: str
    ) -> None:
        """Test that a section holding a scalar is counted as a load failure."""
        store.path.write_text(content)

        assert await watcher.poll() is False
        assert watcher.load_failures == 1
        assert monitor.config.threshold_bytes == Settings().threshold_bytes

    @pytest.mark.asyncio
    async def test_unreadable_directory_keeps_last_known_good(
        self, watcher: ConfigWatcher, store: SettingsStore
    ) -> None:
        """Test that a permission error while checking for the file is a load failure."""
        with patch.object(Path, "exists", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(ConfigLoadFailed, match="Cannot access"):
                store.load()
            assert await watcher.poll() is False

        assert watcher.load_failures == 1

    @pytest.mark.asyncio
    async def test_notification_toggle_without_reconfigure(
        self, watcher: ConfigWatcher, store: SettingsStore, monitor: ThresholdMonitor
    ) -> None:
        """Test that toggling notifications needs no monitor update."""
        config = monitor.config
        assert watcher.alerts_enabled()

        store.save(Settings(notifications_enabled=False))

        assert await watcher.poll() is False
        assert not watcher.alerts_enabled()
        assert monitor.config is config

    @pytest.mark.asyncio
    async def test_mute_is_picked_up(self, watcher: ConfigWatcher, store: SettingsStore) -> None:
        """Test that a mute window written by another process is honoured."""
        settings = Settings()
        settings.mute_for_hours(1)
        store.save(settings)

        await watcher.poll()

        assert not watcher.alerts_enabled()


class TestApply:
    """Tests for applying already loaded settings."""

    def test_rejected_values_keep_previous(self, watcher: ConfigWatcher, monitor: ThresholdMonitor) -> None:
        """Test that values refused by the monitor are not adopted."""
        config = monitor.config

        assert watcher.apply(Settings(threshold_bytes=0)) is False

        assert monitor.config is config
        assert watcher.settings.threshold_bytes == Settings().threshold_bytes

    def test_change_then_same_value(self, watcher: ConfigWatcher) -> None:
        """Test that re-applying identical values is not a change."""
        assert watcher.apply(Settings(threshold_bytes=4096)) is True
        assert watcher.apply(Settings(threshold_bytes=4096)) is False


class TestLifecycle:
    """Tests for start and stop."""

    @pytest.mark.asyncio
    async def test_background_polling(
        self, watcher: ConfigWatcher, store: SettingsStore, monitor: ThresholdMonitor
    ) -> None:
        """Test that the background task applies file changes."""
        watcher.start()
        assert watcher.is_running
        try:
            store.save(Settings(threshold_bytes=7777))
            async with asyncio.timeout(2):
                while monitor.config.threshold_bytes != 7777:
                    await asyncio.sleep(0.01)
        finally:
            await watcher.stop()

        assert not watcher.is_running

    @pytest.mark.asyncio
    async def test_background_polling_survives_bad_section(
        self, store: SettingsStore, monitor: ThresholdMonitor, logger: logging.Logger
    ) -> None:
        """Test that a malformed file does not stop later changes from applying."""
        watcher = ConfigWatcher(store, monitor, logger, initial=Settings(), interval=0.01)
        watcher.start()
        try:
            store.path.write_text("tray: oops\n")
            async with asyncio.timeout(2):
                while watcher.load_failures < 1:
                    await asyncio.sleep(0.01)

            store.path.write_text("threshold_bytes: 555\n")
            async with asyncio.timeout(2):
                while monitor.config.threshold_bytes != 555:
                    await asyncio.sleep(0.01)

            assert watcher.is_running
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_background_polling_survives_unexpected_error(
        self, watcher: ConfigWatcher, store: SettingsStore, monitor: ThresholdMonitor
    ) -> None:
        """Test that an arbitrary exception from the store is logged and polling continues."""
        calls = 0

        def flaky_load() -> Settings:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("disk gone")
            return Settings(threshold_bytes=555)

        with patch.object(store, "load", side_effect=flaky_load):
            watcher.start()
            try:
                async with asyncio.timeout(2):
                    while monitor.config.threshold_bytes != 555:
                        await asyncio.sleep(0.01)
            finally:
                await watcher.stop()

        assert watcher.load_failures == 1

    @pytest.mark.asyncio
    async def test_stop_without_start(self, watcher: ConfigWatcher) -> None:
        """Test that stopping an idle watcher is harmless."""
        await watcher.stop()
        assert not watcher.is_running

    def test_interval_defaults_to_settings(
        self, store: SettingsStore, monitor: ThresholdMonitor, logger: logging.Logger
    ) -> None:
        """Test that the poll cadence comes from the initial settings."""
        watcher = ConfigWatcher(store, monitor, logger, initial=Settings(config_poll_interval=2.0))
        assert watcher.interval == 2.0
