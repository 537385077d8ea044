"""Settings watcher that hot-applies threshold and interval changes."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from .config import Settings
from .errors import ConfigLoadFailed

if TYPE_CHECKING:
    from .config import SettingsStore
    from .monitor import ThresholdMonitor


class ConfigWatcher:
    """Polls the settings store and pushes changes to the monitor."""

    def __init__(
        self,
        store: SettingsStore,
        monitor: ThresholdMonitor,
        logger: logging.Logger,
        initial: Settings | None = None,
        interval: float | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            store: Settings store to poll.
            monitor: Monitor receiving configuration updates.
            logger: Logger instance.
            initial: Settings the monitor was started with. Defaults if None.
            interval: Poll cadence in seconds. Uses ``initial.config_poll_interval``
                if None.

        """
        self.store = store
        self.monitor = monitor
        self.logger = logger
        self.settings = initial or Settings()
        self.interval = interval or self.settings.config_poll_interval
        self._applied = (self.settings.threshold_bytes, self.settings.poll_interval_ms)
        self._task: asyncio.Task[None] | None = None
        self.load_failures = 0

    def alerts_enabled(self) -> bool:
        """Check the latest settings for enabled, unmuted notifications."""
        return self.settings.alerts_enabled

    async def poll(self) -> bool:
        """Reload settings once and apply any threshold or interval change.

        Returns:
            True if the monitor configuration was updated.

        """
        try:
            settings = await asyncio.to_thread(self.store.load)
        except ConfigLoadFailed as e:
            self.load_failures += 1
            self.logger.warning("Failed to load settings, keeping last known good: %s", e)
            return False
        return self.apply(settings)

    def apply(self, settings: Settings) -> bool:
        """Adopt freshly loaded settings.

        Args:
            settings: Settings just read from the store.

        Returns:
            True if the monitor configuration was updated.

        """
        wanted = (settings.threshold_bytes, settings.poll_interval_ms)
        if wanted == self._applied:
            self.settings = settings
            return False

        try:
            self.monitor.update_config(settings.threshold_bytes, settings.poll_interval_ms / 1000)
        except ValueError as e:
            self.logger.warning("Rejected settings change, keeping previous values: %s", e)
            return False

        self.logger.info(
            "Settings changed: threshold %d -> %d bytes, interval %d -> %d ms",
            self._applied[0],
            wanted[0],
            self._applied[1],
            wanted[1],
        )
        self._applied = wanted
        self.settings = settings
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.poll()
            except Exception:
                self.load_failures += 1
                self.logger.exception("Error polling settings, keeping last known good")

    def start(self) -> None:
        """Start polling the settings store."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name="config-watcher")
        self.logger.info("Watching settings: %s (every %.1fs)", self.store.path, self.interval)

    async def stop(self) -> None:
        """Stop polling the settings store."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self.logger.info("Settings watcher stopped")

    @property
    def is_running(self) -> bool:
        """Check if watcher is running."""
        return self._task is not None
