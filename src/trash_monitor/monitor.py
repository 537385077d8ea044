"""Polling monitor that turns trash usage into threshold-crossing events."""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from .formatting import format_bytes

if TYPE_CHECKING:
    from .aggregator import SizeAggregator, UsageSnapshot
    from .config import MonitorConfig


class MonitorState(Enum):
    """Lifecycle state of the monitor."""

    STOPPED = "stopped"
    RUNNING = "running"


@dataclass(frozen=True)
class CrossingEvent:
    """Trash usage went from below to at or above the threshold."""

    current_bytes: int
    threshold_bytes: int
    timestamp: datetime


CrossingCallback = Callable[[CrossingEvent], Awaitable[None] | None]


class ThresholdMonitor:
    """Periodically measures trash usage and raises edge-triggered alerts."""

    def __init__(
        self,
        aggregator: SizeAggregator,
        config: MonitorConfig,
        logger: logging.Logger,
        on_crossing: CrossingCallback | None = None,
        notifications_enabled: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            aggregator: Size aggregator queried on every tick.
            config: Initial monitor configuration.
            logger: Logger instance.
            on_crossing: Callback receiving each dispatched crossing event.
            notifications_enabled: Callable consulted on every crossing. Falls
                back to ``config.notifications_enabled`` if None.

        """
        self.aggregator = aggregator
        self.logger = logger
        self._config = config
        self._on_crossing = on_crossing
        self._notifications_enabled = notifications_enabled

        self._state = MonitorState.STOPPED
        self._task: asyncio.Task[None] | None = None
        self._wakeup = asyncio.Event()
        self._over_threshold = False

        self.last_snapshot: UsageSnapshot | None = None
        self.ticks = 0
        self.crossings = 0
        self.notifications_sent = 0

    @property
    def state(self) -> MonitorState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the monitor timer is active."""
        return self._state is MonitorState.RUNNING

    @property
    def config(self) -> MonitorConfig:
        """Active configuration snapshot."""
        return self._config

    @property
    def over_threshold(self) -> bool:
        """Hysteresis flag: True while usage stays at or above the threshold."""
        return self._over_threshold

    async def start(self) -> None:
        """Start the repeating timer. The first tick runs immediately."""
        if self._state is MonitorState.RUNNING:
            self.logger.info("Trash monitoring already running")
            return

        self._state = MonitorState.RUNNING
        self._wakeup.clear()
        self._task = asyncio.create_task(self._run(), name="threshold-monitor")
        self.logger.info(
            "Starting trash monitoring with threshold %s every %.1fs",
            format_bytes(self._config.threshold_bytes),
            self._config.poll_interval,
        )

    async def stop(self) -> None:
        """Stop scheduling ticks and wait for an in-flight tick to finish."""
        task, self._task = self._task, None
        if self._state is MonitorState.STOPPED and task is None:
            return

        self._state = MonitorState.STOPPED
        self._wakeup.set()

        if task is not None and task is not asyncio.current_task():
            await task
        self.logger.info("Trash monitoring stopped")

    def update_config(self, threshold_bytes: int, poll_interval: float) -> MonitorConfig:
        """Replace threshold and interval, effective from the next tick.

        Args:
            threshold_bytes: New alert threshold in bytes.
            poll_interval: New tick interval in seconds.

        Returns:
            The configuration now in effect.

        Raises:
            ValueError: If either value is not positive. The previous
                configuration stays in effect.

        """
        new_config = dataclasses.replace(
            self._config,
            threshold_bytes=threshold_bytes,
            poll_interval=poll_interval,
        )
        self._config = new_config
        self.logger.info(
            "Monitor configuration updated: threshold %s, interval %.1fs",
            format_bytes(new_config.threshold_bytes),
            new_config.poll_interval,
        )

        # Wake the timer so it recomputes its deadline with the new interval
        if self._state is MonitorState.RUNNING:
            self._wakeup.set()
        return new_config

    def _is_current_timer(self) -> bool:
        return self._state is MonitorState.RUNNING and asyncio.current_task() is self._task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self._is_current_timer():
            started = loop.time()
            await self.check()

            while self._is_current_timer():
                self._wakeup.clear()
                remaining = started + self._config.poll_interval - loop.time()
                if remaining <= 0:
                    break
                try:
                    async with asyncio.timeout(remaining):
                        await self._wakeup.wait()
                except TimeoutError:
                    break

    async def check(self) -> UsageSnapshot | None:
        """Run a single tick: aggregate, evaluate and dispatch.

        Returns:
            The snapshot taken, or None if aggregation failed.

        """
        config = self._config
        try:
            snapshot = await asyncio.to_thread(self.aggregator.aggregate)
        except Exception:
            self.logger.exception("Error during trash size check")
            return None

        self.ticks += 1
        self.last_snapshot = snapshot
        self.logger.info(
            "Trash size: %s (threshold: %s)",
            format_bytes(snapshot.total_bytes),
            format_bytes(config.threshold_bytes),
        )

        if event := self.evaluate(snapshot, config):
            await self._dispatch(event, config)
        return snapshot

    def evaluate(self, snapshot: UsageSnapshot, config: MonitorConfig) -> CrossingEvent | None:
        """Apply the edge-triggered rule to a snapshot.

        Args:
            snapshot: Usage measured this tick.
            config: Configuration read at the start of the tick.

        Returns:
            CrossingEvent on an upward crossing, None otherwise.

        """
        if snapshot.total_bytes < config.threshold_bytes:
            if self._over_threshold:
                self.logger.info("Trash size back below threshold")
            self._over_threshold = False
            return None

        if self._over_threshold:
            return None

        self._over_threshold = True
        self.crossings += 1
        self.logger.warning(
            "Trash size threshold reached: %s >= %s",
            format_bytes(snapshot.total_bytes),
            format_bytes(config.threshold_bytes),
        )
        return CrossingEvent(
            current_bytes=snapshot.total_bytes,
            threshold_bytes=config.threshold_bytes,
            timestamp=datetime.now(UTC),
        )

    async def _dispatch(self, event: CrossingEvent, config: MonitorConfig) -> None:
        if self._notifications_enabled is not None:
            enabled = self._notifications_enabled()
        else:
            enabled = config.notifications_enabled

        if not enabled:
            self.logger.info("Crossing alert suppressed: notifications disabled or muted")
            return
        if self._on_crossing is None:
            return

        try:
            result = self._on_crossing(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            self.logger.exception("Error handling trash threshold event")
            return
        self.notifications_sent += 1
