"""Main daemon wiring the trash monitor components together."""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

from .aggregator import SizeAggregator
from .config import SettingsStore
from .monitor import ThresholdMonitor
from .notify import ConsoleNotifier, CrossingAlertDispatcher
from .reclaim import ReclaimExecutor, ReclaimReport
from .strategies import default_strategies
from .watcher import ConfigWatcher

if TYPE_CHECKING:
    from .config import Settings
    from .notify import Notifier
    from .strategies.base import ReclaimStrategy

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass
class DaemonStats:
    """Statistics for the daemon."""

    start_time: datetime
    ticks: int = 0
    crossings: int = 0
    notifications_sent: int = 0
    last_total_bytes: int | None = None
    config_load_failures: int = 0


class TrashMonitorDaemon:
    """Runs the threshold monitor and settings watcher until shut down."""

    def __init__(
        self,
        settings: Settings,
        store: SettingsStore | None = None,
        *,
        aggregator: SizeAggregator | None = None,
        notifier: Notifier | None = None,
        strategies: list[ReclaimStrategy] | None = None,
    ) -> None:
        """Initialize the daemon.

        Args:
            settings: Settings loaded at startup.
            store: Settings store watched for changes.
            aggregator: Size aggregator. Uses volume discovery if None.
            notifier: Alert dispatcher. Uses the console if None.
            strategies: Reclamation strategies. Uses platform defaults if None.

        """
        self.settings = settings
        self.logger = self._setup_logging()
        self.store = store or SettingsStore(logger=self.logger)

        self.aggregator = aggregator or SizeAggregator(self.logger)
        self.notifier = notifier or ConsoleNotifier(self.logger)
        self.monitor = ThresholdMonitor(
            self.aggregator,
            settings.monitor_config(),
            self.logger,
            on_crossing=CrossingAlertDispatcher(self.notifier),
            notifications_enabled=self._alerts_enabled,
        )
        self.config_watcher = ConfigWatcher(self.store, self.monitor, self.logger, initial=settings)
        self.executor = ReclaimExecutor(
            self.aggregator,
            strategies or default_strategies(settings),
            self.logger,
        )

        self._start_time = datetime.now()
        self._shutdown = asyncio.Event()

    def _setup_logging(self) -> logging.Logger:
        """Set up logging for the daemon.

        Returns:
            Configured logger instance.

        Raises:
            ValueError: If the configured log level is unknown.

        """
        level_name = self.settings.log_level.upper()
        if level_name not in _VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.settings.log_level!r}")

        logger = logging.getLogger("trash-monitor")
        logger.setLevel(getattr(logging, level_name))

        # Clear existing handlers to avoid duplicates if daemon is recreated
        if logger.handlers:
            logger.handlers.clear()

        console_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
        )
        console_handler.setLevel(logging.INFO)
        logger.addHandler(console_handler)

        self.settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(self.settings.log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")
        )
        logger.addHandler(file_handler)

        return logger

    def _alerts_enabled(self) -> bool:
        return self.config_watcher.alerts_enabled()

    @property
    def stats(self) -> DaemonStats:
        """Current daemon statistics."""
        snapshot = self.monitor.last_snapshot
        return DaemonStats(
            start_time=self._start_time,
            ticks=self.monitor.ticks,
            crossings=self.monitor.crossings,
            notifications_sent=self.monitor.notifications_sent,
            last_total_bytes=snapshot.total_bytes if snapshot else None,
            config_load_failures=self.config_watcher.load_failures,
        )

    async def empty_trash(self) -> ReclaimReport:
        """Empty the trash. The caller is responsible for confirmation.

        Raises:
            ReclaimFailed: If every strategy failed.

        """
        report = await self.executor.reclaim()
        self.logger.info("Trash emptied by user via %s", report.strategy_name)
        return report

    async def run_daemon(self) -> None:
        """Run the daemon continuously."""
        self.logger.info("Starting trash monitor daemon...")
        self._shutdown.clear()

        loop = asyncio.get_running_loop()
        handled: list[signal.Signals] = []
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows event loops have no signal handler support
                break
            handled.append(sig)

        await self.monitor.start()
        self.config_watcher.start()

        try:
            await self._shutdown.wait()
        except asyncio.CancelledError:
            self.logger.info("Daemon cancelled")
            raise
        finally:
            for sig in handled:
                loop.remove_signal_handler(sig)
            await self.config_watcher.stop()
            await self.monitor.stop()
            stats = self.stats
            self.logger.info(
                "Daemon stopped. Stats: ticks=%d, crossings=%d, notifications=%d",
                stats.ticks,
                stats.crossings,
                stats.notifications_sent,
            )

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal."""
        self.logger.info("Shutdown signal received")
        self._shutdown.set()

    def stop(self) -> None:
        """Request the daemon to stop."""
        self._shutdown.set()
