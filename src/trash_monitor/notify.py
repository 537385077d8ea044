"""Alert dispatch for threshold crossings."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from rich.console import Console
from rich.panel import Panel

from .formatting import format_bytes

if TYPE_CHECKING:
    from .monitor import CrossingEvent


class Severity(Enum):
    """Notification severity."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_SEVERITY_STYLES = {
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red",
}

_SEVERITY_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


@runtime_checkable
class Notifier(Protocol):
    """Interface of the alert dispatcher."""

    def notify(self, title: str, message: str, severity: Severity) -> None:
        """Deliver an alert to the operator."""
        ...


class ConsoleNotifier:
    """Shows alerts on the terminal and records them in the log."""

    def __init__(self, logger: logging.Logger, console: Console | None = None) -> None:
        self.logger = logger
        self.console = console or Console(stderr=True)

    def notify(self, title: str, message: str, severity: Severity = Severity.INFO) -> None:
        """Render an alert panel and log it.

        Args:
            title: Alert title.
            message: Alert body.
            severity: Alert severity.

        """
        style = _SEVERITY_STYLES[severity]
        self.console.print(Panel(message, title=f"[bold {style}]{title}[/bold {style}]", border_style=style))
        self.logger.log(_SEVERITY_LEVELS[severity], "Notification sent: %s - %s", title, message)


class CrossingAlertDispatcher:
    """Turns crossing events into operator alerts on a single notifier."""

    TITLE = "Trash Size Alert"

    def __init__(self, notifier: Notifier) -> None:
        self.notifier = notifier

    @staticmethod
    def format_message(event: CrossingEvent) -> str:
        """Build the alert text for a crossing event."""
        return (
            f"Trash has reached {format_bytes(event.current_bytes)} "
            f"(threshold: {format_bytes(event.threshold_bytes)}). "
            "Consider emptying the trash to free up disk space."
        )

    def __call__(self, event: CrossingEvent) -> None:
        self.notifier.notify(self.TITLE, self.format_message(event), Severity.WARNING)
