"""Reclamation strategies with per-platform defaults."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from ..aggregator import default_layout, discover_roots
from ..errors import AggregationFailed
from .automation import AutomationReclaimStrategy
from .base import ReclaimStrategy, TrashAutomation
from .command import CommandReclaimStrategy
from .local import DirectoryTrash, freedesktop_trash, macos_trash, recycle_bin_trash

if TYPE_CHECKING:
    from ..config import Settings

__all__ = [
    "AutomationReclaimStrategy",
    "CommandReclaimStrategy",
    "DirectoryTrash",
    "ReclaimStrategy",
    "TrashAutomation",
    "default_strategies",
]

WINDOWS_COMMAND = ["powershell", "-NoProfile", "-NonInteractive", "-Command", "Clear-RecycleBin -Force"]
MACOS_COMMAND = ["osascript", "-e", 'tell application "Finder" to empty trash']
GIO_COMMAND = ["gio", "trash", "--empty"]

# Clear-RecycleBin writes this to stderr when the bin is already empty
WINDOWS_BENIGN_ERRORS = (r"cannot find the path specified",)


def _native_command() -> tuple[list[str], tuple[str, ...]]:
    if sys.platform == "win32":
        return WINDOWS_COMMAND, WINDOWS_BENIGN_ERRORS
    if sys.platform == "darwin":
        return MACOS_COMMAND, ()
    return GIO_COMMAND, ()


def _automation_adapter() -> TrashAutomation:
    if sys.platform == "darwin":
        return macos_trash()

    layout = default_layout()
    try:
        roots = discover_roots(layout)
    except AggregationFailed:
        roots = []
    if sys.platform == "win32":
        return recycle_bin_trash(roots, layout)
    return freedesktop_trash(root.primary for root in roots if root.primary.name.startswith(".Trash-"))


def default_strategies(settings: Settings | None = None) -> list[ReclaimStrategy]:
    """Build the ordered strategy list for the running platform.

    Args:
        settings: Settings that may override the native command.

    Returns:
        Native command first, automation adapter second.

    """
    command, benign = _native_command()
    if settings is not None and settings.reclaim_command:
        command, benign = settings.reclaim_command, ()

    return [
        CommandReclaimStrategy(command, benign_errors=benign),
        AutomationReclaimStrategy(_automation_adapter()),
    ]
