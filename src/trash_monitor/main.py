"""Main entry point for the trash monitor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from .config import Settings, SettingsStore
from .daemon import TrashMonitorDaemon
from .errors import ConfigLoadFailed, ReclaimFailed
from .formatting import format_bytes


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Arguments to parse. Uses ``sys.argv`` if None.

    Returns:
        Parsed arguments.

    """
    parser = argparse.ArgumentParser(
        prog="trash-monitor",
        description="Watch trash size, alert on a threshold and empty it on demand",
    )

    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("run", help="Run the monitor daemon")
    subparsers.add_parser("status", help="Show current trash usage per volume")

    empty_parser = subparsers.add_parser("empty", help="Permanently empty the trash")
    empty_parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Do not ask for confirmation",
    )

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument("--init", action="store_true", help="Create default configuration file")
    config_parser.add_argument("--show", action="store_true", help="Show current configuration")
    config_parser.add_argument("--reset", action="store_true", help="Reset configuration to defaults")
    config_parser.add_argument("--threshold", type=int, default=None, help="Alert threshold in bytes")
    config_parser.add_argument("--interval", type=int, default=None, help="Poll interval in milliseconds")
    mute_group = config_parser.add_mutually_exclusive_group()
    mute_group.add_argument("--mute-hours", type=int, default=None, help="Mute alerts for N hours")
    mute_group.add_argument("--mute-days", type=int, default=None, help="Mute alerts for N days")
    config_parser.add_argument("--unmute", action="store_true", help="Clear the mute window")

    return parser.parse_args(argv)


def cmd_status(settings: Settings, args: argparse.Namespace) -> int:
    """Execute status command.

    Args:
        settings: Loaded settings.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    from .aggregator import SizeAggregator

    console = Console()
    aggregator = SizeAggregator(logging.getLogger("trash-monitor"))
    snapshot = aggregator.aggregate()

    table = Table(title=f"Trash usage: {format_bytes(snapshot.total_bytes)}")
    table.add_column("Volume", style="cyan")
    table.add_column("Size", style="green", justify="right")

    for root, size in sorted(snapshot.per_root_bytes.items()):
        table.add_row(root, format_bytes(size))

    console.print(table)

    if snapshot.total_bytes >= settings.threshold_bytes:
        console.print(f"[yellow]Above threshold of {format_bytes(settings.threshold_bytes)}[/yellow]")
    else:
        console.print(f"[green]Below threshold of {format_bytes(settings.threshold_bytes)}[/green]")
    return 0


def cmd_empty(settings: Settings, store: SettingsStore, args: argparse.Namespace) -> int:
    """Execute empty command.

    Args:
        settings: Loaded settings.
        store: Settings store.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()

    if not args.yes and not Confirm.ask(
        "Are you sure you want to empty the trash? This action cannot be undone."
    ):
        console.print("[yellow]Cancelled[/yellow]")
        return 1

    daemon = TrashMonitorDaemon(settings, store)
    try:
        report = asyncio.run(daemon.empty_trash())
    except ReclaimFailed as e:
        console.print(f"[red]Failed to empty trash: {e.reason}[/red]")
        return 1

    freed = report.freed_bytes
    suffix = f", freed {format_bytes(freed)}" if freed is not None else ""
    console.print(f"[green]Trash emptied via {report.strategy_name}{suffix}[/green]")
    return 0


def cmd_config(settings: Settings, store: SettingsStore, args: argparse.Namespace) -> int:
    """Execute config command.

    Args:
        settings: Loaded settings.
        store: Settings store.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    console = Console()

    if args.init:
        if store.path.exists():
            console.print(f"[yellow]Config already exists: {store.path}[/yellow]")
            return 1
        store.save(settings)
        console.print(f"[green]Created config: {store.path}[/green]")
        return 0

    if args.reset:
        store.reset()
        console.print(f"[green]Reset config to defaults: {store.path}[/green]")
        return 0

    changes = (args.threshold, args.interval, args.mute_hours, args.mute_days)
    if any(value is not None for value in changes) or args.unmute:
        for name, value in (
            ("threshold", args.threshold),
            ("interval", args.interval),
            ("mute-hours", args.mute_hours),
            ("mute-days", args.mute_days),
        ):
            if value is not None and value <= 0:
                console.print(f"[red]{name} must be positive[/red]")
                return 1
        if args.threshold is not None:
            settings.threshold_bytes = args.threshold
        if args.interval is not None:
            settings.poll_interval_ms = args.interval
        if args.mute_hours is not None:
            settings.mute_for_hours(args.mute_hours)
        if args.mute_days is not None:
            settings.mute_for_days(args.mute_days)
        if args.unmute:
            settings.unmute()
        store.save(settings)
        console.print(f"[green]Updated config: {store.path}[/green]")
        return 0

    if args.show:
        table = Table(title="Current Configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        table.add_row("Threshold", format_bytes(settings.threshold_bytes))
        table.add_row("Poll interval", f"{settings.poll_interval_ms}ms")
        table.add_row("Notifications", settings.mute_status_text() if settings.notifications_enabled else "Disabled")
        table.add_row("Settings poll interval", f"{settings.config_poll_interval}s")
        table.add_row("Reclaim command", " ".join(settings.reclaim_command or []) or "(platform default)")
        table.add_row("Log file", str(settings.log_file))
        table.add_row("Log level", settings.log_level)

        console.print(table)
        return 0

    console.print("[yellow]Use --init, --show, --reset or a setting option[/yellow]")
    return 1


def cmd_run(settings: Settings, store: SettingsStore, args: argparse.Namespace) -> int:
    """Execute run command.

    Args:
        settings: Loaded settings.
        store: Settings store.
        args: Parsed arguments.

    Returns:
        Exit code.

    """
    daemon = TrashMonitorDaemon(settings, store)
    asyncio.run(daemon.run_daemon())
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code.

    """
    args = parse_args(argv)
    store = SettingsStore(args.config)

    # Default to run command
    command = args.command or "run"

    # Only the daemon writes default settings on first run
    try:
        settings = store.load() if command == "run" else Settings.load(store.path)
    except ConfigLoadFailed as e:
        Console(stderr=True).print(f"[red]Invalid configuration: {e}[/red]")
        return 1

    if command == "status":
        return cmd_status(settings, args)
    elif command == "empty":
        return cmd_empty(settings, store, args)
    elif command == "config":
        return cmd_config(settings, store, args)
    elif command == "run":
        return cmd_run(settings, store, args)
    else:
        print(f"Unknown command: {command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
