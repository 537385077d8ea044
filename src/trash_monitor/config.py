"""Configuration management for the trash monitor."""

from __future__ import annotations

import logging
import os
import shlex
import tempfile
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigLoadFailed

DEFAULT_THRESHOLD_BYTES = 10 * 1024**3  # 10 GiB
DEFAULT_POLL_INTERVAL_MS = 30_000

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})


def parse_bool(value: Any, default: bool) -> bool:
    """Parse a lenient boolean value from YAML.

    Args:
        value: Raw value (bool, int, str or None).
        default: Value to use when ``value`` is None.

    Returns:
        Parsed boolean.

    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    return str(value).strip().lower() in _TRUE_STRINGS


def _parse_positive_int(data: dict[str, Any], key: str) -> int:
    raw = data[key]
    # YAML booleans are ints and floats would be truncated
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise ConfigLoadFailed(f"{key} must be an integer, got {raw!r}")
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ConfigLoadFailed(f"{key} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigLoadFailed(f"{key} must be positive, got {value}")
    return value


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError as e:
            raise ConfigLoadFailed(f"mute_until is not a timestamp: {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data[key]
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigLoadFailed(f"{key} must be a mapping, got {value!r}")
    return value


def _parse_command(value: Any) -> list[str] | None:
    """Accept a command as an argument list or a shell-style string."""
    if value is None or value == "" or value == []:
        return None
    if isinstance(value, str):
        try:
            return shlex.split(value)
        except ValueError as e:
            raise ConfigLoadFailed(f"reclaim.command cannot be parsed: {e}") from e
    if isinstance(value, list) and all(isinstance(part, str | int | float) for part in value):
        return [str(part) for part in value]
    raise ConfigLoadFailed(f"reclaim.command must be a list or a string, got {value!r}")


@dataclass(frozen=True)
class MonitorConfig:
    """Immutable monitor settings, replaced as a whole on every change."""

    threshold_bytes: int
    poll_interval: float  # seconds
    notifications_enabled: bool = True

    def __post_init__(self) -> None:
        if self.threshold_bytes <= 0:
            raise ValueError(f"threshold_bytes must be positive, got {self.threshold_bytes}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")


@dataclass
class Settings:
    """Persistent settings record shared by the monitor and the CLI."""

    # Size at which a crossing alert is raised
    threshold_bytes: int = DEFAULT_THRESHOLD_BYTES

    # Monitor tick interval
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    notifications_enabled: bool = True
    mute_until: datetime | None = None

    # Shell preferences, stored but not interpreted by the monitor
    minimize_to_tray: bool = True
    start_with_os: bool = False
    show_balloon_tips: bool = True

    # How often the settings file is re-read (seconds)
    config_poll_interval: float = 5.0

    # Overrides the platform's native empty-trash command
    reclaim_command: list[str] | None = None

    # Logging
    log_file: Path = field(
        default_factory=lambda: Path.home() / ".local/state/trash-monitor/trash-monitor.log"
    )
    log_level: str = "INFO"

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the default configuration file path."""
        return Path.home() / ".config/trash-monitor/config.yaml"

    @classmethod
    def load(cls, config_path: Path | None = None) -> Settings:
        """Load settings from a YAML file.

        Args:
            config_path: Path to config file. Uses default if None.

        Returns:
            Loaded settings, or defaults if the file does not exist.

        Raises:
            ConfigLoadFailed: If the file cannot be read or holds invalid values.

        """
        if config_path is None:
            config_path = cls.get_config_path()

        try:
            if not config_path.exists():
                return cls()
            with config_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigLoadFailed(f"Cannot read {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigLoadFailed(f"Expected a mapping in {config_path}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create settings from a dictionary."""
        settings = cls()

        if "threshold_bytes" in data:
            settings.threshold_bytes = _parse_positive_int(data, "threshold_bytes")
        if "poll_interval_ms" in data:
            settings.poll_interval_ms = _parse_positive_int(data, "poll_interval_ms")
        if "notifications_enabled" in data:
            settings.notifications_enabled = parse_bool(data["notifications_enabled"], True)
        if "mute_until" in data:
            settings.mute_until = _parse_timestamp(data["mute_until"])
        if "config_poll_interval" in data:
            try:
                settings.config_poll_interval = float(data["config_poll_interval"])
            except (TypeError, ValueError) as e:
                raise ConfigLoadFailed("config_poll_interval must be a number") from e
            if settings.config_poll_interval <= 0:
                raise ConfigLoadFailed("config_poll_interval must be positive")

        if "tray" in data:
            tray = _section(data, "tray")
            settings.minimize_to_tray = parse_bool(tray.get("minimize_to_tray"), True)
            settings.start_with_os = parse_bool(tray.get("start_with_os"), False)
            settings.show_balloon_tips = parse_bool(tray.get("show_balloon_tips"), True)

        if "reclaim" in data:
            settings.reclaim_command = _parse_command(_section(data, "reclaim").get("command"))

        if "logging" in data:
            logging_cfg = _section(data, "logging")
            if "file" in logging_cfg:
                settings.log_file = Path(os.path.expanduser(str(logging_cfg["file"])))
            if "level" in logging_cfg:
                settings.log_level = str(logging_cfg["level"])

        return settings

    def to_dict(self) -> dict[str, Any]:
        """Serialize settings to a YAML-friendly dictionary."""
        return {
            "threshold_bytes": self.threshold_bytes,
            "poll_interval_ms": self.poll_interval_ms,
            "notifications_enabled": self.notifications_enabled,
            "mute_until": self.mute_until.isoformat() if self.mute_until else None,
            "config_poll_interval": self.config_poll_interval,
            "tray": {
                "minimize_to_tray": self.minimize_to_tray,
                "start_with_os": self.start_with_os,
                "show_balloon_tips": self.show_balloon_tips,
            },
            "reclaim": {
                "command": self.reclaim_command,
            },
            "logging": {
                "file": str(self.log_file),
                "level": self.log_level,
            },
        }

    def save(self, config_path: Path | None = None) -> None:
        """Save settings, replacing the file atomically.

        Args:
            config_path: Path to save config. Uses default if None.

        """
        if config_path is None:
            config_path = self.get_config_path()

        config_path.parent.mkdir(parents=True, exist_ok=True)

        # Readers only ever see the old or the new file, never a partial write
        fd, tmp_name = tempfile.mkstemp(
            dir=config_path.parent, prefix=f".{config_path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, config_path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def monitor_config(self) -> MonitorConfig:
        """Build the immutable monitor configuration from these settings.

        Raises:
            ValueError: If threshold or interval is not positive.

        """
        return MonitorConfig(
            threshold_bytes=self.threshold_bytes,
            poll_interval=self.poll_interval_ms / 1000,
            notifications_enabled=self.notifications_enabled,
        )

    @property
    def is_muted(self) -> bool:
        """Check whether alerts are currently muted."""
        return self.mute_until is not None and datetime.now(UTC) < self.mute_until

    @property
    def alerts_enabled(self) -> bool:
        """Check whether crossing alerts should be dispatched right now."""
        return self.notifications_enabled and not self.is_muted

    def mute_for_hours(self, hours: int) -> None:
        """Mute alerts for a number of hours."""
        self.mute_until = datetime.now(UTC) + timedelta(hours=hours)

    def mute_for_days(self, days: int) -> None:
        """Mute alerts for a number of days."""
        self.mute_until = datetime.now(UTC) + timedelta(days=days)

    def unmute(self) -> None:
        """Clear any active mute window."""
        self.mute_until = None

    def mute_status_text(self) -> str:
        """Describe the mute state for display."""
        if not self.is_muted or self.mute_until is None:
            return "Notifications enabled"

        remaining = self.mute_until - datetime.now(UTC)
        hours, rest = divmod(int(remaining.total_seconds()), 3600)
        minutes = rest // 60
        if hours < 24:
            return f"Muted for {hours}h {minutes}m"
        return f"Muted for {hours // 24}d {hours % 24}h"


class SettingsStore:
    """File-backed settings store with whole-record load and save."""

    def __init__(self, path: Path | None = None, logger: logging.Logger | None = None) -> None:
        """Initialize the store.

        Args:
            path: Settings file path. Uses the default location if None.
            logger: Logger instance.

        """
        self.path = path or Settings.get_config_path()
        self.logger = logger or logging.getLogger("trash-monitor")

    def load(self) -> Settings:
        """Load settings, writing defaults on first run.

        Raises:
            ConfigLoadFailed: If an existing file is unreadable or corrupt.

        """
        try:
            exists = self.path.exists()
        except OSError as e:
            raise ConfigLoadFailed(f"Cannot access {self.path}: {e}") from e

        if not exists:
            self.logger.info("Settings file not found, creating defaults: %s", self.path)
            settings = Settings()
            try:
                self.save(settings)
            except OSError as e:
                self.logger.warning("Could not write default settings: %s", e)
            return settings

        return Settings.load(self.path)

    def save(self, settings: Settings) -> None:
        """Persist the whole settings record."""
        settings.save(self.path)
        self.logger.debug("Settings saved: %s", self.path)

    def reset(self) -> Settings:
        """Overwrite the stored settings with defaults."""
        self.logger.info("Resetting settings to defaults")
        settings = Settings()
        self.save(settings)
        return settings
