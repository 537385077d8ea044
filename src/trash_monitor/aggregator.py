"""Permission-aware size aggregation of trash containers across volumes."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import psutil

from .errors import AggregationFailed
from .formatting import format_bytes

# Filesystems that are never treated as fixed local storage
NETWORK_FSTYPES: frozenset[str] = frozenset({
    "nfs",
    "nfs4",
    "cifs",
    "smbfs",
    "smb3",
    "afpfs",
    "webdav",
    "davfs",
    "9p",
    "fuse.sshfs",
})


@dataclass(frozen=True)
class TrashLayout:
    """Names of the trash container on a volume and its privileged owners."""

    primary: str
    legacy: str
    reserved_owners: frozenset[str] = frozenset()


# $Recycle.Bin holds one directory per user SID; S-1-5-18 is LocalSystem
WINDOWS_LAYOUT = TrashLayout("$Recycle.Bin", "RECYCLER", frozenset({"S-1-5-18"}))

# Freedesktop .Trash/<uid> with the macOS .Trashes/<uid> as fallback
POSIX_LAYOUT = TrashLayout(".Trash", ".Trashes", frozenset({"0"}))


def default_layout() -> TrashLayout:
    """Get the trash layout for the running platform."""
    return WINDOWS_LAYOUT if sys.platform == "win32" else POSIX_LAYOUT


@dataclass(frozen=True)
class StorageRoot:
    """A volume and the candidate locations of its trash container."""

    mount: Path
    primary: Path
    legacy: Path
    per_owner: bool = True  # container holds one subdirectory per owner

    @classmethod
    def for_mount(cls, mount: Path, layout: TrashLayout) -> StorageRoot:
        """Build a root for a mount point using the given layout."""
        return cls(mount=mount, primary=mount / layout.primary, legacy=mount / layout.legacy)

    def resolve_container(self) -> Path | None:
        """Get the existing trash container, preferring the primary name.

        Returns:
            Container path, or None if the volume has no trash container.

        """
        for candidate in (self.primary, self.legacy):
            try:
                if candidate.is_dir():
                    return candidate
            except OSError:
                continue
        return None


@dataclass(frozen=True)
class UsageSnapshot:
    """Trash usage measured by a single aggregation pass."""

    total_bytes: int
    per_root_bytes: dict[str, int] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


def _is_fixed_partition(partition: Any) -> bool:
    opts = set(partition.opts.split(","))
    if sys.platform == "win32":
        return "fixed" in opts
    if not partition.fstype:
        return False
    return partition.fstype not in NETWORK_FSTYPES and "remote" not in opts


def _home_trash_root() -> StorageRoot:
    data_home = Path(os.environ.get("XDG_DATA_HOME") or Path.home() / ".local/share")
    return StorageRoot(
        mount=Path.home(),
        primary=data_home / "Trash",
        legacy=Path.home() / ".Trash",
        per_owner=False,
    )


def _user_topdir_root(mount: Path, uid: int) -> StorageRoot:
    # Freedesktop $topdir/.Trash-$uid, created when $topdir/.Trash is unusable
    user_trash = mount / f".Trash-{uid}"
    return StorageRoot(mount=mount, primary=user_trash, legacy=user_trash, per_owner=False)


def discover_roots(layout: TrashLayout | None = None) -> list[StorageRoot]:
    """Enumerate fixed local volumes present right now.

    Args:
        layout: Trash layout to apply. Uses the platform default if None.

    Returns:
        Storage roots for every fixed volume, plus the home trash on POSIX.

    Raises:
        AggregationFailed: If the volume table cannot be read.

    """
    layout = layout or default_layout()
    try:
        partitions = psutil.disk_partitions(all=False)
    except (OSError, psutil.Error) as e:
        raise AggregationFailed(f"Cannot enumerate volumes: {e}") from e

    # Per-user topdir trash is a Linux and BSD layout, macOS uses .Trashes/<uid>
    uid = None
    if sys.platform not in ("win32", "darwin") and hasattr(os, "getuid"):
        uid = os.getuid()
    roots: list[StorageRoot] = []
    seen: set[str] = set()
    for partition in partitions:
        if partition.mountpoint in seen or not _is_fixed_partition(partition):
            continue
        seen.add(partition.mountpoint)
        mount = Path(partition.mountpoint)
        roots.append(StorageRoot.for_mount(mount, layout))
        if uid is not None:
            roots.append(_user_topdir_root(mount, uid))

    if sys.platform != "win32":
        roots.append(_home_trash_root())

    return roots


class SizeAggregator:
    """Sums trash container usage, tolerating unreadable subtrees."""

    def __init__(
        self,
        logger: logging.Logger,
        layout: TrashLayout | None = None,
        roots_provider: Callable[[], Iterable[StorageRoot]] | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            logger: Logger instance.
            layout: Trash layout. Uses the platform default if None.
            roots_provider: Callable returning the roots to walk. Uses
                volume discovery if None.

        """
        self.logger = logger
        self.layout = layout or default_layout()
        self._roots_provider = roots_provider or (lambda: discover_roots(self.layout))

    def aggregate(self) -> UsageSnapshot:
        """Measure trash usage across all storage roots.

        Never raises; unreadable parts of the tree contribute zero.

        Returns:
            Fresh usage snapshot.

        """
        try:
            roots = list(self._roots_provider())
        except AggregationFailed as e:
            self.logger.warning("Trash aggregation failed: %s", e)
            return UsageSnapshot(total_bytes=0)
        except OSError as e:
            self.logger.warning("Trash aggregation failed: cannot enumerate roots: %s", e)
            return UsageSnapshot(total_bytes=0)

        if not roots:
            self.logger.warning("No storage roots found, reporting empty trash")

        per_root: dict[str, int] = {}
        for root in roots:
            size = self.root_size(root)
            per_root[str(root.mount)] = per_root.get(str(root.mount), 0) + size
            self.logger.debug("Trash size for %s: %s", root.mount, format_bytes(size))

        return UsageSnapshot(
            total_bytes=sum(per_root.values()),
            per_root_bytes=per_root,
            timestamp=datetime.now(UTC),
        )

    def root_size(self, root: StorageRoot) -> int:
        """Get the trash usage of one storage root.

        Args:
            root: Storage root to measure.

        Returns:
            Size in bytes; 0 if the root has no trash container.

        """
        container = root.resolve_container()
        if container is None:
            self.logger.debug("No trash container on %s", root.mount)
            return 0

        if not root.per_owner:
            return self.directory_size(container)

        total = 0
        for owner in self._owner_directories(container):
            if owner.name in self.layout.reserved_owners:
                self.logger.debug("Skipping system trash directory: %s", owner.name)
                continue
            total += self.directory_size(owner)
        return total

    def _owner_directories(self, container: Path) -> list[Path]:
        owners: list[Path] = []
        try:
            with os.scandir(container) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            owners.append(Path(entry.path))
                    except OSError:
                        self.logger.debug("Cannot inspect trash entry: %s", entry.path)
        except PermissionError:
            self.logger.debug("Access denied to trash container: %s", container)
        except OSError as e:
            self.logger.warning("Error listing trash container %s: %s", container, e)
        return owners

    def directory_size(self, path: Path) -> int:
        """Recursively sum file sizes below a directory.

        Nodes that cannot be read or vanish during the walk count as 0.

        Args:
            path: Directory to measure.

        Returns:
            Total size in bytes of readable entries.

        """
        total = 0
        pending = [path]

        while pending:
            current = pending.pop()
            try:
                with os.scandir(current) as entries:
                    for entry in entries:
                        try:
                            if entry.is_dir(follow_symlinks=False):
                                pending.append(Path(entry.path))
                            else:
                                total += entry.stat(follow_symlinks=False).st_size
                        except FileNotFoundError:
                            continue
                        except PermissionError:
                            self.logger.debug("Access denied to: %s", entry.path)
                            continue
            except FileNotFoundError:
                continue
            except PermissionError:
                self.logger.debug("Access denied to directory: %s", current)
                continue
            except OSError as e:
                self.logger.warning("Error calculating size of %s: %s", current, e)
                continue

        return total
