"""Automation adapters for trash containers stored as plain directories."""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Iterable
from pathlib import Path

from ..aggregator import StorageRoot, TrashLayout

logger = logging.getLogger(__name__)


class DirectoryTrash:
    """Trash whose items are entries of one or more writable directories.

    There is no bulk verb; items are removed one by one together with
    their metadata companion file, if the layout has one.
    """

    def __init__(
        self,
        item_dirs: Iterable[Path],
        companion: Callable[[Path], Path | None] | None = None,
        skip: Callable[[Path], bool] | None = None,
    ) -> None:
        self.item_dirs = list(item_dirs)
        self._companion = companion or (lambda _path: None)
        self._skip = skip or (lambda _path: False)

    def items(self) -> list[str]:
        """List item paths across all readable item directories."""
        found: list[str] = []
        for directory in self.item_dirs:
            try:
                entries = sorted(directory.iterdir())
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.debug("Cannot list trash directory %s: %s", directory, e)
                continue
            found.extend(str(entry) for entry in entries if not self._skip(entry))
        return found

    def try_bulk_empty_verb(self) -> bool:
        return False

    def delete_item(self, item_id: str) -> bool:
        """Delete one item and its metadata companion."""
        path = Path(item_id)
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Cannot delete %s: %s", path, e)
            return False

        if (companion := self._companion(path)) is not None:
            try:
                companion.unlink(missing_ok=True)
            except OSError as e:
                logger.debug("Cannot delete metadata %s: %s", companion, e)
        return True


def _trashinfo_companion(path: Path) -> Path:
    # <trash>/files/<name> is described by <trash>/info/<name>.trashinfo
    return path.parent.parent / "info" / f"{path.name}.trashinfo"


def freedesktop_trash(topdir_trashes: Iterable[Path] = ()) -> DirectoryTrash:
    """Home trash plus per-volume trashes in the freedesktop.org layout (files/ + info/).

    Args:
        topdir_trashes: Extra ``$topdir/.Trash-<uid>`` directories to empty.

    """
    home_trash = Path(os.environ.get("XDG_DATA_HOME") or Path.home() / ".local/share") / "Trash"
    return DirectoryTrash(
        [trash_dir / "files" for trash_dir in (home_trash, *topdir_trashes)],
        companion=_trashinfo_companion,
    )


def macos_trash() -> DirectoryTrash:
    """The user's ~/.Trash on macOS."""
    return DirectoryTrash([Path.home() / ".Trash"], skip=lambda path: path.name == ".DS_Store")


def _recycle_companion(path: Path) -> Path | None:
    # $R<id>.ext holds the data, $I<id>.ext the original name and date
    if path.name.startswith("$R"):
        return path.with_name("$I" + path.name[2:])
    return None


def _recycle_skip(path: Path) -> bool:
    return path.name.startswith("$I") or path.name.lower() == "desktop.ini"


def recycle_bin_trash(roots: Iterable[StorageRoot], layout: TrashLayout) -> DirectoryTrash:
    """Per-owner $Recycle.Bin directories on every fixed volume.

    Only directories the current user can list contribute items, which in
    practice limits deletion to the user's own recycle bin.
    """
    item_dirs: list[Path] = []
    for root in roots:
        container = root.resolve_container()
        if container is None:
            continue
        try:
            owners = [p for p in container.iterdir() if p.name not in layout.reserved_owners]
        except OSError:
            continue
        item_dirs.extend(owners)
    return DirectoryTrash(item_dirs, companion=_recycle_companion, skip=_recycle_skip)
