"""Base protocols for reclamation strategies."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ReclaimStrategy(Protocol):
    """One technique for permanently emptying the trash."""

    name: str

    def run(self) -> str:
        """Empty the trash.

        Returns:
            Short description of what was done, for the attempt log.

        Raises:
            ReclaimStrategyFailed: If the trash could not be emptied.

        """
        ...


@runtime_checkable
class TrashAutomation(Protocol):
    """Narrow view of a host automation model exposing trash items."""

    def items(self) -> list[str]:
        """List identifiers of the items currently in the trash."""
        ...

    def try_bulk_empty_verb(self) -> bool:
        """Invoke a bulk "empty" verb if the host exposes one.

        Returns:
            True if the verb exists and completed.

        """
        ...

    def delete_item(self, item_id: str) -> bool:
        """Permanently delete one trash item.

        Returns:
            True if the item was deleted.

        """
        ...
