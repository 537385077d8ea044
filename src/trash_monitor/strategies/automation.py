"""Strategy that empties the trash through a host automation model."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..errors import ReclaimStrategyFailed

if TYPE_CHECKING:
    from .base import TrashAutomation

logger = logging.getLogger(__name__)


class AutomationReclaimStrategy:
    """Enumerates trash items and deletes them via an automation adapter."""

    def __init__(self, automation: TrashAutomation, name: str = "automation") -> None:
        self.automation = automation
        self.name = name

    def run(self) -> str:
        """Empty the trash, succeeding if anything was deleted or it was already empty."""
        try:
            items = self.automation.items()
        except OSError as e:
            raise ReclaimStrategyFailed(f"cannot enumerate trash items: {e}") from e

        if not items:
            return "trash already empty"

        if self.automation.try_bulk_empty_verb():
            return f"bulk empty verb removed {len(items)} items"

        deleted = 0
        for item_id in items:
            try:
                if self.automation.delete_item(item_id):
                    deleted += 1
                else:
                    logger.warning("Failed to delete trash item: %s", item_id)
            except OSError as e:
                logger.warning("Failed to delete trash item %s: %s", item_id, e)

        if deleted == 0:
            raise ReclaimStrategyFailed(f"could not delete any of {len(items)} trash items")
        return f"deleted {deleted} of {len(items)} items"
