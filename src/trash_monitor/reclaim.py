"""Resilient trash reclamation across ordered fallback strategies."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .errors import ReclaimFailed, ReclaimStrategyFailed
from .formatting import format_bytes

if TYPE_CHECKING:
    from .aggregator import SizeAggregator
    from .strategies.base import ReclaimStrategy


@dataclass(frozen=True)
class ReclaimAttempt:
    """Outcome of running one strategy."""

    strategy_name: str
    success: bool
    started_at: datetime
    finished_at: datetime
    reason: str | None = None  # set on failure
    detail: str | None = None  # strategy summary on success

    @property
    def duration(self) -> float:
        """Seconds spent in the strategy."""
        return (self.finished_at - self.started_at).total_seconds()


@dataclass
class ReclaimReport:
    """Result of a successful reclamation."""

    strategy_name: str
    attempts: list[ReclaimAttempt] = field(default_factory=list)
    bytes_before: int = 0
    bytes_after: int | None = None

    @property
    def freed_bytes(self) -> int | None:
        """Bytes released according to the before/after measurements."""
        if self.bytes_after is None:
            return None
        return max(self.bytes_before - self.bytes_after, 0)


class ReclaimExecutor:
    """Empties the trash by trying strategies in order until one succeeds.

    A strategy's own success report is final. The optional re-measurement
    afterwards is informational: entries owned by the system stay invisible
    to every strategy, so a nonzero residual does not mean failure.

    Calling ``reclaim()`` deletes data unconditionally; callers must obtain
    operator confirmation first.
    """

    def __init__(
        self,
        aggregator: SizeAggregator,
        strategies: list[ReclaimStrategy],
        logger: logging.Logger,
        *,
        verify: bool = True,
    ) -> None:
        """Initialize the executor.

        Args:
            aggregator: Aggregator used to measure usage before and after.
            strategies: Strategies in order of preference.
            logger: Logger instance.
            verify: Whether to re-measure usage after a success.

        Raises:
            ValueError: If no strategies are given.

        """
        if not strategies:
            raise ValueError("At least one reclamation strategy is required")
        self.aggregator = aggregator
        self.strategies = list(strategies)
        self.logger = logger
        self.verify = verify

    async def reclaim(self) -> ReclaimReport:
        """Empty the trash on a worker thread.

        Once started the operation runs to completion even if the awaiting
        task is cancelled.

        Returns:
            Report naming the strategy that succeeded.

        Raises:
            ReclaimFailed: If every strategy failed.

        """
        return await asyncio.shield(asyncio.to_thread(self.reclaim_sync))

    def reclaim_sync(self) -> ReclaimReport:
        """Empty the trash on the calling thread. See ``reclaim``."""
        before = self.aggregator.aggregate().total_bytes
        self.logger.info("Emptying trash (currently %s)", format_bytes(before))

        attempts: list[ReclaimAttempt] = []
        for strategy in self.strategies:
            attempt = self._run_strategy(strategy)
            attempts.append(attempt)
            if attempt.success:
                report = ReclaimReport(
                    strategy_name=strategy.name,
                    attempts=attempts,
                    bytes_before=before,
                )
                if self.verify:
                    self._verify(report)
                return report

        last_reason = attempts[-1].reason or "unknown error"
        self.logger.error("All reclamation strategies failed: %s", last_reason)
        raise ReclaimFailed(last_reason, attempts)

    def _run_strategy(self, strategy: ReclaimStrategy) -> ReclaimAttempt:
        started = datetime.now(UTC)
        self.logger.info("Trying reclamation strategy: %s", strategy.name)
        try:
            summary = strategy.run()
        except ReclaimStrategyFailed as e:
            reason = e.reason
            self.logger.warning("Strategy %s failed: %s", strategy.name, reason)
        except Exception as e:
            # Adapters may raise anything; the next strategy still gets its turn
            reason = f"{type(e).__name__}: {e}"
            self.logger.warning("Strategy %s raised %s", strategy.name, reason, exc_info=True)
        else:
            self.logger.info("Strategy %s succeeded: %s", strategy.name, summary)
            return ReclaimAttempt(
                strategy_name=strategy.name,
                success=True,
                started_at=started,
                finished_at=datetime.now(UTC),
                detail=summary,
            )

        return ReclaimAttempt(
            strategy_name=strategy.name,
            success=False,
            started_at=started,
            finished_at=datetime.now(UTC),
            reason=reason,
        )

    def _verify(self, report: ReclaimReport) -> None:
        report.bytes_after = self.aggregator.aggregate().total_bytes
        if report.bytes_after > 0:
            self.logger.info(
                "Trash emptied by %s; %s remain in entries not reachable by this user",
                report.strategy_name,
                format_bytes(report.bytes_after),
            )
        else:
            self.logger.info("Trash emptied by %s", report.strategy_name)
