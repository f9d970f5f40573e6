"""Background loop that enforces dispute deadlines and retries owed escrow calls."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dispute_service.logging import get_logger

if TYPE_CHECKING:
    from dispute_service.services.dispute_service import DisputeService


@dataclass(frozen=True)
class SweepResult:
    """Counts from one sweep."""

    escrow_calls_acknowledged: int
    moved_to_review: int
    closed_after_grace: int


class DisputeSweeper:
    """Periodic sweep over the dispute store.

    Each cycle re-issues owed escrow calls first, then moves disputes whose
    customer counter window elapsed to review, then closes resolved disputes
    past their grace period.
    """

    def __init__(self, service: DisputeService, interval_seconds: int) -> None:
        self._service = service
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._logger = get_logger(__name__)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> SweepResult:
        """Run one sweep cycle."""
        acknowledged = await self._service.retry_owed_escrow_calls()
        moved = await self._service.move_overdue_counters_to_review()
        closed = await self._service.close_resolved_after_grace()
        result = SweepResult(
            escrow_calls_acknowledged=acknowledged,
            moved_to_review=moved,
            closed_after_grace=closed,
        )
        if acknowledged or moved or closed:
            self._logger.info(
                "Sweep completed",
                extra={
                    "escrow_calls_acknowledged": acknowledged,
                    "moved_to_review": moved,
                    "closed_after_grace": closed,
                },
            )
        return result

    async def run(self) -> None:
        """Sweep until stopped."""
        self._logger.info(
            "Dispute sweeper starting",
            extra={"interval_seconds": self._interval_seconds},
        )
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                self._logger.exception("Unhandled error in sweep cycle")
            await asyncio.sleep(self._interval_seconds)

    def start(self) -> None:
        """Schedule the loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._logger.info("Dispute sweeper stopped")
