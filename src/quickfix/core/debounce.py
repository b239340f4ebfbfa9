"""Debounced execution of an async action."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from quickfix.utils.logging import get_logger
from quickfix.utils.metrics import get_metrics

logger = get_logger(__name__)
metrics = get_metrics()


class DebouncedSave:
    """Runs an action once a quiet period has passed since the last request.

    Each ``schedule()`` cancels the pending timer and starts a new one, so a
    burst of requests results in a single run timed from the last of them.
    At most one timer is pending; a run that has already started is never
    cancelled by a newer request.
    """

    def __init__(
        self,
        action: Callable[[], Awaitable[Any]],
        delay_seconds: float = 3.0,
    ) -> None:
        """Initialize the debouncer.

        Args:
            action: Coroutine function to run after the quiet period
            delay_seconds: Quiet period in seconds
        """
        self.action = action
        self.delay_seconds = delay_seconds
        self._task: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self) -> None:
        """Request a run, superseding any pending one.

        Must be called from within a running event loop.
        """
        if self.pending:
            self._task.cancel()
            metrics.saves_coalesced_total.inc()

        self._generation += 1
        self._task = asyncio.get_running_loop().create_task(self._run_after_delay(self._generation))
        metrics.save_pending.set(1)

    def cancel(self) -> None:
        """Drop the pending run, if any."""
        if self.pending:
            self._task.cancel()
        self._task = None
        metrics.save_pending.set(0)

    async def _run_after_delay(self, generation: int) -> None:
        await asyncio.sleep(self.delay_seconds)
        if generation != self._generation:
            return

        # Detach before running so a new schedule() starts a fresh timer
        # instead of cancelling this run.
        self._task = None
        metrics.save_pending.set(0)
        try:
            await self.action()
        except Exception as e:
            logger.error("debounced_action_failed", error=str(e))
