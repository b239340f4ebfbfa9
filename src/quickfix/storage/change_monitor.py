"""Background watcher for changes committed by other connections."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from quickfix.storage.sqlite_adapter import SQLiteAdapter
from quickfix.utils.logging import get_logger

logger = get_logger(__name__)


class RemoteChangeMonitor:
    """Polls the database data version and reports outside commits.

    Another process writing to the same database file (a second shell, a
    sync job) bumps SQLite's data version for this connection. Each bump
    triggers ``on_change`` once.
    """

    def __init__(
        self,
        adapter: SQLiteAdapter,
        on_change: Callable[[], Awaitable[Any]],
        interval_seconds: float = 2.0,
    ) -> None:
        """Initialize change monitor.

        Args:
            adapter: Initialized SQLite adapter to probe
            on_change: Coroutine function called after an outside commit
            interval_seconds: Interval between probes
        """
        self.adapter = adapter
        self.on_change = on_change
        self.interval_seconds = interval_seconds
        self._last_version: int | None = None

    async def check(self) -> bool:
        """Probe once.

        Returns:
            True if an outside commit was seen since the previous probe
        """
        version = await self.adapter.data_version()
        if self._last_version is None:
            self._last_version = version
            return False
        if version == self._last_version:
            return False

        self._last_version = version
        logger.debug("remote_change_detected", data_version=version)
        await self.on_change()
        return True

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Probe until shutdown.

        Args:
            shutdown_event: Event to signal shutdown
        """
        logger.info("remote_change_monitor_started", interval_seconds=self.interval_seconds)

        while not shutdown_event.is_set():
            try:
                await self.check()
            except Exception as e:
                logger.error("remote_change_monitor_error", error=str(e))

            # Wait for next interval or shutdown
            try:
                await asyncio.wait_for(
                    shutdown_event.wait(),
                    timeout=self.interval_seconds,
                )
            except asyncio.TimeoutError:
                pass  # Continue to next iteration

        logger.info("remote_change_monitor_stopped")
