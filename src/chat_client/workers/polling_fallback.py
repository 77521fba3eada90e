"""Polling fallback: periodic refetch while the WebSocket is not connected."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class PollingFallback:
    """Runs ``refetch`` every ``interval`` seconds unless ``is_connected()``.

    Ticks are sequential, so a slow refetch delays the next tick instead of
    overlapping with it.
    """

    def __init__(
        self,
        refetch: Callable[[], Awaitable[None]],
        is_connected: Callable[[], bool],
        *,
        interval: float = 5.0,
        name: str = "polling-fallback",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._refetch = refetch
        self._is_connected = is_connected
        self._interval = interval
        self._name = name
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self.polls = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=self._name)
        logger.info("Polling fallback started (%s, every %.1fs)", self._name, self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Polling fallback stopped (%s)", self._name)

    async def poll_once(self) -> bool:
        """One tick. Returns True when a refetch was attempted."""
        if self._is_connected():
            return False
        self.polls += 1
        logger.debug("WebSocket not connected, polling for messages...")
        try:
            await self._refetch()
        except Exception:
            logger.exception("Polling refetch failed")
        return True

    async def _run(self) -> None:
        while True:
            await self._sleep(self._interval)
            await self.poll_once()
