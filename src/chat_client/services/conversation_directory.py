"""Thread list with server-owned last-message and unread metadata."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from chat_client.application.exceptions import ApiError
from chat_client.application.ports.api import MessagesApi
from chat_client.domain.entities.thread import ThreadSummary

logger = logging.getLogger(__name__)


class ConversationDirectory:
    """Holds the last fetched thread summaries.

    The summaries are never edited locally: ``invalidate`` marks them stale
    and schedules a refetch, coalescing bursts into at most one request in
    flight plus one follow-up.
    """

    def __init__(self, api: MessagesApi) -> None:
        self._api = api
        self._threads: tuple[ThreadSummary, ...] = ()
        self._stale = True
        self._refresh_task: asyncio.Task[None] | None = None
        self._refresh_again = False
        self._listeners: list[Callable[[tuple[ThreadSummary, ...]], None]] = []
        self._closed = False

    @property
    def threads(self) -> tuple[ThreadSummary, ...]:
        return self._threads

    @property
    def stale(self) -> bool:
        return self._stale

    def summary_for(self, peer_id: str) -> ThreadSummary | None:
        for thread in self._threads:
            if thread.user.id == peer_id:
                return thread
        return None

    def subscribe(self, listener: Callable[[tuple[ThreadSummary, ...]], None]) -> None:
        self._listeners.append(listener)

    def invalidate(self) -> None:
        self._stale = True
        if self._closed:
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_again = True
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop(), name="directory-refresh")

    async def refresh(self) -> bool:
        try:
            threads = await self._api.list_threads()
        except ApiError as exc:
            logger.warning("Thread list refresh failed: %s", exc.detail)
            return False
        self._threads = tuple(threads)
        self._stale = False
        for listener in list(self._listeners):
            try:
                listener(self._threads)
            except Exception:
                logger.exception("Directory listener failed")
        return True

    async def wait_idle(self) -> None:
        while self._refresh_task is not None and not self._refresh_task.done():
            await asyncio.shield(self._refresh_task)

    async def close(self) -> None:
        self._closed = True
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
            try:
                await self._refresh_task
            except asyncio.CancelledError:
                pass
        self._refresh_task = None

    async def _refresh_loop(self) -> None:
        while True:
            self._refresh_again = False
            try:
                await self.refresh()
            except Exception:
                logger.exception("Thread list refresh crashed")
            if not self._refresh_again or self._closed:
                return
