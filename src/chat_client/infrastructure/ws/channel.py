"""Transport channel: one authenticated WebSocket per user session.

States: disconnected -> connecting -> awaiting_auth -> connected, with
error reachable from any of them. Failed or abnormally closed
connections are retried with exponential backoff; the attempt counter
resets only when the server confirms authentication.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from chat_client.application.dto.events import AuthError, AuthSuccess, ChannelEvent
from chat_client.application.dto.message import SendMessageDTO
from chat_client.application.exceptions import ChannelClosedError
from chat_client.application.ports.auth import TokenProvider
from chat_client.application.ports.transport import Connection, Connector
from chat_client.domain.value_objects.enums import ChannelState, CloseCode
from chat_client.infrastructure.ws.protocol import (
    ProtocolError,
    decode_frame,
    encode_auth,
    encode_message,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[ChannelState], None]
Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    return min(base_delay * (2 ** attempt), max_delay)


class TransportChannel:
    def __init__(
        self,
        url: str,
        connector: Connector,
        tokens: TokenProvider,
        *,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 10,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._url = url
        self._connector = connector
        self._tokens = tokens
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._max_attempts = max_attempts
        self._sleep = sleep

        self._state = ChannelState.DISCONNECTED
        self._conn: Connection | None = None
        self._attempts = 0
        self._run_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._listeners: list[StateListener] = []
        self._closed = False

        self.events: asyncio.Queue[ChannelEvent] = asyncio.Queue()
        self.exhausted = False

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ChannelState.CONNECTED

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # --- lifecycle ---

    def connect(self) -> None:
        """Start connecting. Resets an exhausted reconnect budget."""
        if self._closed:
            raise ChannelClosedError("channel has been closed")
        if self._run_task is not None and not self._run_task.done():
            return
        self._cancel_reconnect()
        if self.exhausted:
            self._attempts = 0
            self.exhausted = False
        self._start_attempt()

    async def close(self) -> None:
        """Tear down: normal closure, all timers cancelled, no further events."""
        if self._closed:
            return
        self._closed = True
        current = asyncio.current_task()
        for task in (self._reconnect_task, self._run_task):
            if task is None or task.done() or task is current:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._reconnect_task = None
        self._run_task = None

        conn, self._conn = self._conn, None
        if conn is not None:
            await self._close_quietly(conn, CloseCode.NORMAL, "session ended")
        self._set_state(ChannelState.DISCONNECTED)
        self._listeners.clear()
        logger.info("Transport channel closed")

    # --- outbound ---

    async def send(self, payload: str) -> bool:
        """Push a frame. Returns False, without raising, when not connected."""
        conn = self._conn
        if self._state != ChannelState.CONNECTED or conn is None:
            logger.debug("Send skipped, channel is %s", self._state)
            return False
        try:
            await conn.send_text(payload)
        except Exception as exc:
            logger.warning("WS send failed: %s", exc)
            return False
        return True

    async def send_message(self, dto: SendMessageDTO) -> bool:
        return await self.send(encode_message(dto))

    # --- internals ---

    def _set_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        logger.debug("Channel %s -> %s", self._state, state)
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Channel state listener failed")

    def _emit(self, event: ChannelEvent) -> None:
        if self._closed:
            return
        self.events.put_nowait(event)

    def _start_attempt(self) -> None:
        self._run_task = asyncio.create_task(self._run(), name="transport-channel")

    def _cancel_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None

    def _schedule_reconnect(self) -> None:
        if self._closed:
            return
        if self._attempts >= self._max_attempts:
            self.exhausted = True
            logger.warning(
                "Max reconnection attempts (%d) reached, staying on polling fallback",
                self._max_attempts,
            )
            return
        self._cancel_reconnect()
        delay = backoff_delay(self._attempts, self._base_delay, self._max_delay)
        logger.info("Scheduling reconnection attempt %d in %.2fs", self._attempts + 1, delay)
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(delay), name="transport-channel-reconnect",
        )

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        if self._closed:
            return
        self._attempts += 1
        self._reconnect_task = None
        self._start_attempt()

    async def _fail(self, reason: str) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            await self._close_quietly(conn, CloseCode.NORMAL, reason)
        self._set_state(ChannelState.ERROR)
        self._schedule_reconnect()

    async def _run(self) -> None:
        self._set_state(ChannelState.CONNECTING)
        try:
            token = await self._tokens.get_token()
            conn = await self._connector.connect(self._url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("WS connect failed: %s", exc)
            await self._fail("connect failed")
            return

        self._conn = conn
        self._set_state(ChannelState.AWAITING_AUTH)
        try:
            await conn.send_text(encode_auth(token))
            async for raw in conn.receive():
                try:
                    event = decode_frame(raw)
                except ProtocolError as exc:
                    logger.warning("Dropping inbound frame: %s", exc)
                    continue

                if isinstance(event, AuthSuccess):
                    self._attempts = 0
                    self._set_state(ChannelState.CONNECTED)
                    logger.info("WebSocket authenticated")
                elif isinstance(event, AuthError):
                    logger.error("WebSocket auth error: %s", event.message)
                    self._tokens.invalidate()
                    self._emit(event)
                    await self._fail("auth failed")
                    return
                self._emit(event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("WebSocket read loop failed")
            await self._fail("read loop failed")
            return

        self._conn = None
        code = conn.close_code
        self._set_state(ChannelState.DISCONNECTED)
        if code == CloseCode.NORMAL:
            logger.info("WebSocket closed normally")
            return
        logger.info("WebSocket closed abnormally (code=%s)", code)
        self._schedule_reconnect()

    @staticmethod
    async def _close_quietly(conn: Connection, code: int, reason: str) -> None:
        try:
            await conn.close(code=code, reason=reason)
        except Exception:
            logger.debug("Error while closing WS connection", exc_info=True)
