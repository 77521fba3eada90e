"""aiohttp implementation of application.ports.transport.Connector."""
from __future__ import annotations

import logging
from typing import AsyncIterator

import aiohttp
from aiohttp import WSMsgType

logger = logging.getLogger(__name__)


class AiohttpConnection:
    def __init__(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        self._ws = ws

    @property
    def close_code(self) -> int | None:
        return self._ws.close_code

    async def send_text(self, data: str) -> None:
        await self._ws.send_str(data)

    async def receive(self) -> AsyncIterator[str]:
        async for msg in self._ws:
            if msg.type == WSMsgType.TEXT:
                yield msg.data
            elif msg.type == WSMsgType.BINARY:
                yield msg.data.decode("utf-8", errors="replace")
            elif msg.type == WSMsgType.ERROR:
                logger.warning("WS transport error: %s", self._ws.exception())
                break
            elif msg.type in {WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED}:
                break

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if not self._ws.closed:
            await self._ws.close(code=code, message=reason.encode("utf-8"))


class AiohttpConnector:
    """Opens WebSocket connections over a shared aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession | None = None, *, heartbeat: float | None = 30.0) -> None:
        self._session = session
        self._owns_session = session is None
        self._heartbeat = heartbeat

    async def connect(self, url: str) -> AiohttpConnection:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        ws = await self._session.ws_connect(url, heartbeat=self._heartbeat)
        return AiohttpConnection(ws)

    async def aclose(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
