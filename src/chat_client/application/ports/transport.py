from __future__ import annotations

from typing import AsyncIterator, Protocol

from chat_client.application.dto.message import SendMessageDTO


class Connection(Protocol):
    """One open duplex text connection."""

    @property
    def close_code(self) -> int | None: ...

    async def send_text(self, data: str) -> None: ...

    def receive(self) -> AsyncIterator[str]:
        """Yield text frames until the connection closes."""
        ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class Connector(Protocol):
    async def connect(self, url: str) -> Connection: ...


class OutboundChannel(Protocol):
    """What the reconciliation engine needs from the transport channel."""

    @property
    def is_connected(self) -> bool: ...

    async def send_message(self, dto: SendMessageDTO) -> bool: ...
