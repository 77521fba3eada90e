"""Shared test fixtures and in-memory fakes."""
from __future__ import annotations

import asyncio
import itertools
import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable

import pytest

from chat_client.application.dto.message import AttachmentDTO, SendMessageDTO
from chat_client.application.exceptions import ApiError
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.reaction import Reaction
from chat_client.domain.entities.thread import ChatUser, ThreadSummary
from chat_client.domain.value_objects.enums import DisappearingDuration, ReactionKind

ME = "user-me"
PEER = "user-peer"
OTHER = "user-other"

_BASE_TIME = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def make_message(
    message_id: str,
    *,
    sender_id: str = PEER,
    receiver_id: str = ME,
    content: str | None = "hello",
    minutes: int = 0,
    image_url: str | None = None,
) -> Message:
    return Message(
        id=message_id,
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        image_url=image_url,
        created_at=_BASE_TIME + timedelta(minutes=minutes),
    )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


@dataclass
class FakeChatApi:
    """In-memory stand-in for the REST collaborator."""

    user_id: str = ME
    histories: dict[str, list[Message]] = field(default_factory=dict)
    threads: list[ThreadSummary] = field(default_factory=list)
    reactions: dict[str, list[Reaction]] = field(default_factory=dict)
    archived: list[str] = field(default_factory=list)
    disappearing: dict[str, DisappearingDuration] = field(default_factory=dict)
    fail_send: bool = False
    fail_history: bool = False
    fail_threads: bool = False
    send_gate: asyncio.Event | None = None
    history_gate: asyncio.Event | None = None
    calls: list[str] = field(default_factory=list)
    _ids: Any = field(default_factory=lambda: itertools.count(42))

    def _create(self, dto: SendMessageDTO, image_url: str | None = None) -> Message:
        message = Message(
            id=f"msg_{next(self._ids)}",
            sender_id=self.user_id,
            receiver_id=dto.receiver_id,
            content=dto.content or ("[Image]" if image_url else ""),
            image_url=image_url,
            product_id=dto.product_id,
            created_at=datetime.now(timezone.utc),
        )
        self.histories.setdefault(dto.receiver_id, []).append(message)
        return message

    async def list_threads(self) -> list[ThreadSummary]:
        self.calls.append("list_threads")
        if self.fail_threads:
            raise ApiError("threads unavailable", status_code=500)
        return list(self.threads)

    async def list_messages(self, peer_id: str) -> list[Message]:
        self.calls.append(f"list_messages:{peer_id}")
        if self.history_gate is not None:
            await self.history_gate.wait()
        if self.fail_history:
            raise ApiError("history unavailable", status_code=500)
        return list(self.histories.get(peer_id, []))

    async def send_message(self, dto: SendMessageDTO) -> Message:
        self.calls.append("send_message")
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.fail_send:
            raise ApiError("You cannot message this user", status_code=403)
        return self._create(dto)

    async def send_attachment(self, dto: SendMessageDTO, attachment: AttachmentDTO) -> Message:
        self.calls.append("send_attachment")
        if self.fail_send:
            raise ApiError("upload failed", status_code=500)
        return self._create(dto, image_url=f"https://cdn.test/{attachment.filename}")

    async def delete_message(self, message_id: str) -> None:
        self.calls.append(f"delete_message:{message_id}")
        for history in self.histories.values():
            history[:] = [m for m in history if m.id != message_id]

    async def unread_count(self) -> int:
        return sum(t.unread_count for t in self.threads)

    async def list_reactions(self, message_id: str) -> list[Reaction]:
        return list(self.reactions.get(message_id, []))

    async def add_reaction(self, message_id: str, reaction: ReactionKind) -> Reaction:
        self.calls.append(f"add_reaction:{reaction}")
        created = Reaction(message_id=message_id, user_id=self.user_id, reaction=reaction)
        items = [r for r in self.reactions.get(message_id, []) if r.user_id != self.user_id]
        self.reactions[message_id] = items + [created]
        return created

    async def remove_reaction(self, message_id: str) -> None:
        self.calls.append("remove_reaction")
        self.reactions[message_id] = [
            r for r in self.reactions.get(message_id, []) if r.user_id != self.user_id
        ]

    async def list_archived(self) -> list[str]:
        return list(self.archived)

    async def archive(self, peer_id: str) -> None:
        self.archived.append(peer_id)

    async def unarchive(self, peer_id: str) -> None:
        self.archived.remove(peer_id)

    async def mark_read(self, peer_id: str) -> None:
        self.calls.append(f"mark_read:{peer_id}")

    async def get_disappearing(self, peer_id: str) -> DisappearingDuration:
        return self.disappearing.get(peer_id, DisappearingDuration.OFF)

    async def set_disappearing(self, peer_id: str, duration: DisappearingDuration) -> None:
        self.disappearing[peer_id] = duration

    async def fetch_ws_token(self) -> str:
        return "ws-token"


class FakeConnection:
    """Scripted duplex connection. ``None`` in the inbound queue ends the stream."""

    def __init__(self, server: FakeConnector) -> None:
        self._server = server
        self._inbound: asyncio.Queue[str | None] = asyncio.Queue()
        self.sent: list[dict[str, Any]] = []
        self.close_code: int | None = None
        self.closed = False

    def push(self, frame: dict[str, Any] | str) -> None:
        self._inbound.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self, code: int | None = 1006) -> None:
        self.close_code = code
        self._inbound.put_nowait(None)

    async def send_text(self, data: str) -> None:
        if self.closed:
            raise ConnectionError("connection closed")
        frame = json.loads(data)
        self.sent.append(frame)
        self._server.on_frame(self, frame)

    async def receive(self) -> AsyncIterator[str]:
        while True:
            raw = await self._inbound.get()
            if raw is None:
                return
            yield raw

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        if self.close_code is None:
            self.close_code = code
        self._inbound.put_nowait(None)


@dataclass
class FakeConnector:
    """Plays the server side: answers auth and echoes sends as acks."""

    failures: int = 0
    always_fail: bool = False
    reject_auth: bool = False
    auto_ack: bool = True
    user_id: str = ME
    connections: list[FakeConnection] = field(default_factory=list)
    attempts: int = 0
    _ids: Any = field(default_factory=lambda: itertools.count(100))

    async def connect(self, url: str) -> FakeConnection:
        self.attempts += 1
        if self.always_fail or self.failures > 0:
            self.failures -= 1
            raise ConnectionError(f"cannot reach {url}")
        conn = FakeConnection(self)
        self.connections.append(conn)
        return conn

    @property
    def current(self) -> FakeConnection:
        return self.connections[-1]

    def on_frame(self, conn: FakeConnection, frame: dict[str, Any]) -> None:
        if frame["type"] == "auth":
            if self.reject_auth:
                conn.push({"type": "auth_error", "message": "Invalid or expired token"})
            else:
                conn.push({"type": "auth_success", "userId": self.user_id})
        elif frame["type"] == "message" and self.auto_ack:
            conn.push({"type": "message_sent", "message": self.server_message(frame)})

    def server_message(self, frame: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": f"msg_{next(self._ids)}",
            "senderId": self.user_id,
            "receiverId": frame["receiverId"],
            "content": frame["content"],
            "isRead": False,
            "createdAt": datetime.now(timezone.utc).isoformat(),
        }


@dataclass
class FakeTokens:
    fail: bool = False
    fetches: int = 0
    invalidations: int = 0

    async def get_token(self) -> str:
        self.fetches += 1
        if self.fail:
            raise ApiError("Failed to generate token", status_code=500)
        return f"token-{self.fetches}"

    def invalidate(self) -> None:
        self.invalidations += 1


@dataclass
class RecordingSleep:
    """Records requested delays and yields once instead of sleeping."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def api() -> FakeChatApi:
    return FakeChatApi()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def tokens() -> FakeTokens:
    return FakeTokens()


@pytest.fixture
def peer_thread() -> ThreadSummary:
    return ThreadSummary(user=ChatUser(id=PEER, first_name="Ada"), unread_count=2)
