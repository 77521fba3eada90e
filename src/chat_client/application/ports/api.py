from __future__ import annotations

from typing import Protocol

from chat_client.application.dto.message import AttachmentDTO, SendMessageDTO
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.reaction import Reaction
from chat_client.domain.entities.thread import ThreadSummary
from chat_client.domain.value_objects.enums import DisappearingDuration, ReactionKind


class MessagesApi(Protocol):
    async def list_threads(self) -> list[ThreadSummary]: ...

    async def list_messages(self, peer_id: str) -> list[Message]: ...

    async def send_message(self, dto: SendMessageDTO) -> Message: ...

    async def send_attachment(self, dto: SendMessageDTO, attachment: AttachmentDTO) -> Message: ...

    async def delete_message(self, message_id: str) -> None: ...

    async def unread_count(self) -> int: ...


class ReactionsApi(Protocol):
    async def list_reactions(self, message_id: str) -> list[Reaction]: ...

    async def add_reaction(self, message_id: str, reaction: ReactionKind) -> Reaction: ...

    async def remove_reaction(self, message_id: str) -> None: ...


class ConversationsApi(Protocol):
    async def list_archived(self) -> list[str]: ...

    async def archive(self, peer_id: str) -> None: ...

    async def unarchive(self, peer_id: str) -> None: ...

    async def mark_read(self, peer_id: str) -> None: ...

    async def get_disappearing(self, peer_id: str) -> DisappearingDuration: ...

    async def set_disappearing(self, peer_id: str, duration: DisappearingDuration) -> None: ...


class ChatApi(MessagesApi, ReactionsApi, ConversationsApi, Protocol):
    """Full request/response surface of the messaging backend."""

    async def fetch_ws_token(self) -> str: ...
