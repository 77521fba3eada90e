from __future__ import annotations

from dataclasses import dataclass

from chat_client.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class ChatUser:
    id: str
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.id


@dataclass(frozen=True, slots=True)
class ThreadSummary:
    """Server-computed projection of one conversation. Never edited locally."""

    user: ChatUser
    unread_count: int = 0
    last_message: Message | None = None
