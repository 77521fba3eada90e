"""Typed events emitted by the transport channel."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from chat_client.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class AuthSuccess:
    user_id: str | None = None


@dataclass(frozen=True, slots=True)
class AuthError:
    message: str = ""


@dataclass(frozen=True, slots=True)
class MessageReceived:
    """A message pushed by the server, originated by a peer or another device."""

    message: Message


@dataclass(frozen=True, slots=True)
class MessageAck:
    """Confirmation of a message this client sent over the channel."""

    message: Message


@dataclass(frozen=True, slots=True)
class TypingSignal:
    user_id: str


@dataclass(frozen=True, slots=True)
class PresenceChanged:
    user_id: str
    is_online: bool


@dataclass(frozen=True, slots=True)
class ServerError:
    message: str = ""


ChannelEvent = Union[
    AuthSuccess,
    AuthError,
    MessageReceived,
    MessageAck,
    TypingSignal,
    PresenceChanged,
    ServerError,
]
