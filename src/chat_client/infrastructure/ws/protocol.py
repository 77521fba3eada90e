"""WebSocket frame models and the inbound decoder."""
from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from chat_client.application.dto.events import (
    AuthError,
    AuthSuccess,
    ChannelEvent,
    MessageAck,
    MessageReceived,
    PresenceChanged,
    ServerError,
    TypingSignal,
)
from chat_client.application.dto.message import SendMessageDTO
from chat_client.infrastructure.http.mappers.message import payload_to_entity
from chat_client.infrastructure.http.schemas import MessagePayload


class ProtocolError(ValueError):
    """Inbound frame that is not valid JSON or not a known frame type."""


class _Frame(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# Server → Client

class AuthSuccessFrame(_Frame):
    type: Literal["auth_success"]
    user_id: str | None = None


class AuthErrorFrame(_Frame):
    type: Literal["auth_error"]
    message: str = ""


class NewMessageFrame(_Frame):
    type: Literal["new_message"]
    message: MessagePayload


class MessageSentFrame(_Frame):
    type: Literal["message_sent"]
    message: MessagePayload


class TypingFrame(_Frame):
    type: Literal["typing"]
    user_id: str


class UserStatusFrame(_Frame):
    type: Literal["user_status_change"]
    user_id: str
    is_online: bool


class ErrorFrame(_Frame):
    type: Literal["error"]
    message: str = ""


InboundFrame = Annotated[
    Union[
        AuthSuccessFrame,
        AuthErrorFrame,
        NewMessageFrame,
        MessageSentFrame,
        TypingFrame,
        UserStatusFrame,
        ErrorFrame,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundFrame] = TypeAdapter(InboundFrame)


# Client → Server

class AuthFrame(_Frame):
    type: Literal["auth"] = "auth"
    token: str


class OutboundMessageFrame(_Frame):
    type: Literal["message"] = "message"
    receiver_id: str
    content: str
    product_id: str | None = None


def encode_auth(token: str) -> str:
    return AuthFrame(token=token).model_dump_json(by_alias=True)


def encode_message(dto: SendMessageDTO) -> str:
    frame = OutboundMessageFrame(
        receiver_id=dto.receiver_id,
        content=dto.content,
        product_id=dto.product_id,
    )
    return frame.model_dump_json(by_alias=True, exclude_none=True)


def decode_frame(raw: str | bytes) -> ChannelEvent:
    try:
        frame = _inbound_adapter.validate_json(raw)
    except PydanticValidationError as exc:
        raise ProtocolError(f"invalid frame: {exc.errors(include_url=False)[:1]}") from exc

    if isinstance(frame, AuthSuccessFrame):
        return AuthSuccess(user_id=frame.user_id)
    if isinstance(frame, AuthErrorFrame):
        return AuthError(message=frame.message)
    if isinstance(frame, NewMessageFrame):
        return MessageReceived(message=payload_to_entity(frame.message))
    if isinstance(frame, MessageSentFrame):
        return MessageAck(message=payload_to_entity(frame.message))
    if isinstance(frame, TypingFrame):
        return TypingSignal(user_id=frame.user_id)
    if isinstance(frame, UserStatusFrame):
        return PresenceChanged(user_id=frame.user_id, is_online=frame.is_online)
    return ServerError(message=frame.message)
