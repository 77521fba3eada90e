"""Wire shapes of the REST collaborator (camelCase JSON)."""
from __future__ import annotations

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chat_client.domain.value_objects.enums import ReactionKind


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class MessagePayload(_CamelModel):
    id: str
    sender_id: str
    receiver_id: str
    content: str | None = None
    image_url: str | None = None
    is_read: bool | None = False
    product_id: str | None = None
    created_at: datetime


class UserPayload(_CamelModel):
    id: str
    first_name: str | None = None
    last_name: str | None = None
    profile_image_url: str | None = None


class ThreadPayload(_CamelModel):
    user: UserPayload
    last_message: MessagePayload | None = None
    unread_count: int = 0


class ReactionPayload(_CamelModel):
    message_id: str
    user_id: str
    # stored server-side in an ``emoji`` column
    reaction: ReactionKind = Field(validation_alias=AliasChoices("reaction", "emoji"))


class ArchivedPayload(_CamelModel):
    other_user_id: str


class DisappearingPayload(_CamelModel):
    is_enabled: bool | None = False
    duration: int = 0


class UnreadCountPayload(BaseModel):
    count: int = 0


class WsTokenPayload(BaseModel):
    token: str


class SendMessageRequest(_CamelModel):
    receiver_id: str
    content: str
    product_id: str | None = None
