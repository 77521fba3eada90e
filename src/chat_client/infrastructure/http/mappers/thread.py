from __future__ import annotations

from chat_client.domain.entities.thread import ChatUser, ThreadSummary
from chat_client.infrastructure.http.mappers.message import payload_to_entity as message_to_entity
from chat_client.infrastructure.http.schemas import ThreadPayload, UserPayload


def user_to_entity(payload: UserPayload) -> ChatUser:
    return ChatUser(
        id=payload.id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        profile_image_url=payload.profile_image_url,
    )


def payload_to_entity(payload: ThreadPayload) -> ThreadSummary:
    return ThreadSummary(
        user=user_to_entity(payload.user),
        unread_count=payload.unread_count,
        last_message=message_to_entity(payload.last_message) if payload.last_message else None,
    )
