from __future__ import annotations

from datetime import timezone

from chat_client.domain.entities.message import Message
from chat_client.infrastructure.http.schemas import MessagePayload


def payload_to_entity(payload: MessagePayload) -> Message:
    created_at = payload.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Message(
        id=payload.id,
        sender_id=payload.sender_id,
        receiver_id=payload.receiver_id,
        content=payload.content,
        image_url=payload.image_url,
        is_read=bool(payload.is_read),
        product_id=payload.product_id,
        created_at=created_at,
    )
