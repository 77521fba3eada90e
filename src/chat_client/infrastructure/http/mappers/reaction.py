from __future__ import annotations

from chat_client.domain.entities.reaction import Reaction
from chat_client.infrastructure.http.schemas import ReactionPayload


def payload_to_entity(payload: ReactionPayload) -> Reaction:
    return Reaction(
        message_id=payload.message_id,
        user_id=payload.user_id,
        reaction=payload.reaction,
    )
