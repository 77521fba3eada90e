from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from chat_client.domain.value_objects.ids import TEMP_ID_PREFIX, is_temp_id


@dataclass(frozen=True, slots=True)
class Message:
    id: str
    sender_id: str
    receiver_id: str
    content: str | None
    created_at: datetime
    image_url: str | None = None
    is_read: bool = False
    product_id: str | None = None

    def is_temporary(self, prefix: str = TEMP_ID_PREFIX) -> bool:
        return is_temp_id(self.id, prefix)

    def peer_of(self, user_id: str) -> str:
        """The other participant, as seen by ``user_id``."""
        return self.receiver_id if self.sender_id == user_id else self.sender_id
