from __future__ import annotations

import itertools
import time
from typing import NewType

MessageId = NewType("MessageId", str)

TEMP_ID_PREFIX = "temp-"

_counter = itertools.count(1)


def new_temp_id(prefix: str = TEMP_ID_PREFIX) -> MessageId:
    """Locally unique id for an unconfirmed message.

    Server ids are UUIDs and never carry the prefix, so the two spaces
    cannot collide.
    """
    return MessageId(f"{prefix}{int(time.time() * 1000)}-{next(_counter)}")


def is_temp_id(message_id: str, prefix: str = TEMP_ID_PREFIX) -> bool:
    return message_id.startswith(prefix)
