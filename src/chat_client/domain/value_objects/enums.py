from __future__ import annotations

from enum import IntEnum, StrEnum


class ChannelState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_AUTH = "awaiting_auth"
    CONNECTED = "connected"
    ERROR = "error"


class ReactionKind(StrEnum):
    HEART = "heart"
    THUMBS_UP = "thumbs_up"
    LAUGH = "laugh"
    SURPRISED = "surprised"
    SAD = "sad"
    ANGRY = "angry"


class DisappearingDuration(IntEnum):
    OFF = 0
    DAY = 86400
    WEEK = 604800
    NINETY_DAYS = 7776000


class CloseCode(IntEnum):
    NORMAL = 1000
    GOING_AWAY = 1001
    ABNORMAL = 1006
