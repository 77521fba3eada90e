from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    receiver_id: str
    content: str
    product_id: str | None = None


@dataclass(frozen=True, slots=True)
class AttachmentDTO:
    filename: str
    data: bytes
    content_type: str = "application/octet-stream"
