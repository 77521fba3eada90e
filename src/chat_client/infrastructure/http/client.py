"""httpx-backed implementation of application.ports.api.ChatApi."""
from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from chat_client.application.dto.message import AttachmentDTO, SendMessageDTO
from chat_client.application.exceptions import ApiError
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.reaction import Reaction
from chat_client.domain.entities.thread import ThreadSummary
from chat_client.domain.value_objects.enums import DisappearingDuration, ReactionKind
from chat_client.infrastructure.http.mappers import message as message_mapper
from chat_client.infrastructure.http.mappers import reaction as reaction_mapper
from chat_client.infrastructure.http.mappers import thread as thread_mapper
from chat_client.infrastructure.http.schemas import (
    ArchivedPayload,
    DisappearingPayload,
    MessagePayload,
    ReactionPayload,
    SendMessageRequest,
    ThreadPayload,
    UnreadCountPayload,
    WsTokenPayload,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_messages_adapter = TypeAdapter(list[MessagePayload])
_threads_adapter = TypeAdapter(list[ThreadPayload])
_reactions_adapter = TypeAdapter(list[ReactionPayload])
_archived_adapter = TypeAdapter(list[ArchivedPayload])


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase


class HttpChatApi:
    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = 20.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers or {},
            timeout=timeout,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(f"{method} {path} failed: {exc}") from exc
        if response.is_error:
            detail = _error_detail(response)
            logger.warning("%s %s -> %d %s", method, path, response.status_code, detail)
            raise ApiError(detail, status_code=response.status_code)
        return response

    @staticmethod
    def _parse(response: httpx.Response, schema: type[BaseModel] | TypeAdapter[T]) -> Any:
        try:
            if isinstance(schema, TypeAdapter):
                return schema.validate_json(response.content)
            return schema.model_validate_json(response.content)
        except PydanticValidationError as exc:
            raise ApiError(
                f"Malformed response from {response.request.url.path}: {exc.error_count()} errors",
                status_code=response.status_code,
            ) from exc

    # --- messages ---

    async def list_threads(self) -> list[ThreadSummary]:
        response = await self._request("GET", "/api/messages/threads")
        return [thread_mapper.payload_to_entity(t) for t in self._parse(response, _threads_adapter)]

    async def list_messages(self, peer_id: str) -> list[Message]:
        response = await self._request("GET", f"/api/messages/{peer_id}")
        return [message_mapper.payload_to_entity(m) for m in self._parse(response, _messages_adapter)]

    async def send_message(self, dto: SendMessageDTO) -> Message:
        body = SendMessageRequest(
            receiver_id=dto.receiver_id,
            content=dto.content,
            product_id=dto.product_id,
        ).model_dump(by_alias=True, exclude_none=True)
        response = await self._request("POST", "/api/messages", json=body)
        return message_mapper.payload_to_entity(self._parse(response, MessagePayload))

    async def send_attachment(self, dto: SendMessageDTO, attachment: AttachmentDTO) -> Message:
        data = {"receiverId": dto.receiver_id, "content": dto.content}
        if dto.product_id:
            data["productId"] = dto.product_id
        files = {"attachment": (attachment.filename, attachment.data, attachment.content_type)}
        response = await self._request(
            "POST", "/api/messages/with-attachment", data=data, files=files,
        )
        return message_mapper.payload_to_entity(self._parse(response, MessagePayload))

    async def delete_message(self, message_id: str) -> None:
        await self._request("DELETE", f"/api/messages/{message_id}")

    async def unread_count(self) -> int:
        response = await self._request("GET", "/api/messages/unread-count")
        return self._parse(response, UnreadCountPayload).count

    # --- reactions ---

    async def list_reactions(self, message_id: str) -> list[Reaction]:
        response = await self._request("GET", f"/api/messages/{message_id}/reactions")
        return [reaction_mapper.payload_to_entity(r) for r in self._parse(response, _reactions_adapter)]

    async def add_reaction(self, message_id: str, reaction: ReactionKind) -> Reaction:
        response = await self._request(
            "POST", f"/api/messages/{message_id}/reactions", json={"reaction": reaction.value},
        )
        return reaction_mapper.payload_to_entity(self._parse(response, ReactionPayload))

    async def remove_reaction(self, message_id: str) -> None:
        await self._request("DELETE", f"/api/messages/{message_id}/reactions")

    # --- conversations ---

    async def list_archived(self) -> list[str]:
        response = await self._request("GET", "/api/conversations/archived")
        return [a.other_user_id for a in self._parse(response, _archived_adapter)]

    async def archive(self, peer_id: str) -> None:
        await self._request("POST", f"/api/conversations/{peer_id}/archive")

    async def unarchive(self, peer_id: str) -> None:
        await self._request("DELETE", f"/api/conversations/{peer_id}/archive")

    async def mark_read(self, peer_id: str) -> None:
        await self._request("POST", f"/api/conversations/{peer_id}/read")

    async def get_disappearing(self, peer_id: str) -> DisappearingDuration:
        response = await self._request("GET", f"/api/conversations/{peer_id}/disappearing")
        payload = self._parse(response, DisappearingPayload)
        if not payload.is_enabled:
            return DisappearingDuration.OFF
        try:
            return DisappearingDuration(payload.duration)
        except ValueError as exc:
            raise ApiError(f"Unknown disappearing duration {payload.duration}") from exc

    async def set_disappearing(self, peer_id: str, duration: DisappearingDuration) -> None:
        await self._request(
            "POST",
            f"/api/conversations/{peer_id}/disappearing",
            json={"duration": int(duration)},
        )

    # --- auth ---

    async def fetch_ws_token(self) -> str:
        response = await self._request("GET", "/api/auth/ws-token")
        return self._parse(response, WsTokenPayload).token
