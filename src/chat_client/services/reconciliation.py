"""Merge rules between local optimistic writes, pushed events and polled history.

For an incoming confirmed message ``m``:

1. ``m.id`` already confirmed in its conversation -> discard.
2. ``m`` was sent by the current user (ack or own echo) -> replace the
   newest temporary with the same sender and content, in place.
3. otherwise -> append.
4. any accepted mutation invalidates the conversation directory.

Pushed confirmations match temporaries by sender and literal content only,
so two identical messages sent back to back may be confirmed in swapped
order. A REST response replaces its own temporary when it is still present;
a failed send whose temporary was taken by such a confirmation drops the
identical temporary left behind instead.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

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
from chat_client.application.dto.message import AttachmentDTO, SendMessageDTO
from chat_client.application.exceptions import SendFailedError, ValidationError
from chat_client.application.ports.api import MessagesApi
from chat_client.application.ports.transport import OutboundChannel
from chat_client.domain.entities.message import Message
from chat_client.domain.value_objects.ids import TEMP_ID_PREFIX, new_temp_id
from chat_client.services.conversation_directory import ConversationDirectory
from chat_client.services.message_store import MatchPredicate, MessageStore
from chat_client.services.typing_indicator import TypingIndicator

logger = logging.getLogger(__name__)

# A refetched own message only supersedes temporaries created around the same time.
HISTORY_MATCH_WINDOW = timedelta(minutes=5)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def same_send(confirmed: Message) -> MatchPredicate:
    def _match(candidate: Message) -> bool:
        return candidate.sender_id == confirmed.sender_id and candidate.content == confirmed.content

    return _match


def supersedes_in_history(temporary: Message, confirmed: Message) -> bool:
    return (
        same_send(confirmed)(temporary)
        and confirmed.created_at >= temporary.created_at - HISTORY_MATCH_WINDOW
    )


class ReconciliationEngine:
    """Sole writer of the message store."""

    def __init__(
        self,
        store: MessageStore,
        directory: ConversationDirectory,
        api: MessagesApi,
        channel: OutboundChannel,
        current_user_id: str,
        *,
        typing: TypingIndicator | None = None,
        temp_prefix: str = TEMP_ID_PREFIX,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._directory = directory
        self._api = api
        self._channel = channel
        self._user_id = current_user_id
        self._typing = typing or TypingIndicator()
        self._temp_prefix = temp_prefix
        self._clock = clock
        self._loading: dict[str, list[set[str]]] = {}
        self.active_peer: str | None = None
        self.presence: dict[str, bool] = {}

    @property
    def current_user_id(self) -> str:
        return self._user_id

    @property
    def typing(self) -> TypingIndicator:
        return self._typing

    def key_for(self, message: Message) -> str:
        return message.peer_of(self._user_id)

    def is_own(self, message: Message) -> bool:
        return message.sender_id == self._user_id

    # --- inbound ---

    def handle_event(self, event: ChannelEvent) -> None:
        if isinstance(event, MessageReceived):
            self.apply_incoming(event.message)
        elif isinstance(event, MessageAck):
            self.apply_incoming(event.message, ack=True)
        elif isinstance(event, TypingSignal):
            if event.user_id == self.active_peer:
                self._typing.signal()
        elif isinstance(event, PresenceChanged):
            self.presence[event.user_id] = event.is_online
        elif isinstance(event, ServerError):
            logger.warning("Server reported a frame error: %s", event.message)
        elif isinstance(event, (AuthSuccess, AuthError)):
            logger.debug("Auth event %s handled by the channel", type(event).__name__)

    def apply_incoming(self, message: Message, *, ack: bool = False) -> bool:
        key = self.key_for(message)
        if self._store.has_confirmed(key, message.id):
            logger.debug("Discarding already applied message %s", message.id)
            return False

        if ack or self.is_own(message):
            applied = self._store.replace_optimistic(key, message, same_send(message))
        else:
            applied = self._store.append(key, message)

        if applied:
            self._note_loaded(key, message.id)
            self._directory.invalidate()
        return applied

    async def load_history(self, peer_id: str) -> None:
        """Full refetch of one conversation. Raises ApiError on failure."""
        arrived: set[str] = set()
        in_flight = self._loading.setdefault(peer_id, [])
        in_flight.append(arrived)
        try:
            history = await self._api.list_messages(peer_id)
        finally:
            in_flight[:] = [s for s in in_flight if s is not arrived]
            if not in_flight:
                del self._loading[peer_id]
        superseded = self._store.load(
            peer_id, history, supersedes=supersedes_in_history, retain=arrived,
        )
        if superseded:
            logger.debug("History superseded temporaries %s", superseded)
        self._directory.invalidate()

    # --- outbound ---

    async def send(self, receiver_id: str, content: str, *, product_id: str | None = None) -> Message:
        """Optimistically insert, then deliver over the channel or REST.

        Returns the temporary message when delivered over the channel (the
        ack is reconciled later), or the confirmed message after a REST send.
        """
        if not content or not content.strip():
            raise ValidationError("Message content is required")
        dto = SendMessageDTO(receiver_id=receiver_id, content=content, product_id=product_id)
        temp = self._insert_temporary(dto, content)

        if self._channel.is_connected and await self._channel.send_message(dto):
            return temp
        return await self._send_via_api(temp, self._api.send_message(dto))

    async def send_attachment(
        self,
        receiver_id: str,
        attachment: AttachmentDTO,
        content: str = "",
        *,
        product_id: str | None = None,
    ) -> Message:
        dto = SendMessageDTO(receiver_id=receiver_id, content=content, product_id=product_id)
        temp = self._insert_temporary(dto, content or None)
        return await self._send_via_api(temp, self._api.send_attachment(dto, attachment))

    def _insert_temporary(self, dto: SendMessageDTO, content: str | None) -> Message:
        temp = Message(
            id=new_temp_id(self._temp_prefix),
            sender_id=self._user_id,
            receiver_id=dto.receiver_id,
            content=content,
            created_at=self._clock(),
            product_id=dto.product_id,
        )
        self._store.append(dto.receiver_id, temp)
        return temp

    async def _send_via_api(self, temp: Message, request: Awaitable[Message]) -> Message:
        key = temp.receiver_id
        try:
            confirmed = await request
        except asyncio.CancelledError:
            self._rollback(temp)
            raise
        except Exception as exc:
            self._rollback(temp)
            logger.warning("Send to %s failed, rolled back %s: %s", key, temp.id, exc)
            raise SendFailedError("Failed to send message", temp_id=temp.id) from exc

        if self._store.has_confirmed(key, confirmed.id):
            # confirmed by the channel or a refetch while the request was in flight
            if self._store.remove(key, temp.id):
                self._directory.invalidate()
            return confirmed

        if self._store.has(key, temp.id):
            match: MatchPredicate = lambda m: m.id == temp.id
        else:
            # an earlier confirmation with the same content took our temporary
            match = same_send(confirmed)
        applied = self._store.replace_optimistic(key, confirmed, match)
        if applied:
            self._note_loaded(key, confirmed.id)
            self._directory.invalidate()
        return confirmed

    def _rollback(self, temp: Message) -> None:
        """Drop the temporary of a failed send.

        When a confirmation for an identical send already replaced it, the
        temporary left behind belongs to that other send, so drop that one.
        """
        key = temp.receiver_id
        if self._store.remove(key, temp.id):
            return
        for candidate in reversed(self._store.temporaries(key)):
            if candidate.sender_id == temp.sender_id and candidate.content == temp.content:
                self._store.remove(key, candidate.id)
                logger.debug("Dropped %s in place of consumed %s", candidate.id, temp.id)
                return

    def _note_loaded(self, key: str, message_id: str) -> None:
        for arrived in self._loading.get(key, ()):
            arrived.add(message_id)
