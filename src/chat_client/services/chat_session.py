"""Per-user composition of channel, store, directory, engine and poller."""
from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Any, Awaitable, Callable, Coroutine

from chat_client.application.dto.message import AttachmentDTO
from chat_client.application.exceptions import ApiError, ChannelClosedError, ValidationError
from chat_client.application.ports.api import ChatApi
from chat_client.config import Settings, settings as default_settings
from chat_client.domain.entities.message import Message
from chat_client.domain.entities.reaction import MessageReactions
from chat_client.domain.value_objects.enums import ChannelState, DisappearingDuration, ReactionKind
from chat_client.domain.value_objects.ids import TEMP_ID_PREFIX, is_temp_id
from chat_client.infrastructure.auth.ws_token import WsTokenProvider
from chat_client.infrastructure.http.client import HttpChatApi
from chat_client.infrastructure.ws.aiohttp_connector import AiohttpConnector
from chat_client.infrastructure.ws.channel import TransportChannel
from chat_client.services.conversation_directory import ConversationDirectory
from chat_client.services.message_store import MessageStore
from chat_client.services.reconciliation import ReconciliationEngine
from chat_client.services.typing_indicator import TypingIndicator
from chat_client.workers.polling_fallback import PollingFallback

logger = logging.getLogger(__name__)


def parse_reaction(value: ReactionKind | str) -> ReactionKind:
    try:
        return ReactionKind(value)
    except ValueError:
        valid = ", ".join(r.value for r in ReactionKind)
        raise ValidationError(f"Invalid reaction. Valid reactions are: {valid}") from None


def parse_duration(value: DisappearingDuration | int) -> DisappearingDuration:
    try:
        return DisappearingDuration(int(value))
    except ValueError:
        raise ValidationError(
            "Invalid duration. Valid durations are: 0 (off), 86400 (24h), 604800 (7d), 7776000 (90d)"
        ) from None


class ChatSession:
    def __init__(
        self,
        api: ChatApi,
        channel: TransportChannel,
        current_user_id: str,
        *,
        poll_interval: float = 5.0,
        typing_timeout: float = 3.0,
        temp_prefix: str = TEMP_ID_PREFIX,
    ) -> None:
        self.api = api
        self.channel = channel
        self.user_id = current_user_id
        self._temp_prefix = temp_prefix
        self.store = MessageStore(temp_prefix=temp_prefix)
        self.directory = ConversationDirectory(api)
        self.typing = TypingIndicator(typing_timeout)
        self.engine = ReconciliationEngine(
            self.store,
            self.directory,
            api,
            channel,
            current_user_id,
            typing=self.typing,
            temp_prefix=temp_prefix,
        )
        self._poll_interval = poll_interval
        self._poller: PollingFallback | None = None
        self._dispatch_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._reactions: dict[str, MessageReactions] = {}
        self._cleanup: list[Callable[[], Awaitable[None]]] = []
        self._remove_state_listener: Callable[[], None] | None = None
        self._was_connected = False
        self._generation = 0
        self._started = False
        self._closed = False

    @classmethod
    def from_settings(cls, current_user_id: str, config: Settings = default_settings) -> ChatSession:
        api = HttpChatApi(
            config.API_BASE_URL,
            headers=config.auth_headers,
            timeout=config.HTTP_TIMEOUT_SECONDS,
        )
        connector = AiohttpConnector()
        tokens = WsTokenProvider(
            api.fetch_ws_token, refresh_margin=config.WS_TOKEN_REFRESH_MARGIN_SECONDS,
        )
        channel = TransportChannel(
            config.WS_URL,
            connector,
            tokens,
            base_delay=config.WS_RECONNECT_BASE_DELAY,
            max_delay=config.WS_RECONNECT_MAX_DELAY,
            max_attempts=config.WS_MAX_RECONNECT_ATTEMPTS,
        )
        session = cls(
            api,
            channel,
            current_user_id,
            poll_interval=config.POLL_INTERVAL_SECONDS,
            typing_timeout=config.TYPING_CLEAR_SECONDS,
            temp_prefix=config.TEMP_ID_PREFIX,
        )
        session._cleanup += [connector.aclose, api.aclose]
        return session

    # --- read side ---

    @property
    def active_peer(self) -> str | None:
        return self.engine.active_peer

    @property
    def messages(self) -> tuple[Message, ...]:
        if self.active_peer is None:
            return ()
        return self.store.get(self.active_peer)

    @property
    def polling(self) -> bool:
        return self._poller is not None and self._poller.running

    def is_online(self, user_id: str) -> bool:
        return self.engine.presence.get(user_id, False)

    # --- lifecycle ---

    async def start(self) -> None:
        self._ensure_open()
        if self._started:
            return
        self._started = True
        self._remove_state_listener = self.channel.add_state_listener(self._on_channel_state)
        self._dispatch_task = asyncio.create_task(self._dispatch(), name="chat-session-dispatch")
        self.directory.invalidate()
        self.channel.connect()
        logger.info("Chat session started for user %s", self.user_id)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._leave_conversation()
        if self._remove_state_listener is not None:
            self._remove_state_listener()
        await self.channel.close()
        tasks = [t for t in (self._dispatch_task, *self._background) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._background.clear()
        await self.directory.close()
        for cleanup in self._cleanup:
            await cleanup()
        logger.info("Chat session closed for user %s", self.user_id)

    async def __aenter__(self) -> ChatSession:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # --- conversations ---

    async def open_conversation(self, peer_id: str) -> tuple[Message, ...]:
        self._ensure_open()
        self._generation += 1
        generation = self._generation
        await self._leave_conversation()
        if generation != self._generation:
            return self.store.get(peer_id)
        self.engine.active_peer = peer_id
        try:
            await self.engine.load_history(peer_id)
        except ApiError as exc:
            logger.warning("Initial history load for %s failed: %s", peer_id, exc.detail)
        if self._closed or generation != self._generation:
            # superseded by another open_conversation or close while loading
            return self.store.get(peer_id)
        self._poller = PollingFallback(
            self._poll_refetch,
            lambda: self.channel.is_connected,
            interval=self._poll_interval,
            name=f"polling-{peer_id}",
        )
        self._poller.start()
        return self.store.get(peer_id)

    async def close_conversation(self) -> None:
        self._generation += 1
        await self._leave_conversation()

    async def refetch_active(self) -> None:
        if self.active_peer is not None:
            await self.engine.load_history(self.active_peer)

    async def _leave_conversation(self) -> None:
        if self._poller is not None:
            await self._poller.stop()
            self._poller = None
        self.typing.reset()
        self.engine.active_peer = None

    async def _poll_refetch(self) -> None:
        try:
            await self.refetch_active()
        finally:
            self.directory.invalidate()

    # --- sending ---

    async def send(self, content: str, *, product_id: str | None = None) -> Message:
        peer = self._require_peer()
        return await self.engine.send(peer, content, product_id=product_id)

    async def send_attachment(
        self,
        filename: str,
        data: bytes,
        content: str = "",
        *,
        content_type: str = "application/octet-stream",
        product_id: str | None = None,
    ) -> Message:
        peer = self._require_peer()
        attachment = AttachmentDTO(filename=filename, data=data, content_type=content_type)
        return await self.engine.send_attachment(peer, attachment, content, product_id=product_id)

    async def delete_message(self, message_id: str) -> None:
        await self.api.delete_message(message_id)
        self._reactions.pop(message_id, None)
        await self.refetch_active()

    # --- reactions ---

    async def reactions_for(self, message_id: str, *, refresh: bool = False) -> MessageReactions:
        if is_temp_id(message_id, self._temp_prefix):
            raise ValidationError("Message is not confirmed yet")
        cached = self._reactions.get(message_id)
        if cached is None or refresh:
            reactions = await self.api.list_reactions(message_id)
            cached = MessageReactions.from_reactions(message_id, reactions)
            self._reactions[message_id] = cached
        return cached

    async def toggle_reaction(self, message_id: str, reaction: ReactionKind | str) -> ReactionKind | None:
        kind = parse_reaction(reaction)
        reactions = await self.reactions_for(message_id)
        if reactions.toggles_off(self.user_id, kind):
            await self.api.remove_reaction(message_id)
        else:
            await self.api.add_reaction(message_id, kind)
        return reactions.apply(self.user_id, kind)

    # --- pass-through ---

    async def archive(self, peer_id: str) -> None:
        await self.api.archive(peer_id)
        self.directory.invalidate()

    async def unarchive(self, peer_id: str) -> None:
        await self.api.unarchive(peer_id)
        self.directory.invalidate()

    async def list_archived(self) -> list[str]:
        return await self.api.list_archived()

    async def mark_read(self, peer_id: str) -> None:
        await self.api.mark_read(peer_id)
        self.directory.invalidate()

    async def set_disappearing(self, peer_id: str, duration: DisappearingDuration | int) -> None:
        await self.api.set_disappearing(peer_id, parse_duration(duration))

    async def get_disappearing(self, peer_id: str) -> DisappearingDuration:
        return await self.api.get_disappearing(peer_id)

    async def unread_count(self) -> int:
        return await self.api.unread_count()

    # --- internals ---

    def _ensure_open(self) -> None:
        if self._closed:
            raise ChannelClosedError("chat session has been closed")

    def _require_peer(self) -> str:
        self._ensure_open()
        if self.active_peer is None:
            raise ValidationError("No conversation selected")
        return self.active_peer

    async def _dispatch(self) -> None:
        while True:
            event = await self.channel.events.get()
            try:
                self.engine.handle_event(event)
            except Exception:
                logger.exception("Failed to apply channel event %s", type(event).__name__)

    def _on_channel_state(self, state: ChannelState) -> None:
        if state != ChannelState.CONNECTED:
            return
        if self._was_connected and self.active_peer is not None:
            # catch up on whatever was pushed while the socket was down
            self._spawn(self._poll_refetch())
        self._was_connected = True

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(self._guarded(coro))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @staticmethod
    async def _guarded(coro: Coroutine[Any, Any, None]) -> None:
        try:
            await coro
        except ApiError as exc:
            logger.warning("Background refetch failed: %s", exc.detail)
