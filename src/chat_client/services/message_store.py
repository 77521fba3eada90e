"""Ordered, de-duplicated message cache keyed by conversation (peer id)."""
from __future__ import annotations

import logging
from typing import Callable, Collection, Iterable

from chat_client.domain.entities.message import Message
from chat_client.domain.value_objects.ids import TEMP_ID_PREFIX

logger = logging.getLogger(__name__)

StoreListener = Callable[[str], None]
MatchPredicate = Callable[[Message], bool]
SupersedePredicate = Callable[[Message, Message], bool]


class MessageStore:
    def __init__(self, *, temp_prefix: str = TEMP_ID_PREFIX) -> None:
        self._temp_prefix = temp_prefix
        self._messages: dict[str, list[Message]] = {}
        self._ids: dict[str, set[str]] = {}
        self._snapshots: dict[str, tuple[Message, ...]] = {}
        self._listeners: list[StoreListener] = []

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # --- reads ---

    def get(self, key: str) -> tuple[Message, ...]:
        """Current sequence for a conversation; the same object until mutated."""
        snapshot = self._snapshots.get(key)
        if snapshot is None:
            snapshot = tuple(self._messages.get(key, ()))
            self._snapshots[key] = snapshot
        return snapshot

    def has(self, key: str, message_id: str) -> bool:
        return message_id in self._ids.get(key, ())

    def has_confirmed(self, key: str, message_id: str) -> bool:
        return not message_id.startswith(self._temp_prefix) and self.has(key, message_id)

    def temporaries(self, key: str) -> list[Message]:
        return [m for m in self._messages.get(key, ()) if m.is_temporary(self._temp_prefix)]

    # --- writes ---

    def append(self, key: str, message: Message) -> bool:
        """Insert at the end. No-op if a message with this id is already present."""
        if self.has(key, message.id):
            return False
        self._messages.setdefault(key, []).append(message)
        self._ids.setdefault(key, set()).add(message.id)
        self._changed(key)
        return True

    def replace_optimistic(self, key: str, confirmed: Message, match: MatchPredicate) -> bool:
        """Overwrite the newest matching temporary in place, else append."""
        if self.has(key, confirmed.id):
            return False
        messages = self._messages.get(key, [])
        for index in range(len(messages) - 1, -1, -1):
            candidate = messages[index]
            if candidate.is_temporary(self._temp_prefix) and match(candidate):
                messages[index] = confirmed
                ids = self._ids[key]
                ids.discard(candidate.id)
                ids.add(confirmed.id)
                logger.debug("Replaced %s with %s in %s", candidate.id, confirmed.id, key)
                self._changed(key)
                return True
        return self.append(key, confirmed)

    def remove(self, key: str, message_id: str) -> bool:
        if not self.has(key, message_id):
            return False
        self._messages[key] = [m for m in self._messages[key] if m.id != message_id]
        self._ids[key].discard(message_id)
        self._changed(key)
        return True

    def load(
        self,
        key: str,
        history: Iterable[Message],
        *,
        supersedes: SupersedePredicate | None = None,
        retain: Collection[str] = (),
    ) -> list[str]:
        """Replace the confirmed messages of a conversation with server history.

        Temporaries are kept at the end unless an own message that was not
        known before this load supersedes them. Confirmed messages listed in
        ``retain`` survive even when absent from ``history`` (they arrived
        while the history request was in flight). Returns the ids of the
        superseded temporaries.
        """
        current = self._messages.get(key, [])
        known = {m.id for m in current if not m.is_temporary(self._temp_prefix)}
        pending = [m for m in current if m.is_temporary(self._temp_prefix)]

        seen: set[str] = set()
        confirmed: list[Message] = []
        for m in history:
            if m.id in seen or m.is_temporary(self._temp_prefix):
                continue
            seen.add(m.id)
            confirmed.append(m)
        for m in current:
            if m.id in retain and m.id not in seen:
                seen.add(m.id)
                confirmed.append(m)
        confirmed.sort(key=lambda m: m.created_at)

        superseded: list[str] = []
        if supersedes is not None and pending:
            for m in confirmed:
                if m.id in known:
                    continue
                for index in range(len(pending) - 1, -1, -1):
                    if supersedes(pending[index], m):
                        superseded.append(pending.pop(index).id)
                        break

        merged = confirmed + pending
        self._messages[key] = merged
        self._ids[key] = {m.id for m in merged}
        self._changed(key)
        return superseded

    def _changed(self, key: str) -> None:
        self._snapshots.pop(key, None)
        for listener in list(self._listeners):
            try:
                listener(key)
            except Exception:
                logger.exception("Message store listener failed")
