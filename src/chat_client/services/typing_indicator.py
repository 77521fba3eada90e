from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)

TypingListener = Callable[[bool], None]


class TypingIndicator:
    """Transient "peer is typing" flag, cleared after ``timeout`` seconds of silence."""

    def __init__(self, timeout: float = 3.0) -> None:
        self._timeout = timeout
        self._handle: asyncio.TimerHandle | None = None
        self._is_typing = False
        self._listeners: list[TypingListener] = []

    @property
    def is_typing(self) -> bool:
        return self._is_typing

    def add_listener(self, listener: TypingListener) -> None:
        self._listeners.append(listener)

    def signal(self) -> None:
        """Set the flag and re-arm the auto-clear timer."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = asyncio.get_running_loop().call_later(self._timeout, self._expire)
        self._set(True)

    def reset(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._set(False)

    def _expire(self) -> None:
        self._handle = None
        self._set(False)

    def _set(self, value: bool) -> None:
        if value == self._is_typing:
            return
        self._is_typing = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Typing listener failed")
