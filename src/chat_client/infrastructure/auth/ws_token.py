from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

import jwt

logger = logging.getLogger(__name__)


def token_expiry(token: str) -> float | None:
    """Read the ``exp`` claim without verifying the signature.

    The signing secret lives on the server; the client only needs to know
    when to fetch a fresh token.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        logger.debug("WS token is not a decodable JWT", exc_info=True)
        return None
    exp = claims.get("exp")
    return float(exp) if isinstance(exp, (int, float)) else None


class WsTokenProvider:
    """Implements application.ports.auth.TokenProvider over the ws-token endpoint."""

    def __init__(
        self,
        fetch: Callable[[], Awaitable[str]],
        *,
        refresh_margin: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetch = fetch
        self._refresh_margin = refresh_margin
        self._clock = clock
        self._token: str | None = None
        self._expires_at: float | None = None

    async def get_token(self) -> str:
        if self._token is not None and self._expires_at is not None:
            if self._clock() < self._expires_at - self._refresh_margin:
                return self._token

        token = await self._fetch()
        expires_at = token_expiry(token)
        if expires_at is None:
            self.invalidate()
        else:
            self._token, self._expires_at = token, expires_at
        return token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = None
