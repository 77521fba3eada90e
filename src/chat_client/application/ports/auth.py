from __future__ import annotations

from typing import Protocol


class TokenProvider(Protocol):
    async def get_token(self) -> str: ...

    def invalidate(self) -> None: ...
