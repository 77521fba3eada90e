from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_BASE_URL: str = "http://localhost:5000"
    WS_URL: str = "ws://localhost:5000/ws"
    API_TOKEN: str | None = None
    HTTP_TIMEOUT_SECONDS: float = 20.0

    WS_RECONNECT_BASE_DELAY: float = 1.0
    WS_RECONNECT_MAX_DELAY: float = 30.0
    WS_MAX_RECONNECT_ATTEMPTS: int = 10
    WS_TOKEN_REFRESH_MARGIN_SECONDS: int = 30

    POLL_INTERVAL_SECONDS: float = 5.0
    TYPING_CLEAR_SECONDS: float = 3.0

    TEMP_ID_PREFIX: str = "temp-"

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @property
    def auth_headers(self) -> dict[str, str]:
        if not self.API_TOKEN:
            return {}
        return {"Authorization": f"Bearer {self.API_TOKEN}"}

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
