from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the key-value server.

    Values are loaded from ``DB_SERVER_*`` environment variables by default and
    may be overridden via CLI flags by the application entrypoint.
    """

    # Listener
    host: str = "127.0.0.1"
    # Zero asks the OS for an ephemeral port (used by tests).
    port: int = Field(default=4000, ge=0, le=65535)
    buffer_size: PositiveInt = 1024

    # Snapshot
    snapshot_path: str = "persist.json"
    # Refuse to start when the snapshot exists but cannot be decoded.
    snapshot_strict: bool = True

    # Directory holding get_success.html, set_success.html and 404.html.
    responses_dir: str = "."

    # Logging
    log_level: str = "INFO"
    log_format: Literal["plain", "json"] = "plain"

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_prefix="DB_SERVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def address(self) -> tuple[str, int]:
        return (self.host, self.port)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
