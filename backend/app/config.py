from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    app_name: str = Field(default="Threadline Sync", description="Human readable client name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="INFO", description="Root log level for the sync client")

    socket_url: str = Field(
        default="http://localhost:5000",
        description="Base URL of the push endpoint (socket.io server)",
    )
    socket_path: str = Field(default="socket.io", description="socket.io mount path on the server")
    socket_transports: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["websocket"],
        description="Transports offered to the socket.io server",
    )
    socket_reconnection: bool = Field(
        default=True,
        description="Let the transport library reconnect on its own after a drop.",
    )
    socket_connect_timeout_seconds: float = Field(
        default=5.0,
        description="How long to wait for the namespace connection to complete.",
    )

    api_base_url: AnyHttpUrl | None = Field(
        default=None,
        description="REST base URL used for the initial notification fetch.",
    )
    api_timeout_seconds: float = Field(default=10.0, description="REST request timeout")

    message_sent_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay before an optimistic send is confirmed as sent.",
    )
    message_delivered_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Delay before an optimistic send is confirmed as delivered.",
    )

    notification_generator_enabled: bool = Field(
        default=False,
        description="Feed synthetic notifications when no live feed is available.",
    )
    notification_generator_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Interval between synthetic notification draws.",
    )
    notification_generator_probability: float = Field(
        default=0.2,
        ge=0,
        le=1,
        description="Chance that a draw produces a notification.",
    )

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("socket_transports", mode="before")
    @classmethod
    def parse_transports(cls, value: Any) -> list[str] | Any:
        if value in (None, "", Ellipsis):
            return ["websocket"]
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple, set)):
            return [str(item) for item in value]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def notifications_endpoint(self) -> str | None:
        if self.api_base_url is None:
            return None
        return f"{str(self.api_base_url).rstrip('/')}/notifications"


@lru_cache
def get_settings() -> Settings:
    return Settings()
