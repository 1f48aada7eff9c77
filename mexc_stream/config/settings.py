"""Stream client configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ENDPOINT = "wss://wbs-api.mexc.com/ws"


class ReconnectSettings(BaseSettings):
    """Reconnect backoff configuration."""

    max_attempts: int = Field(default=5, ge=0, description="Reconnects before giving up")
    base_interval: float = Field(default=1.0, ge=0, description="First reconnect delay in seconds")
    decay: float = Field(default=500.0, ge=1.0, description="Delay growth factor per attempt")
    max_interval: float = Field(default=5.0, ge=0, description="Upper bound on reconnect delay")


class StreamSettings(BaseSettings):
    """Main stream client configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MEXC_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Venue
    secret: SecretStr = Field(default=SecretStr(""), description="API credential")
    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="WebSocket endpoint")

    # Connections
    heartbeat_interval: float = Field(default=15.0, gt=0, description="Seconds between PING frames")
    max_subscriptions_per_connection: int = Field(
        default=25,
        ge=1,
        le=30,
        description="Soft cap per connection (venue allows 30)",
    )
    reconnect: ReconnectSettings = Field(default_factory=ReconnectSettings)

    # Decoding
    wrapper_message: str = Field(
        default="PushDataV3ApiWrapper_pb2.PushDataV3ApiWrapper",
        description="Dotted path of the compiled push wrapper class",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("endpoint")
    @classmethod
    def check_endpoint(cls, v: str) -> str:
        """Require a WebSocket URL."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError(f"endpoint must be a ws:// or wss:// URL, got {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


@lru_cache
def get_settings() -> StreamSettings:
    """Get cached stream settings."""
    return StreamSettings()
