"""
Application settings loaded from environment variables.
Uses pydantic-settings for type-safe configuration.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Relay settings with defaults for development."""

    # Server
    # PORT matches the variable container platforms inject for the listener
    port: int = 8080
    relay_host: str = "0.0.0.0"

    # Environment
    environment: str = "development"
    debug: bool = False

    # WebSocket fan-out
    ws_broadcast_batch_size: int = 50  # Recipients written to in parallel per batch
    ws_send_timeout: float = 5.0  # A single write slower than this counts as failed
    # Seconds without an inbound frame before the relay closes the connection.
    # 0 keeps connections open until the peer leaves.
    ws_idle_timeout: float = 0.0
    ws_max_message_size: int = 1024 * 1024  # 1 MiB
    ws_shutdown_timeout: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def validate_config(self) -> list[str]:
        """
        Validate configuration values.
        Returns a list of validation errors. Empty list means all checks pass.
        """
        errors = []

        if not 0 < self.port < 65536:
            errors.append(f"PORT must be between 1 and 65535 (got {self.port})")

        if self.ws_broadcast_batch_size < 1:
            errors.append("WS_BROADCAST_BATCH_SIZE must be at least 1")

        if self.ws_send_timeout <= 0:
            errors.append("WS_SEND_TIMEOUT must be positive")

        if self.ws_idle_timeout < 0:
            errors.append("WS_IDLE_TIMEOUT must not be negative (0 disables it)")

        if self.ws_max_message_size < 1:
            errors.append("WS_MAX_MESSAGE_SIZE must be at least 1 byte")

        if self.ws_shutdown_timeout < 0:
            errors.append("WS_SHUTDOWN_TIMEOUT must not be negative")

        return errors


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
