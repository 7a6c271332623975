"""Application configuration with environment variable support."""

import tempfile
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STATE_FILE = Path(tempfile.gettempdir()) / "mcp-pointer-shared-state.json"


class Settings(BaseSettings):
    """
    Relay settings with environment variable support.

    Priority: init arguments (CLI) > ENV > .env.local > .env > defaults
    Every variable is prefixed with MCP_POINTER_ (e.g. MCP_POINTER_PORT).
    """

    model_config = SettingsConfigDict(
        env_prefix="MCP_POINTER_",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Service configuration
    PROJECT_NAME: str = "MCP Pointer"
    DEBUG: bool = False
    HOST: str = "127.0.0.1"
    PORT: int = 7007
    LOG_LEVEL: str = "INFO"

    # Shared state
    STATE_FILE: Path = DEFAULT_STATE_FILE

    # Leader election
    RETRY_INTERVAL: float = 5.0  # Follower backoff before re-binding (seconds)

    # Ingress limits
    MAX_CONNECTIONS: int = 100

    # WebSocket keepalive configuration
    WS_PING_INTERVAL: float = 15.0  # Protocol ping interval (seconds)
    WS_PING_TIMEOUT: float = 10.0  # Protocol pong timeout (seconds)
