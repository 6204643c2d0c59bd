"""
Configuration settings for the search client.

All settings are loaded from environment variables (prefixed with SEARCH_)
with sensible defaults. Use .env file for local development.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Credentials ===
    APP_ID: Optional[str] = None
    API_KEY: str = ""

    # === Hosts ===
    HOSTS: list[str] = []  # Explicit hosts override the app-id derived cluster
    HOST_SHUFFLE_SEED: Optional[int] = None  # Fixes fallback order (tests, reproducibility)

    # === Headers ===
    DEFAULT_HEADERS: dict[str, str] = {}
    USER_AGENT: str = "search-client-python (0.1.0)"

    # === Timeouts (seconds) ===
    CONNECT_TIMEOUT: float = 2.0
    READ_TIMEOUT: float = 5.0
    WRITE_TIMEOUT: float = 30.0
    TIMEOUT_CAP: float = 120.0  # Upper bound after per-attempt escalation

    # === Retry ===
    RETRYABLE_STATUS_CODES: list[int] = [408]  # 4xx statuses that still advance to the next host

    # === Task / key waiting ===
    WAIT_TASK_MAX_RETRIES: int = 100
    WAIT_TASK_BASE_INTERVAL: float = 0.1  # Staircase step: 0.1s, 0.2s, ...

    # === HTTP connection pool ===
    MAX_CONNECTIONS: int = 10
    MAX_KEEPALIVE_CONNECTIONS: int = 5

    # === Logging ===
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    CONFIGURE_LOGGING: bool = False  # Install the client log handler on create_with_config()
