import os
import secrets
import socket

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def default_consumer_name() -> str:
    """Consumer name unique to this aggregator: host, pid and a random suffix"""
    return f"{socket.gethostname()}-{os.getpid()}-{secrets.token_hex(3)}"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Application
    app_name: str = "Shortlink"
    app_version: str = "1.0.0"

    # Database (used by the "sql" alias/counter backends)
    database_url: str = "sqlite:///./shortlink.db"

    # Alias generation
    base_url: str = "http://127.0.0.1:8000"
    alias_length: int = 7
    alias_ttl_seconds: int = 30 * 24 * 60 * 60  # 30 days
    alias_max_attempts: int = 25

    # Backends
    alias_backend: str = "redis"  # Options: "redis", "sql", "memory"
    counter_backend: str = "redis"  # Options: "redis", "sql", "memory"
    event_log_backend: str = "redis_streams"  # Options: "redis_streams", "memory"

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0
    alias_key_prefix: str = "url:"
    clicks_hash_key: str = "clicks"

    # Click event log
    click_stream_key: str = "streams:url-clicks"
    consumer_group: str = "analytics-group"
    # Must differ between live aggregators or they re-read each other's pending entries
    consumer_name: str = Field(default_factory=default_consumer_name)

    # Click aggregator
    aggregator_enabled: bool = True  # Run the aggregator inside the web process
    aggregator_batch_size: int = 10
    aggregator_interval_seconds: float = 5.0
    aggregator_claim_min_idle_ms: int = 60_000  # 0 disables claiming from other consumers

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
