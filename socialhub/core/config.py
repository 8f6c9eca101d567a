"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

One process runs one service (identity, post, media or search); the service
is picked with APP_SERVICE_NAME and everything else is shared.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


ServiceName = Literal["identity", "post", "media", "search"]


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) populates values from environment variables.
    Static type checkers treat fields as constructor arguments, which is not
    how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def _build_redis_settings() -> "RedisSettings":
    return RedisSettings()  # type: ignore[call-arg]


def _build_mongo_settings() -> "MongoSettings":
    return MongoSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()  # type: ignore[call-arg]


def _build_broker_settings() -> "BrokerSettings":
    return BrokerSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    service_name: ServiceName = Field(
        "post",
        description="Which service this process runs: identity, post, media or search",
    )
    environment: str = Field(
        "development",
        description="Deployment environment name (production disables destructive admin routes)",
    )
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    host: str = Field(
        "0.0.0.0",
        description="Bind address when run via `python -m socialhub.main`",
    )
    port: int = Field(
        3002,
        description="Listen port when run via `python -m socialhub.main`",
    )
    user_id_header: str = Field(
        "X-User-Id",
        description="Header carrying the authenticated user id, set by the API gateway",
    )
    admin_api_key_required: bool = Field(
        True,
        description="Whether admin endpoints require an X-API-Key header",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid admin API keys",
    )
    posts_cache_ttl_seconds: int = Field(
        300,
        description="TTL for cached post listings",
        ge=1,
    )
    posts_cache_max_entries: int = Field(
        256,
        description="Maximum number of cached post listing pages",
        ge=1,
    )
    posts_page_size_max: int = Field(
        100,
        description="Upper bound for the `limit` query parameter on post listings",
        ge=1,
    )
    search_results_limit: int = Field(
        10,
        description="Maximum number of search hits returned",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file at this size (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Shared Redis connection used by the counting store and the broker."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float = Field(
        1.0,
        description="Socket read/write timeout for Redis calls",
        gt=0,
    )
    socket_connect_timeout_seconds: float = Field(
        2.0,
        description="Timeout for establishing a Redis connection",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class MongoSettings(BaseSettings):
    """Document database connection."""

    backend: Literal["mongo", "memory"] = Field(
        "mongo",
        description="Document store backend; memory is per-process and lost on restart",
    )
    url: str = Field(
        "mongodb://localhost:27017",
        description="MongoDB connection URL",
    )
    database: str = Field(
        "social_media",
        description="Database holding the users, refresh_tokens, posts, media and search_posts collections",
    )
    server_selection_timeout_ms: int = Field(
        2000,
        description="How long the driver waits for a reachable server",
        ge=1,
    )
    connect_timeout_ms: int = Field(
        2000,
        description="Timeout for establishing a MongoDB connection",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="MONGO_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per-IP admission control (global and sensitive tiers)."""

    enabled: bool = Field(
        True,
        description="Enable per-client rate limiting",
    )
    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Counting store backend; memory is per-process only",
    )
    global_points: int = Field(
        10,
        description="Requests allowed per client per global window",
        ge=1,
    )
    global_duration_seconds: int = Field(
        1,
        description="Global tier window size in seconds",
        ge=1,
    )
    global_key_prefix: str = Field("middleware", description="Key prefix for the global tier")
    sensitive_points: int = Field(
        50,
        description="Requests allowed per client per sensitive window",
        ge=1,
    )
    sensitive_window_seconds: int = Field(
        900,
        description="Sensitive tier window size in seconds",
        ge=1,
    )
    sensitive_key_prefix: str = Field("sensitive", description="Key prefix for the sensitive tier")
    fail_open: bool = Field(
        True,
        description="Admit requests when the counting store is unreachable (false returns 503)",
    )
    store_timeout_seconds: float = Field(
        0.5,
        description="Upper bound for one counting store call",
        gt=0,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class BrokerSettings(BaseSettings):
    """Event relay broker configuration."""

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Broker backend; memory only fans out inside one process",
    )
    url: str | None = Field(
        None,
        description="Broker Redis URL (defaults to REDIS_URL)",
    )
    stream_prefix: str = Field(
        "social_events",
        description="Prefix of the per-event-type Redis streams",
    )
    stream_maxlen: int = Field(
        10_000,
        description="Approximate maximum length kept per stream",
        ge=1,
    )
    read_block_ms: int = Field(
        1000,
        description="How long one XREADGROUP call blocks waiting for events",
        ge=1,
    )
    read_batch_size: int = Field(10, description="Events fetched per read", ge=1)
    publish_timeout_seconds: float = Field(
        2.0,
        description="Upper bound for one publish call",
        gt=0,
    )
    connect_delay_seconds: float = Field(
        0.0,
        description="Delay before the first connection attempt",
        ge=0,
    )
    connect_max_attempts: int = Field(
        0,
        description="Connection attempts before giving up (0 retries forever)",
        ge=0,
    )
    connect_initial_backoff_seconds: float = Field(
        1.0,
        description="First reconnect delay; doubles on every failure",
        gt=0,
    )
    connect_max_backoff_seconds: float = Field(
        30.0,
        description="Upper bound for the reconnect delay",
        gt=0,
    )
    handler_max_retries: int = Field(
        3,
        description="Retries for a failing event handler before giving up",
        ge=0,
    )
    handler_retry_backoff_seconds: float = Field(
        0.5,
        description="First delay between handler retries; doubles on every failure",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="BROKER_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    mongo: MongoSettings = Field(default_factory=_build_mongo_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    broker: BrokerSettings = Field(default_factory=_build_broker_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
