"""Configuration management with Pydantic Settings.

Environment variables are loaded from:
1. Environment variables (highest priority)
2. .env file (development)
3. Defaults (lowest priority)
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Logging format."""

    JSON = "json"
    TEXT = "text"


class DatabaseSettings(BaseSettings):
    """PostgreSQL database configuration.

    The hub only reads the ``users`` table owned by the REST backend.
    """

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    user: str = Field(default="coolmon", description="Database user")
    password: str = Field(default="", description="Database password")
    database: str = Field(default="cooling_manager", description="Database name")

    @property
    def url(self) -> str:
        """Build database URL (sync driver)."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"

    @property
    def async_url(self) -> str:
        """Build async database URL (asyncpg driver)."""
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


class RedisSettings(BaseSettings):
    """Redis configuration for cross-process event delivery."""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    host: str = Field(default="localhost", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: str | None = Field(default=None, description="Redis password")
    enabled: bool = Field(default=True, description="Consume events published on Redis")
    events_channel: str = Field(
        default="coolmon:events",
        description="PubSub channel the REST backend publishes device events on",
    )

    @property
    def url(self) -> str:
        """Build Redis URL."""
        if self.password:
            return f"redis://:{self.password}@{self.host}:{self.port}"
        return f"redis://{self.host}:{self.port}"


class JWTSettings(BaseSettings):
    """JWT verification settings, shared with the REST backend that issues tokens."""

    model_config = SettingsConfigDict(env_prefix="JWT_")

    secret: str = Field(default="change-me", description="Shared HMAC secret")
    algorithm: str = Field(default="HS256", description="Signing algorithm")
    issuer: str | None = Field(default="cooling-manager-api", description="Expected issuer")
    audience: str | None = Field(default="cooling-manager-app", description="Expected audience")


class SocketSettings(BaseSettings):
    """WebSocket transport settings."""

    model_config = SettingsConfigDict(env_prefix="SOCKET_")

    ping_interval_seconds: int = Field(default=25, description="Seconds between server pings")
    pong_timeout_seconds: int = Field(default=20, description="Seconds to wait for a pong")
    max_missed_pongs: int = Field(default=3, description="Missed pongs before closing")
    outbox_size: int = Field(default=100, description="Per-connection send queue size")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        description="Allowed browser origins",
    )

    @field_validator("outbox_size")
    @classmethod
    def validate_outbox_size(cls, v: int) -> int:
        """Ensure the outbox can hold at least one message."""
        return max(1, v)


class Settings(BaseSettings):
    """Main application settings.

    All settings can be overridden via environment variables.
    For nested settings, use the appropriate prefix (e.g., JWT_SECRET).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="coolmon-realtime", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        alias="ENV",
        description="Deployment environment",
    )

    # Logging configuration
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Logging format")

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Server bind host")
    port: int = Field(default=5001, description="Server bind port")

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    socket: SocketSettings = Field(default_factory=SocketSettings)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses LRU cache to avoid re-parsing environment variables.
    """
    return Settings()
