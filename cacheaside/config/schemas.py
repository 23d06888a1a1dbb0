"""
cacheaside - Configuration Schemas

Defines typed configuration models using Pydantic for validation and type safety.
All configuration is defined here and validated at load time.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Environment(str, Enum):
    """Runtime environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class CacheBackend(str, Enum):
    """Supported store backends."""

    MEMORY = "memory"
    REDIS = "redis"  # Requires the redis client


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    TEXT = "text"


class CacheConfig(BaseModel):
    """Store and cacher configuration."""

    backend: CacheBackend = Field(default=CacheBackend.MEMORY, description="Store backend to use")
    ttl_seconds: float = Field(
        default=3600,
        ge=0,
        description="TTL applied when a call passes no options (0 = no expiry)",
    )
    max_size: int = Field(default=1000, ge=1, description="Max entries (memory backend)")
    namespace: str = Field(default="cacheaside", description="Key namespace/prefix")
    single_flight: bool = Field(
        default=False,
        description="Collapse concurrent misses for the same key into one fallback call",
    )

    # Redis-specific settings (only used when backend=redis)
    redis_url: str | None = Field(default=None, description="Redis connection URL")
    redis_max_connections: int = Field(default=10, ge=1, description="Redis connection pool size")
    redis_socket_timeout: int = Field(default=5, ge=1, description="Redis socket timeout in seconds")

    @model_validator(mode="after")
    def validate_redis_url(self) -> "CacheConfig":
        """Ensure redis_url is provided when backend is redis."""
        if self.backend == CacheBackend.REDIS and not self.redis_url:
            raise ValueError("redis_url is required when cache backend is 'redis'")
        return self


class CacheAsideConfig(BaseModel):
    """Root configuration for cacheaside."""

    environment: Environment = Field(default=Environment.DEVELOPMENT, description="Runtime environment")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_format: LogFormat = Field(default=LogFormat.JSON, description="Log output format")

    cache: CacheConfig = Field(default_factory=CacheConfig)

    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)
