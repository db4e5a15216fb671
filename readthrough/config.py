"""
Configuration management using Pydantic Settings.
Store endpoints, pool sizing and cache defaults come from the environment.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_EXPIRY_SECONDS = 86400


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===================
    # Redis Configuration
    # ===================
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis endpoint holding refresh locks"
    )
    cache_redis_url: Optional[str] = Field(
        default=None,
        description="Redis endpoint holding cached values (defaults to redis_url)"
    )
    redis_pool_size: int = Field(default=2, ge=1, description="Max pooled connections per client")
    redis_pool_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for a free pooled connection"
    )
    redis_socket_timeout: float = Field(default=5.0, gt=0)
    redis_decode_responses: bool = Field(
        default=False,
        description="Decode payloads to str; leave off for opaque byte payloads"
    )

    # ===================
    # Cache Behaviour
    # ===================
    default_expiry_seconds: int = Field(default=DEFAULT_EXPIRY_SECONDS, gt=0)
    refresh_lock_flag: str = Field(default="1", min_length=1)

    # ===================
    # Logging
    # ===================
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalise and check the log level name."""
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def effective_cache_redis_url(self) -> str:
        """Cache endpoint, falling back to the lock endpoint."""
        return self.cache_redis_url or self.redis_url

    @property
    def shares_redis(self) -> bool:
        """True when cache values and refresh locks live on the same endpoint."""
        return self.effective_cache_redis_url == self.redis_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export
settings = get_settings()
