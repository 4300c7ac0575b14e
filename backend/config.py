"""
Activity Tracker - Configuration Management
Supports .env files and runtime configuration for the database pool,
day-boundary timezone and the HTTP server.
"""

from functools import lru_cache
from typing import Any, Dict, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


# ============================================
# DATABASE CONFIGURATION
# ============================================

class DatabaseConfig(BaseSettings):
    """Connection pool settings. The URL itself comes from DATABASE_URL."""

    pool_min_size: int = Field(
        default=2,
        ge=1,
        le=50,
        description="Minimum number of pooled connections"
    )
    pool_max_size: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of pooled connections"
    )
    command_timeout: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="Per-query timeout in seconds"
    )

    model_config = {
        "env_prefix": "DB_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# TRACKER CONFIGURATION
# ============================================

class TrackerConfig(BaseSettings):
    """
    Calendar policy for aggregation, streaks and goals.

    Every timestamp is truncated to a calendar date in this single timezone.
    There is no per-user timezone.
    """

    timezone: str = Field(
        default="UTC",
        description="IANA timezone used for day boundaries"
    )
    seed_default_achievements: bool = Field(
        default=True,
        description="Insert the built-in achievement catalog on startup"
    )

    model_config = {
        "env_prefix": "TRACKER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value}") from e
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


# ============================================
# SERVER CONFIGURATION
# ============================================

class ServerConfig(BaseSettings):
    """HTTP layer settings."""

    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Origins allowed by the CORS middleware"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level for the application logger"
    )

    model_config = {
        "env_prefix": "SERVER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


# ============================================
# CACHED CONFIGURATION INSTANCES
# ============================================

@lru_cache()
def get_database_config() -> DatabaseConfig:
    """Get cached database configuration instance."""
    return DatabaseConfig()


@lru_cache()
def get_tracker_config() -> TrackerConfig:
    """Get cached tracker configuration instance."""
    return TrackerConfig()


@lru_cache()
def get_server_config() -> ServerConfig:
    """Get cached server configuration instance."""
    return ServerConfig()


def reload_config():
    """Clear configuration cache and reload from environment."""
    get_database_config.cache_clear()
    get_tracker_config.cache_clear()
    get_server_config.cache_clear()


# ============================================
# CONFIGURATION SUMMARY
# ============================================

def get_config_summary() -> Dict[str, Any]:
    """
    Get a summary of all configuration values.
    Useful for debugging and the health endpoint.
    """
    database = get_database_config()
    tracker = get_tracker_config()
    server = get_server_config()

    return {
        "database": {
            "pool": f"{database.pool_min_size}-{database.pool_max_size}",
            "command_timeout": database.command_timeout,
        },
        "tracker": {
            "timezone": tracker.timezone,
            "seed_default_achievements": tracker.seed_default_achievements,
        },
        "server": {
            "cors_origins": server.cors_origins,
            "log_level": server.log_level,
        },
    }
