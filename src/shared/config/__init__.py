"""Configuration management module.

This module provides:
- Environment-based configuration with validation
- Component settings classes
- Cached settings access via get_settings()
"""

from .settings import (
    DatabaseSettings,
    Environment,
    JWTSettings,
    LogFormat,
    LogLevel,
    RedisSettings,
    Settings,
    SocketSettings,
    get_settings,
)

__all__ = [
    # Main settings
    "Settings",
    "get_settings",
    # Enums
    "Environment",
    "LogLevel",
    "LogFormat",
    # Component settings
    "DatabaseSettings",
    "RedisSettings",
    "JWTSettings",
    "SocketSettings",
]
