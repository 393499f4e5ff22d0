"""Cooling Manager shared package.

This package contains components shared by the realtime hub and its tests:
- models: Pydantic data models
- database: SQLAlchemy ORM models
- redis_client: Redis client wrapper
- config: Configuration management
- observability: Structured logging
"""

__version__ = "0.1.0"
