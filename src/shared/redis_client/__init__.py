"""Redis client wrapper with pub/sub support.

Database Layout:
- DB 0: PubSub, device events (coolmon:events)
"""

from .client import RedisClient, RedisDB

__all__ = [
    "RedisClient",
    "RedisDB",
]
