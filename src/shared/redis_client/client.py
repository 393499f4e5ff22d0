"""Redis client wrapper.

Redis Database Layout:
- DB 0: PubSub, device events (coolmon:events)
"""

from collections.abc import Callable
from enum import IntEnum
from typing import Any

import redis.asyncio as redis

from shared.models import HubEvent


class RedisDB(IntEnum):
    """Redis database numbers."""

    PUBSUB = 0


class RedisClient:
    """Async Redis client with connection pooling."""

    def __init__(self, url: str = "redis://localhost:6379"):
        """Initialize Redis client.

        Args:
            url: Redis connection URL
        """
        self._url = url
        self._pools: dict[int, redis.ConnectionPool] = {}
        self._clients: dict[int, redis.Redis] = {}

    async def connect(self) -> None:
        """Initialize connection pools for all databases."""
        for db in RedisDB:
            pool = redis.ConnectionPool.from_url(
                self._url,
                db=db.value,
                decode_responses=True,
            )
            self._pools[db] = pool
            self._clients[db] = redis.Redis(connection_pool=pool)

    async def close(self) -> None:
        """Close all connections."""
        for client in self._clients.values():
            await client.aclose()
        for pool in self._pools.values():
            await pool.disconnect()
        self._clients.clear()
        self._pools.clear()

    def get_client(self, db: RedisDB) -> redis.Redis:
        """Get Redis client for specific database."""
        if db not in self._clients:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._clients[db]

    # =========================================================================
    # PubSub Operations (DB 0)
    # =========================================================================

    async def publish_event(self, channel: str, event: HubEvent) -> int:
        """Publish a device event for the realtime hub.

        Args:
            channel: PubSub channel the hub listens on
            event: Event to publish

        Returns:
            Number of subscribers that received the message
        """
        client = self.get_client(RedisDB.PUBSUB)
        return await client.publish(channel, event.model_dump_json(by_alias=True))

    async def subscribe(
        self,
        channels: list[str],
        callback: Callable[[str, str], Any],
    ) -> redis.client.PubSub:
        """Subscribe to Redis PubSub channels.

        Args:
            channels: List of channel patterns to subscribe to
            callback: Async callback function(channel, message)

        Returns:
            PubSub instance for managing subscription
        """
        client = self.get_client(RedisDB.PUBSUB)
        pubsub = client.pubsub()

        async def message_handler(message: dict[str, Any]) -> None:
            if message["type"] in ("message", "pmessage"):
                await callback(message["channel"], message["data"])

        for channel in channels:
            if "*" in channel:
                await pubsub.psubscribe(**{channel: message_handler})
            else:
                await pubsub.subscribe(**{channel: message_handler})

        return pubsub

    # =========================================================================
    # Health Check
    # =========================================================================

    async def health_check(self) -> dict[str, Any]:
        """Check Redis connectivity.

        Returns:
            Health status dict
        """
        results = {}
        for db in RedisDB:
            try:
                client = self.get_client(db)
                await client.ping()
                results[db.name.lower()] = {"status": "healthy"}
            except Exception as e:
                results[db.name.lower()] = {"status": "unhealthy", "error": str(e)}

        all_healthy = all(r["status"] == "healthy" for r in results.values())
        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "databases": results,
        }
