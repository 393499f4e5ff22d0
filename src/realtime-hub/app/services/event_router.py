"""Event Router for Redis PubSub to WebSocket routing.

Other backend processes (the REST API, the polling worker) publish
``HubEvent`` JSON on a single channel; the router hands each one to the
matching emitter method.
"""

from __future__ import annotations

import asyncio

from pydantic import ValidationError

from shared.models import HubEvent, HubEventName
from shared.observability import get_logger
from shared.redis_client import RedisClient

from .emitter import EventEmitter

logger = get_logger(__name__)


class EventRouter:
    """Routes events from Redis to the event emitter."""

    def __init__(
        self,
        redis: RedisClient,
        emitter: EventEmitter,
        channel: str = "coolmon:events",
    ):
        self.redis = redis
        self.emitter = emitter
        self.channel = channel
        self._running = False
        self._pubsub = None
        self.events_routed = 0
        self.events_dropped = 0

    async def start(self) -> None:
        """Start listening to Redis PubSub."""
        self._running = True

        logger.info("Starting EventRouter", channel=self.channel)

        try:
            self._pubsub = await self.redis.subscribe([self.channel], self._handle_message)

            while self._running:
                try:
                    await self._pubsub.get_message(
                        ignore_subscribe_messages=True,
                        timeout=1.0,
                    )
                    await asyncio.sleep(0.01)
                except Exception as e:
                    if self._running:
                        logger.error("PubSub error", error=str(e))
                        await asyncio.sleep(1.0)

        except asyncio.CancelledError:
            logger.info("EventRouter cancelled")
        except Exception as e:
            logger.error("EventRouter failed to start", error=str(e))

    async def stop(self) -> None:
        """Stop listening."""
        self._running = False
        if self._pubsub:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None

        logger.info("EventRouter stopped")

    async def _handle_message(self, channel: str, data: str) -> None:
        """Handle incoming Redis message.

        Args:
            channel: Redis channel name
            data: Message data (JSON string)
        """
        try:
            event = HubEvent.model_validate_json(data)
        except ValidationError as e:
            self.events_dropped += 1
            logger.warning("Invalid event in Redis message", channel=channel, error=str(e))
            return

        try:
            self.route_event(event)
        except Exception as e:
            self.events_dropped += 1
            logger.error(
                "Error handling Redis message",
                channel=channel,
                error=str(e),
            )

    def route_event(self, event: HubEvent) -> int:
        """Dispatch an event to the emitter.

        Returns:
            Number of connections the event was queued for

        Raises:
            ValueError: If a required scope id is missing for the event
        """
        name = HubEventName(event.event)

        if name == HubEventName.SYSTEM_NOTIFICATION:
            delivered = self.emitter.emit_system_notification(event.message or "", event.type)
        elif name == HubEventName.USER_NOTIFICATION:
            delivered = self.emitter.emit_user_notification(
                _require(event.user_id, "userId", name), event.message or "", event.type
            )
        elif name == HubEventName.ACTIVITY_LOGGED:
            delivered = self.emitter.emit_activity_logged(event.data)
        else:
            device_id = _require(event.device_id, "deviceId", name)
            if name == HubEventName.DEVICE_DATA_UPDATED:
                delivered = self.emitter.emit_device_data_update(device_id, event.data)
            elif name == HubEventName.DEVICE_STATUS_CHANGED:
                delivered = self.emitter.emit_device_status_change(device_id, event.data)
            elif name == HubEventName.NEW_ALERT:
                delivered = self.emitter.emit_new_alert(device_id, event.data)
            else:
                delivered = self.emitter.emit_gpio_state_update(device_id, event.data)

        self.events_routed += 1

        logger.debug("Event routed", hub_event=name.value, delivered=delivered)
        return delivered


def _require(value: int | None, field: str, name: HubEventName) -> int:
    if value is None:
        raise ValueError(f"{name.value} event requires {field}")
    return value
