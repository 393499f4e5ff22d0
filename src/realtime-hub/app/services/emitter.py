"""Event Emitter: server-initiated push of domain events to subscriber sets.

Emission is fire-and-forget. Messages are queued on each target connection's
outbox and the call returns immediately; no subscribers is a no-op.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi.encoders import jsonable_encoder

from shared.models import DeviceStatus, HubEventName, Subject
from shared.observability import get_logger

from .registry import Connection, ConnectionRegistry

logger = get_logger(__name__)

BROADCAST_CHANNEL = "broadcast"


class EventEmitter:
    """Delivers domain events to exactly the connections subscribed to them."""

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    # =========================================================================
    # Device-scoped events
    # =========================================================================

    def emit_device_data_update(self, device_id: int, sensor_data: Any) -> int:
        """Push a new sensor reading to the device's subscribers."""
        return self._to_subjects(
            HubEventName.DEVICE_DATA_UPDATED,
            [Subject.device(device_id)],
            {"deviceId": device_id, "sensorData": sensor_data},
        )

    def emit_gpio_state_update(self, device_id: int, state: Any) -> int:
        """Push a GPIO state change to the device's subscribers."""
        return self._to_subjects(
            HubEventName.GPIO_STATE_UPDATED,
            [Subject.device(device_id)],
            {"deviceId": device_id, "state": state},
        )

    def emit_device_status_change(self, device_id: int, status: DeviceStatus | str) -> int:
        """Push a status change to the device's subscribers and the all-devices channel."""
        return self._to_subjects(
            HubEventName.DEVICE_STATUS_CHANGED,
            [Subject.device(device_id), Subject.all_devices()],
            {"deviceId": device_id, "status": status},
        )

    def emit_new_alert(self, device_id: int, alert: Any) -> int:
        """Push a new alert to the device's subscribers and the all-devices channel."""
        return self._to_subjects(
            HubEventName.NEW_ALERT,
            [Subject.device(device_id), Subject.all_devices()],
            {"deviceId": device_id, "alert": alert},
        )

    # =========================================================================
    # User and system events
    # =========================================================================

    def emit_user_notification(self, user_id: int, message: str, type: str = "info") -> int:
        """Notify every connection on a user's personal channel."""
        return self._to_subjects(
            HubEventName.USER_NOTIFICATION,
            [Subject.user(user_id)],
            {
                "userId": user_id,
                "message": message,
                "type": type,
                "timestamp": _now(),
            },
        )

    def emit_system_notification(self, message: str, type: str = "info") -> int:
        """Notify every connected client regardless of subscriptions."""
        delivered = self._broadcast(
            HubEventName.SYSTEM_NOTIFICATION,
            {"message": message, "type": type, "timestamp": _now()},
        )
        logger.info(
            "System notification broadcast",
            notification_type=type,
            delivered=delivered,
            connected_users=self.registry.count_distinct_users(),
        )
        return delivered

    def emit_activity_logged(self, activity: Any) -> int:
        """Broadcast an activity log record to every connected client."""
        return self._broadcast(HubEventName.ACTIVITY_LOGGED, activity)

    # =========================================================================
    # Delivery
    # =========================================================================

    def _to_subjects(
        self,
        event: HubEventName,
        subjects: list[Subject],
        payload: Any,
    ) -> int:
        data = jsonable_encoder(payload)
        delivered = 0
        for subject in subjects:
            delivered += self._deliver(
                event, subject.channel, data, self.registry.subscribers(subject)
            )

        logger.debug(
            "Event emitted",
            hub_event=event.value,
            channels=[subject.channel for subject in subjects],
            delivered=delivered,
        )
        return delivered

    def _broadcast(self, event: HubEventName, payload: Any) -> int:
        data = jsonable_encoder(payload)
        return self._deliver(event, BROADCAST_CHANNEL, data, self.registry.connections())

    def _deliver(
        self,
        event: HubEventName,
        channel: str,
        data: Any,
        connections: list[Connection],
    ) -> int:
        message = {
            "type": "event",
            "event": event.value,
            "channel": channel,
            "data": data,
        }
        return sum(1 for connection in connections if connection.send(message))


def _now() -> str:
    return datetime.now(UTC).isoformat()
