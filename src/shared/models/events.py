"""Event models for real-time streaming.

Subjects are typed; channel names only exist at the transport edge.
"""

from enum import Enum
from typing import Any

from pydantic import ConfigDict, Field

from .base import CoolmonBaseModel


class HubEventName(str, Enum):
    """Server-to-client event names."""

    DEVICE_DATA_UPDATED = "device-data-updated"
    DEVICE_STATUS_CHANGED = "device-status-changed"
    NEW_ALERT = "new-alert"
    GPIO_STATE_UPDATED = "gpio-state-updated"
    ACTIVITY_LOGGED = "activity-logged"
    USER_NOTIFICATION = "user-notification"
    SYSTEM_NOTIFICATION = "system-notification"


class ClientMessageType(str, Enum):
    """Client-to-server message types."""

    JOIN_DEVICE = "join-device"
    LEAVE_DEVICE = "leave-device"
    JOIN_USER = "join-user"
    LEAVE_USER = "leave-user"
    JOIN_ALL_DEVICES = "join-all-devices"
    LEAVE_ALL_DEVICES = "leave-all-devices"
    PING = "ping"
    PONG = "pong"


class SubjectKind(str, Enum):
    """What a subscription is scoped to."""

    DEVICE = "device"
    USER = "user"
    ALL_DEVICES = "all-devices"


ALL_DEVICES_CHANNEL = "devices:all"


class Subject(CoolmonBaseModel):
    """Typed subscription scope: a device, a user, or every device."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    kind: SubjectKind
    id: int | None = None

    @classmethod
    def device(cls, device_id: int) -> "Subject":
        return cls(kind=SubjectKind.DEVICE, id=device_id)

    @classmethod
    def user(cls, user_id: int) -> "Subject":
        return cls(kind=SubjectKind.USER, id=user_id)

    @classmethod
    def all_devices(cls) -> "Subject":
        return cls(kind=SubjectKind.ALL_DEVICES)

    @property
    def channel(self) -> str:
        """Transport channel name for this subject."""
        if self.kind == SubjectKind.ALL_DEVICES:
            return ALL_DEVICES_CHANNEL
        return f"{self.kind.value}:{self.id}"


class HubEvent(CoolmonBaseModel):
    """Event published on Redis by other backend processes.

    ``data`` carries the domain payload (sensor data, status, alert, state,
    activity); notifications use ``message`` and ``type`` instead.
    """

    event: HubEventName
    device_id: int | None = Field(default=None, gt=0)
    user_id: int | None = Field(default=None, gt=0)
    data: Any = None
    message: str | None = None
    type: str = "info"


class DeviceSubscriptionCount(CoolmonBaseModel):
    """Subscriber count for one device."""

    device_id: int
    subscriber_count: int


class ConnectionStats(CoolmonBaseModel):
    """Snapshot consumed by health and metrics endpoints."""

    connected_users: int
    total_connections: int
    device_subscriptions: list[DeviceSubscriptionCount] = Field(default_factory=list)
