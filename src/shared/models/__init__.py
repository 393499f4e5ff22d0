"""Shared data models for the cooling manager realtime hub.

All models follow these conventions:
- Timestamps: ISO 8601 format with timezone (UTC)
- IDs: positive integers, as issued by the REST backend
- Field names: snake_case in Python, camelCase on the wire
- Enums: uppercase SNAKE_CASE values, event names kebab-case
"""

# Base
from .base import CoolmonBaseModel

# Identity
from .auth import Principal, UserRole

# Device domain
from .devices import (
    Activity,
    ActivitySeverity,
    ActivityType,
    Alert,
    AlertSeverity,
    AlertStatus,
    DeviceStatus,
    SensorReading,
)

# Event models
from .events import (
    ALL_DEVICES_CHANNEL,
    ClientMessageType,
    ConnectionStats,
    DeviceSubscriptionCount,
    HubEvent,
    HubEventName,
    Subject,
    SubjectKind,
)

__all__ = [
    # Base
    "CoolmonBaseModel",
    # Identity
    "Principal",
    "UserRole",
    # Devices
    "Activity",
    "ActivitySeverity",
    "ActivityType",
    "Alert",
    "AlertSeverity",
    "AlertStatus",
    "DeviceStatus",
    "SensorReading",
    # Events
    "ALL_DEVICES_CHANNEL",
    "ClientMessageType",
    "ConnectionStats",
    "DeviceSubscriptionCount",
    "HubEvent",
    "HubEventName",
    "Subject",
    "SubjectKind",
]
