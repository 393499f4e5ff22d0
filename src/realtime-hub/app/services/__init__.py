"""Services for the Realtime Hub."""

from .emitter import EventEmitter
from .event_router import EventRouter
from .heartbeat import HeartbeatManager
from .registry import Connection, ConnectionRegistry
from .sensor_monitor import SensorMonitor, evaluate_reading
from .subscriptions import SubscriptionManager, parse_positive_id
from .user_directory import SqlUserDirectory, UserDirectory, UserRecord

__all__ = [
    "Connection",
    "ConnectionRegistry",
    "EventEmitter",
    "EventRouter",
    "HeartbeatManager",
    "SensorMonitor",
    "SqlUserDirectory",
    "SubscriptionManager",
    "UserDirectory",
    "UserRecord",
    "evaluate_reading",
    "parse_positive_id",
]
