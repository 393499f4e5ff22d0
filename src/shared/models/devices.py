"""Cooling device domain models carried in real-time event payloads."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import Field

from .base import CoolmonBaseModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeviceStatus(str, Enum):
    """Operational state of a cooling device."""

    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    MAINTENANCE = "MAINTENANCE"
    ERROR = "ERROR"


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AlertStatus(str, Enum):
    """Alert lifecycle state."""

    ACTIVE = "ACTIVE"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    RESOLVED = "RESOLVED"


class ActivityType(str, Enum):
    """Activity log categories."""

    USER = "USER"
    SYSTEM = "SYSTEM"
    ALERT = "ALERT"
    ERROR = "ERROR"


class ActivitySeverity(str, Enum):
    """Activity log severities."""

    SUCCESS = "SUCCESS"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class SensorReading(CoolmonBaseModel):
    """One sample of a device's sensor channels.

    Every channel is optional; a device may not report all of them.
    """

    temp_cold_storage: float | None = Field(default=None, description="Cold storage temperature (°C)")
    temp_environment: float | None = Field(default=None, description="Ambient temperature (°C)")
    temp_solution: float | None = Field(default=None, description="Solution temperature (°C)")
    pressure_suction: float | None = Field(default=None, description="Suction pressure (bar)")
    pressure_discharge: float | None = Field(default=None, description="Discharge pressure (bar)")
    superheat_current: float | None = Field(default=None, description="Current superheat (K)")
    voltage_a: float | None = Field(default=None, description="Phase A voltage (V)")
    current_a: float | None = Field(default=None, description="Phase A current (A)")
    timestamp: datetime = Field(default_factory=utcnow)


class Alert(CoolmonBaseModel):
    """Alert raised for a device."""

    id: int
    device_id: int
    severity: AlertSeverity
    message: str
    status: AlertStatus = AlertStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: datetime | None = None


class Activity(CoolmonBaseModel):
    """Activity log record broadcast to dashboards."""

    id: int
    action: str
    type: ActivityType
    severity: ActivitySeverity
    device_id: int | None = None
    user_id: int | None = None
    details: str | None = None
    timestamp: datetime = Field(default_factory=utcnow)
