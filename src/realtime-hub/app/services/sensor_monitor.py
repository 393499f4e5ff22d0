"""Sensor Monitor: threshold checks on ingested readings.

Every reading is pushed to the device's subscribers. Readings that cross an
operating limit raise an alert (once while it stays active) and may move the
device's status.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass

from shared.models import (
    Activity,
    ActivitySeverity,
    ActivityType,
    Alert,
    AlertSeverity,
    AlertStatus,
    DeviceStatus,
    SensorReading,
)
from shared.models.devices import utcnow
from shared.observability import get_logger

from .emitter import EventEmitter

logger = get_logger(__name__)


@dataclass(frozen=True)
class ThresholdBreach:
    """A reading channel outside its operating limit."""

    severity: AlertSeverity
    message: str


def _fmt(value: float) -> str:
    return f"{value:g}"


def evaluate_reading(reading: SensorReading) -> list[ThresholdBreach]:
    """Check a reading against the fixed operating limits."""
    breaches: list[ThresholdBreach] = []

    if reading.temp_cold_storage is not None and reading.temp_cold_storage > 5.0:
        breaches.append(ThresholdBreach(
            AlertSeverity.ERROR,
            f"High cold storage temperature: {_fmt(reading.temp_cold_storage)}°C",
        ))

    if reading.temp_environment is not None and reading.temp_environment > 35.0:
        breaches.append(ThresholdBreach(
            AlertSeverity.WARNING,
            f"High environment temperature: {_fmt(reading.temp_environment)}°C",
        ))

    if reading.pressure_suction is not None and reading.pressure_suction < 1.0:
        breaches.append(ThresholdBreach(
            AlertSeverity.WARNING,
            f"Low suction pressure: {_fmt(reading.pressure_suction)} bar",
        ))

    if reading.pressure_discharge is not None and reading.pressure_discharge > 12.0:
        breaches.append(ThresholdBreach(
            AlertSeverity.ERROR,
            f"High discharge pressure: {_fmt(reading.pressure_discharge)} bar",
        ))

    if reading.voltage_a is not None and not 200 <= reading.voltage_a <= 240:
        breaches.append(ThresholdBreach(
            AlertSeverity.WARNING,
            f"Voltage out of range: {_fmt(reading.voltage_a)}V",
        ))

    if reading.current_a is not None and reading.current_a > 20.0:
        breaches.append(ThresholdBreach(
            AlertSeverity.ERROR,
            f"High current draw: {_fmt(reading.current_a)}A",
        ))

    return breaches


class SensorMonitor:
    """Tracks device status and active alerts in memory."""

    def __init__(self, emitter: EventEmitter):
        self.emitter = emitter
        self._statuses: dict[int, DeviceStatus] = {}
        self._alerts: dict[int, Alert] = {}
        self._alert_ids = itertools.count(1)
        self._activity_ids = itertools.count(1)
        self._lock = threading.Lock()

    def get_status(self, device_id: int) -> DeviceStatus:
        return self._statuses.get(device_id, DeviceStatus.ACTIVE)

    def active_alerts(self, device_id: int) -> list[Alert]:
        return [
            alert
            for alert in self._alerts.values()
            if alert.device_id == device_id and alert.status == AlertStatus.ACTIVE
        ]

    def ingest(self, device_id: int, reading: SensorReading) -> list[Alert]:
        """Publish a reading and act on any threshold breaches.

        Returns:
            Alerts newly raised by this reading
        """
        self.emitter.emit_device_data_update(device_id, reading)

        breaches = evaluate_reading(reading)
        raised: list[Alert] = []

        for breach in breaches:
            alert = self._raise_alert(device_id, breach)
            if alert is None:
                continue
            raised.append(alert)

            self.emitter.emit_new_alert(device_id, alert)
            self._log_activity(
                action="Alert generated",
                type=ActivityType.ALERT,
                severity=ActivitySeverity(breach.severity.value),
                device_id=device_id,
                details=breach.message,
            )
            logger.info(
                "Alert created",
                device_id=device_id,
                alert_id=alert.id,
                severity=breach.severity.value,
                message=breach.message,
            )

        severities = {breach.severity for breach in breaches}
        if AlertSeverity.ERROR in severities:
            self._update_status(device_id, DeviceStatus.ERROR)
        elif AlertSeverity.WARNING in severities and self.get_status(device_id) != DeviceStatus.ERROR:
            self._update_status(device_id, DeviceStatus.MAINTENANCE)

        return raised

    def resolve_alert(self, device_id: int, alert_id: int) -> Alert | None:
        """Mark an alert resolved so the same breach can raise a new one."""
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None or alert.device_id != device_id:
                return None
            if alert.status != AlertStatus.RESOLVED:
                alert = alert.model_copy(
                    update={"status": AlertStatus.RESOLVED, "resolved_at": utcnow()}
                )
                self._alerts[alert_id] = alert

        logger.info("Alert resolved", device_id=device_id, alert_id=alert_id)
        return alert

    def _raise_alert(self, device_id: int, breach: ThresholdBreach) -> Alert | None:
        with self._lock:
            for existing in self._alerts.values():
                if (
                    existing.device_id == device_id
                    and existing.message == breach.message
                    and existing.status == AlertStatus.ACTIVE
                ):
                    return None

            alert = Alert(
                id=next(self._alert_ids),
                device_id=device_id,
                severity=breach.severity,
                message=breach.message,
            )
            self._alerts[alert.id] = alert
            return alert

    def _update_status(self, device_id: int, status: DeviceStatus) -> None:
        previous = self.get_status(device_id)
        if previous == status:
            return

        self._statuses[device_id] = status
        self.emitter.emit_device_status_change(device_id, status)
        self._log_activity(
            action="Device status changed",
            type=ActivityType.SYSTEM,
            severity=ActivitySeverity.ERROR if status == DeviceStatus.ERROR else ActivitySeverity.WARNING,
            device_id=device_id,
            details=f"Device status changed from {previous.value} to {status.value}",
        )
        logger.info(
            "Device status updated",
            device_id=device_id,
            old_status=previous.value,
            new_status=status.value,
        )

    def _log_activity(self, **fields) -> None:
        activity = Activity(id=next(self._activity_ids), **fields)
        self.emitter.emit_activity_logged(activity)
