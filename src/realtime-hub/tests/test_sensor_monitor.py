"""Tests for sensor threshold monitoring."""

import pytest
from app.services.emitter import EventEmitter
from app.services.sensor_monitor import SensorMonitor, evaluate_reading
from hub_helpers import events

from shared.models import AlertSeverity, AlertStatus, DeviceStatus, SensorReading, Subject


@pytest.fixture
def monitor(registry):
    return SensorMonitor(EventEmitter(registry))


@pytest.fixture
def watcher(registry, connect):
    """A dashboard connection following device 42 and the fleet channel."""
    connection = connect(user_id=1)
    registry.subscribe(Subject.device(42), connection.id)
    registry.subscribe(Subject.all_devices(), connection.id)
    return connection


class TestEvaluateReading:
    def test_normal_reading_has_no_breaches(self):
        reading = SensorReading(
            temp_cold_storage=2.5,
            temp_environment=22.0,
            pressure_suction=2.1,
            pressure_discharge=8.4,
            voltage_a=230.0,
            current_a=12.0,
        )

        assert evaluate_reading(reading) == []

    @pytest.mark.parametrize("field,value,severity,message", [
        ("temp_cold_storage", 6.5, AlertSeverity.ERROR, "High cold storage temperature: 6.5°C"),
        ("temp_environment", 36.0, AlertSeverity.WARNING, "High environment temperature: 36°C"),
        ("pressure_suction", 0.5, AlertSeverity.WARNING, "Low suction pressure: 0.5 bar"),
        ("pressure_discharge", 12.5, AlertSeverity.ERROR, "High discharge pressure: 12.5 bar"),
        ("voltage_a", 190.0, AlertSeverity.WARNING, "Voltage out of range: 190V"),
        ("voltage_a", 250.0, AlertSeverity.WARNING, "Voltage out of range: 250V"),
        ("current_a", 25.0, AlertSeverity.ERROR, "High current draw: 25A"),
    ])
    def test_breaches(self, field, value, severity, message):
        (breach,) = evaluate_reading(SensorReading(**{field: value}))

        assert breach.severity == severity
        assert breach.message == message

    def test_limits_are_exclusive(self):
        reading = SensorReading(temp_cold_storage=5.0, voltage_a=240.0, pressure_suction=1.0)

        assert evaluate_reading(reading) == []


class TestSensorMonitor:
    def test_reading_is_published(self, monitor, watcher):
        monitor.ingest(42, SensorReading(temp_cold_storage=2.5))

        (message,) = events(watcher)
        assert message["event"] == "device-data-updated"
        assert message["data"]["sensorData"]["tempColdStorage"] == 2.5

    def test_error_breach_raises_alert_and_sets_error(self, monitor, watcher):
        raised = monitor.ingest(42, SensorReading(current_a=25.0))

        assert len(raised) == 1
        assert raised[0].severity == AlertSeverity.ERROR
        assert monitor.get_status(42) == DeviceStatus.ERROR

        names = [(m["event"], m["channel"]) for m in events(watcher)]
        assert ("new-alert", "device:42") in names
        assert ("new-alert", "devices:all") in names
        assert ("device-status-changed", "device:42") in names
        assert [n for n, _ in names].count("activity-logged") == 2

    def test_active_alert_is_not_duplicated(self, monitor):
        monitor.ingest(42, SensorReading(current_a=25.0))

        assert monitor.ingest(42, SensorReading(current_a=25.0)) == []
        assert len(monitor.active_alerts(42)) == 1

    def test_resolved_alert_can_fire_again(self, monitor):
        (alert,) = monitor.ingest(42, SensorReading(current_a=25.0))

        resolved = monitor.resolve_alert(42, alert.id)

        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolved_at is not None
        assert monitor.active_alerts(42) == []
        assert len(monitor.ingest(42, SensorReading(current_a=25.0))) == 1

    def test_resolve_unknown_alert(self, monitor):
        (alert,) = monitor.ingest(42, SensorReading(current_a=25.0))

        assert monitor.resolve_alert(42, 999) is None
        assert monitor.resolve_alert(43, alert.id) is None

    def test_warning_sets_maintenance(self, monitor):
        monitor.ingest(42, SensorReading(temp_environment=36.0))

        assert monitor.get_status(42) == DeviceStatus.MAINTENANCE

    def test_warning_does_not_downgrade_error(self, monitor):
        monitor.ingest(42, SensorReading(current_a=25.0))
        monitor.ingest(42, SensorReading(temp_environment=36.0))

        assert monitor.get_status(42) == DeviceStatus.ERROR

    def test_unchanged_status_is_not_reemitted(self, monitor, watcher):
        monitor.ingest(42, SensorReading(current_a=25.0))
        events(watcher)

        monitor.ingest(42, SensorReading(pressure_discharge=13.0))

        names = [m["event"] for m in events(watcher)]
        assert "device-status-changed" not in names
        assert "new-alert" in names

    def test_new_device_starts_active(self, monitor):
        assert monitor.get_status(5) == DeviceStatus.ACTIVE
