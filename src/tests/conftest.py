"""Pytest configuration and shared fixtures."""

import os
from typing import Any

import pytest

# Set test environment before importing settings
os.environ["ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "text"


@pytest.fixture
def sample_reading_data() -> dict[str, Any]:
    """Sensor reading as posted by a device poller (camelCase wire format)."""
    return {
        "tempColdStorage": 2.4,
        "tempEnvironment": 24.8,
        "tempSolution": 3.1,
        "pressureSuction": 2.2,
        "pressureDischarge": 9.6,
        "superheatCurrent": 6.5,
        "voltageA": 229.0,
        "currentA": 11.3,
    }


@pytest.fixture
def sample_event_data() -> dict[str, Any]:
    """Event as published on Redis by the REST backend."""
    return {
        "event": "new-alert",
        "deviceId": 42,
        "data": {"id": 1, "severity": "ERROR", "message": "High current draw: 25A"},
    }


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line(
        "markers", "integration: Integration tests (require external services)"
    )
    config.addinivalue_line("markers", "slow: Slow tests")
