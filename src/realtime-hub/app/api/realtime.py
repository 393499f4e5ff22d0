"""HTTP control surface for the realtime hub.

Connection statistics, admin socket management, notification fan-out and
sensor reading ingestion.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import Field

from shared.models import (
    Alert,
    ConnectionStats,
    CoolmonBaseModel,
    DeviceStatus,
    Principal,
    SensorReading,
)
from shared.observability import get_logger, log_security_event

from .deps import get_current_principal, require_admin, require_operator

router = APIRouter()
logger = get_logger(__name__)


class ConnectedUsers(CoolmonBaseModel):
    """Users holding at least one live connection."""

    user_ids: list[int]
    total: int


class DisconnectResult(CoolmonBaseModel):
    user_id: int
    connections_closed: int


class NotificationRequest(CoolmonBaseModel):
    message: str = Field(min_length=1, max_length=1000)
    type: str = Field(default="info", pattern="^(info|success|warning|error)$")


class DeliveryResult(CoolmonBaseModel):
    delivered: int


class ReadingResult(CoolmonBaseModel):
    device_id: int
    status: DeviceStatus
    alerts_raised: list[Alert]
    subscribers: int


# =============================================================================
# Connections
# =============================================================================


@router.get(
    "/socket/stats",
    response_model=ConnectionStats,
    summary="Get connection statistics",
)
async def get_stats(
    request: Request,
    principal: Principal = Depends(get_current_principal),
):
    """Connected users, total connections and per-device subscriber counts."""
    return request.app.state.registry.get_stats()


@router.get(
    "/socket/users",
    response_model=ConnectedUsers,
    summary="List connected users",
)
async def list_connected_users(
    request: Request,
    principal: Principal = Depends(require_admin),
):
    user_ids = request.app.state.registry.list_connected_users()
    return ConnectedUsers(user_ids=user_ids, total=len(user_ids))


@router.post(
    "/socket/users/{user_id}/disconnect",
    response_model=DisconnectResult,
    summary="Disconnect every connection of a user",
)
async def disconnect_user(
    user_id: int,
    request: Request,
    principal: Principal = Depends(require_admin),
):
    """Close all of a user's connections and drop them from the registry at once."""
    registry = request.app.state.registry

    closed = 0
    for connection in registry.connections_for_user(user_id):
        connection.close(code=status.WS_1000_NORMAL_CLOSURE, reason="Disconnected by administrator")
        if registry.unregister(connection.id) is not None:
            closed += 1

    log_security_event(
        "Forced socket disconnect",
        user_id=principal.user_id,
        ip=request.client.host if request.client else None,
        target_user_id=user_id,
        connections_closed=closed,
    )
    return DisconnectResult(user_id=user_id, connections_closed=closed)


# =============================================================================
# Notifications
# =============================================================================


@router.post(
    "/notifications/system",
    response_model=DeliveryResult,
    summary="Broadcast a system notification",
)
async def send_system_notification(
    body: NotificationRequest,
    request: Request,
    principal: Principal = Depends(require_admin),
):
    delivered = request.app.state.emitter.emit_system_notification(body.message, body.type)
    return DeliveryResult(delivered=delivered)


@router.post(
    "/notifications/users/{user_id}",
    response_model=DeliveryResult,
    summary="Notify one user",
)
async def send_user_notification(
    user_id: int,
    body: NotificationRequest,
    request: Request,
    principal: Principal = Depends(get_current_principal),
):
    """Admins may notify anyone; other users only themselves."""
    if not principal.is_admin and principal.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )

    delivered = request.app.state.emitter.emit_user_notification(user_id, body.message, body.type)
    return DeliveryResult(delivered=delivered)


# =============================================================================
# Devices
# =============================================================================


@router.post(
    "/devices/{device_id}/readings",
    response_model=ReadingResult,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Ingest a sensor reading",
)
async def ingest_reading(
    device_id: int,
    reading: SensorReading,
    request: Request,
    principal: Principal = Depends(require_operator),
):
    if device_id <= 0:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")

    monitor = request.app.state.sensor_monitor
    raised = monitor.ingest(device_id, reading)

    return ReadingResult(
        device_id=device_id,
        status=monitor.get_status(device_id),
        alerts_raised=raised,
        subscribers=request.app.state.registry.device_subscriber_count(device_id),
    )


@router.post(
    "/devices/{device_id}/alerts/{alert_id}/resolve",
    response_model=Alert,
    summary="Resolve an alert",
)
async def resolve_alert(
    device_id: int,
    alert_id: int,
    request: Request,
    principal: Principal = Depends(require_operator),
):
    alert = request.app.state.sensor_monitor.resolve_alert(device_id, alert_id)
    if alert is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Alert not found")

    logger.info("Alert resolved via API", alert_id=alert_id, resolved_by=principal.user_id)
    return alert
