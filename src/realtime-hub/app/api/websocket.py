"""WebSocket endpoint: handshake, subscription protocol and outbound delivery."""

from __future__ import annotations

import asyncio
import contextlib
import json
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from shared.config import get_settings
from shared.models import ClientMessageType, Subject
from shared.observability import connection_id_var, get_logger, user_id_var

from ..middleware.ws_auth import AuthenticationRejected
from ..services.heartbeat import HeartbeatManager
from ..services.registry import Connection
from ..services.subscriptions import SubscriptionManager

router = APIRouter()
logger = get_logger(__name__)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket connection endpoint with lifecycle management.

    Protocol:
    1. Client connects with a bearer token
    2. Server validates the token and account before accepting
    3. Connection is registered and joined to its own user channel
    4. Client joins and leaves device channels
    5. Server pushes events for the connection's subscriptions
    6. Ping/pong for keepalive with timeout detection
    """
    state = websocket.app.state

    try:
        principal = await state.authenticator.authenticate(websocket, state.user_directory)
    except AuthenticationRejected as e:
        await websocket.close(code=e.code, reason=e.reason)
        return

    await websocket.accept(subprotocol=state.authenticator.negotiated_subprotocol(websocket))

    connection = Connection(
        principal=principal,
        outbox_size=get_settings().socket.outbox_size,
        loop=asyncio.get_running_loop(),
        remote_addr=websocket.client.host if websocket.client else None,
    )
    connection.send({
        "type": "connected",
        "connectionId": connection.id,
        "userId": principal.user_id,
        "serverTime": datetime.now(UTC).isoformat(),
    })

    registry = state.registry
    registry.register(connection)
    connection_id_var.set(connection.id)
    user_id_var.set(principal.user_id)

    receiver_task = asyncio.create_task(
        _message_receiver(websocket, connection, state.subscriptions, state.heartbeat)
    )
    sender_task = asyncio.create_task(_message_sender(websocket, connection))

    try:
        done, _ = await asyncio.wait(
            {receiver_task, sender_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in done:
            error = task.exception()
            if error is None or isinstance(error, WebSocketDisconnect):
                logger.info(
                    "WebSocket client disconnected",
                    connection_id=connection.id,
                    user_id=principal.user_id,
                )
            else:
                logger.error(
                    "WebSocket error",
                    connection_id=connection.id,
                    user_id=principal.user_id,
                    error=str(error),
                )
    except Exception as e:
        logger.error("WebSocket error", connection_id=connection.id, error=str(e))
    finally:
        for task in (receiver_task, sender_task):
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

        registry.unregister(connection.id)
        state.heartbeat.forget(connection.id)


async def _message_receiver(
    websocket: WebSocket,
    connection: Connection,
    subscriptions: SubscriptionManager,
    heartbeat: HeartbeatManager,
) -> None:
    """Read client messages until the transport closes."""
    while True:
        frame = await websocket.receive()
        if frame["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(frame.get("code", 1000), frame.get("reason"))

        # Binary frames carry no text and are rejected like bad JSON
        data = frame.get("text")
        try:
            message = json.loads(data) if data is not None else None
        except json.JSONDecodeError:
            message = None

        if not isinstance(message, dict):
            connection.send({
                "type": "error",
                "code": "INVALID_MESSAGE",
                "message": "Invalid JSON message",
            })
            continue

        handle_message(connection, message, subscriptions, heartbeat)


async def _message_sender(websocket: WebSocket, connection: Connection) -> None:
    """Drain the connection's outbox onto the socket.

    Returns once the connection is asked to close.
    """
    while True:
        message = await connection.next_message()
        if message is None:
            await websocket.close(code=connection.close_code, reason=connection.close_reason)
            return
        await websocket.send_json(message)


def handle_message(
    connection: Connection,
    message: dict[str, Any],
    subscriptions: SubscriptionManager,
    heartbeat: HeartbeatManager,
) -> None:
    """Handle incoming WebSocket message.

    Message types:
    - join-device / leave-device: device channel membership
    - join-user / leave-user: the caller's own user channel
    - join-all-devices / leave-all-devices: fleet-wide status and alerts
    - ping: client ping (not the heartbeat ping)
    - pong: response to server heartbeat ping

    Malformed ids are ignored without a reply.
    """
    msg_type = message.get("type")
    try:
        op = ClientMessageType(msg_type)
    except (ValueError, TypeError):
        connection.send({
            "type": "error",
            "code": "UNKNOWN_MESSAGE_TYPE",
            "message": f"Unknown message type: {msg_type}",
        })
        return

    if op == ClientMessageType.JOIN_DEVICE:
        _ack(connection, "subscribed", subscriptions.join_device(connection, message.get("deviceId")))

    elif op == ClientMessageType.LEAVE_DEVICE:
        _ack(connection, "unsubscribed", subscriptions.leave_device(connection, message.get("deviceId")))

    elif op == ClientMessageType.JOIN_USER:
        _ack(connection, "subscribed", subscriptions.join_user(connection, message.get("userId")))

    elif op == ClientMessageType.LEAVE_USER:
        _ack(connection, "unsubscribed", subscriptions.leave_user(connection, message.get("userId")))

    elif op == ClientMessageType.JOIN_ALL_DEVICES:
        _ack(connection, "subscribed", subscriptions.join_all_devices(connection))

    elif op == ClientMessageType.LEAVE_ALL_DEVICES:
        _ack(connection, "unsubscribed", subscriptions.leave_all_devices(connection))

    elif op == ClientMessageType.PING:
        connection.send({
            "type": "pong",
            "timestamp": message.get("timestamp"),
            "serverTime": datetime.now(UTC).isoformat(),
        })

    else:
        heartbeat.handle_pong(connection.id)


def _ack(connection: Connection, kind: str, subject: Subject | None) -> None:
    if subject is not None:
        connection.send({"type": kind, "channel": subject.channel})
