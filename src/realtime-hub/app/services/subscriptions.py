"""Subscription protocol: client-initiated join/leave of device and user channels."""

from __future__ import annotations

from typing import Any

from shared.models import Subject
from shared.observability import get_logger

from .registry import Connection, ConnectionRegistry

logger = get_logger(__name__)


def parse_positive_id(value: Any) -> int | None:
    """Parse a device or user id sent by a client.

    Accepts positive ints and strings of ASCII digits. Anything else
    (floats, bools, signs, "12abc", empty strings) yields None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdigit():
            parsed = int(text)
            return parsed if parsed > 0 else None
    return None


class SubscriptionManager:
    """Scopes connections to device, user and all-devices channels.

    Malformed ids and attempts to join another user's channel are ignored
    without an error; every operation returns the subject it applied to, or
    None when it did nothing.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    def _join(self, connection: Connection, subject: Subject) -> Subject | None:
        self.registry.subscribe(subject, connection.id)
        if not self.registry.is_subscribed(subject, connection.id):
            return None
        return subject

    def join_device(self, connection: Connection, device_id: Any) -> Subject | None:
        parsed = parse_positive_id(device_id)
        if parsed is None:
            logger.debug("Ignoring join-device with malformed id", connection_id=connection.id)
            return None

        subject = self._join(connection, Subject.device(parsed))
        logger.debug(
            "Connection subscribed to device",
            connection_id=connection.id,
            user_id=connection.user_id,
            device_id=parsed,
        )
        return subject

    def leave_device(self, connection: Connection, device_id: Any) -> Subject | None:
        parsed = parse_positive_id(device_id)
        if parsed is None:
            return None

        subject = Subject.device(parsed)
        self.registry.unsubscribe(subject, connection.id)
        logger.debug(
            "Connection unsubscribed from device",
            connection_id=connection.id,
            user_id=connection.user_id,
            device_id=parsed,
        )
        return subject

    def join_user(self, connection: Connection, user_id: Any) -> Subject | None:
        """Join a personal channel; only the connection's own user channel is allowed."""
        parsed = parse_positive_id(user_id)
        if parsed is None:
            return None
        if parsed != connection.user_id:
            logger.info(
                "Ignoring join-user for another principal",
                connection_id=connection.id,
                user_id=connection.user_id,
                requested_user_id=parsed,
            )
            return None
        return self._join(connection, Subject.user(parsed))

    def leave_user(self, connection: Connection, user_id: Any) -> Subject | None:
        parsed = parse_positive_id(user_id)
        if parsed is None:
            return None

        subject = Subject.user(parsed)
        self.registry.unsubscribe(subject, connection.id)
        return subject

    def join_all_devices(self, connection: Connection) -> Subject | None:
        return self._join(connection, Subject.all_devices())

    def leave_all_devices(self, connection: Connection) -> Subject:
        subject = Subject.all_devices()
        self.registry.unsubscribe(subject, connection.id)
        return subject
