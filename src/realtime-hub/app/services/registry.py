"""Connection Registry: who is connected, and who is subscribed to what.

The registry is the only owner of connection and subscription state. Each
index has its own lock so subscription changes for unrelated devices never
queue behind each other, and no lock spans two indexes.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Hashable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from shared.models import (
    ConnectionStats,
    DeviceSubscriptionCount,
    Principal,
    Subject,
    SubjectKind,
)
from shared.observability import get_logger

logger = get_logger(__name__)

# Outbox sentinel asking the sender task to close the transport
_CLOSE = object()


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


@dataclass(eq=False)
class Connection:
    """One live transport session.

    Messages are queued on a bounded outbox and drained by the transport's
    sender task, so producers never wait on a slow client. ``send`` may be
    called from any thread; off-loop callers are handed to ``loop``.
    """

    principal: Principal
    outbox_size: int = 100
    loop: asyncio.AbstractEventLoop | None = None
    remote_addr: str | None = None
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        self.outbox: asyncio.Queue[Any] = asyncio.Queue(maxsize=self.outbox_size)
        self.messages_dropped = 0
        self.close_code = 1000
        self.close_reason = ""
        self._closing = False

    @property
    def user_id(self) -> int:
        return self.principal.user_id

    @property
    def is_closing(self) -> bool:
        return self._closing

    def send(self, message: dict[str, Any]) -> bool:
        """Queue a message for delivery.

        Returns:
            False if the connection is closing or its outbox is full
        """
        if self._closing:
            return False
        if self.loop is not None and not _on_loop(self.loop):
            self.loop.call_soon_threadsafe(self._enqueue, message)
            return True
        return self._enqueue(message)

    def close(self, code: int = 1000, reason: str = "") -> None:
        """Ask the transport to close. Pending messages are discarded."""
        if self._closing:
            return
        self._closing = True
        self.close_code = code
        self.close_reason = reason
        if self.loop is not None and not _on_loop(self.loop):
            self.loop.call_soon_threadsafe(self._enqueue_close)
        else:
            self._enqueue_close()

    async def next_message(self) -> dict[str, Any] | None:
        """Wait for the next outbound message; None once the connection is closing."""
        item = await self.outbox.get()
        if item is _CLOSE:
            return None
        return item

    def _enqueue(self, message: dict[str, Any]) -> bool:
        if self._closing:
            return False
        try:
            self.outbox.put_nowait(message)
        except asyncio.QueueFull:
            self.messages_dropped += 1
            logger.warning(
                "Outbox full, dropping message",
                connection_id=self.id,
                user_id=self.user_id,
                messages_dropped=self.messages_dropped,
            )
            return False
        return True

    def _enqueue_close(self) -> None:
        while not self.outbox.empty():
            self.outbox.get_nowait()
        self.outbox.put_nowait(_CLOSE)


class _ChannelIndex:
    """Subject -> set of connection ids, guarded by its own lock."""

    def __init__(self, name: str):
        self.name = name
        self._members: dict[Hashable, set[str]] = {}
        self._lock = threading.Lock()

    def add(self, key: Hashable, connection_id: str) -> bool:
        with self._lock:
            members = self._members.setdefault(key, set())
            if connection_id in members:
                return False
            members.add(connection_id)
            return True

    def discard(self, key: Hashable, connection_id: str) -> bool:
        with self._lock:
            members = self._members.get(key)
            if not members or connection_id not in members:
                return False
            members.discard(connection_id)
            if not members:
                del self._members[key]
            return True

    def discard_everywhere(self, connection_id: str) -> list[Hashable]:
        removed = []
        with self._lock:
            for key in list(self._members):
                members = self._members[key]
                if connection_id in members:
                    members.discard(connection_id)
                    removed.append(key)
                    if not members:
                        del self._members[key]
        return removed

    def members(self, key: Hashable) -> frozenset[str]:
        with self._lock:
            return frozenset(self._members.get(key, ()))

    def keys_for(self, connection_id: str) -> list[Hashable]:
        with self._lock:
            return [key for key, members in self._members.items() if connection_id in members]

    def counts(self) -> dict[Hashable, int]:
        with self._lock:
            return {key: len(members) for key, members in self._members.items()}


class ConnectionRegistry:
    """Single source of truth for live connections and their subscriptions.

    Indexes:
    - principal: user id -> connection ids (plus the connection table)
    - one channel index per subject kind (device, user, all devices)
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._by_user: dict[int, set[str]] = {}
        self._principal_lock = threading.Lock()
        self._channels: dict[SubjectKind, _ChannelIndex] = {
            kind: _ChannelIndex(kind.value) for kind in SubjectKind
        }

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, connection: Connection) -> None:
        """Add a connection under its principal and join its own user channel.

        A user may hold several connections at once (one per browser tab).
        """
        user_id = connection.user_id
        with self._principal_lock:
            self._connections[connection.id] = connection
            self._by_user.setdefault(user_id, set()).add(connection.id)

        self.subscribe(Subject.user(user_id), connection.id)

        logger.info(
            "Connection registered",
            connection_id=connection.id,
            user_id=user_id,
            username=connection.principal.username,
            total_connections=len(self._connections),
        )

    def unregister(self, connection_id: str) -> Connection | None:
        """Remove a connection and every subscription it holds.

        Idempotent; returns the removed connection, or None if it was unknown.
        """
        with self._principal_lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return None
            user_connections = self._by_user.get(connection.user_id)
            if user_connections is not None:
                user_connections.discard(connection_id)
                if not user_connections:
                    del self._by_user[connection.user_id]

        for index in self._channels.values():
            index.discard_everywhere(connection_id)

        logger.info(
            "Connection unregistered",
            connection_id=connection_id,
            user_id=connection.user_id,
            total_connections=len(self._connections),
        )
        return connection

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, subject: Subject, connection_id: str) -> bool:
        """Add a connection to a subject's subscriber set.

        Returns:
            True if the subscription is new
        """
        if connection_id not in self._connections:
            return False

        index = self._channels[subject.kind]
        added = index.add(subject, connection_id)

        # Lost a race with unregister; never leave a dangling id behind
        if connection_id not in self._connections:
            index.discard(subject, connection_id)
            return False
        return added

    def unsubscribe(self, subject: Subject, connection_id: str) -> bool:
        """Remove a connection from a subject's subscriber set."""
        return self._channels[subject.kind].discard(subject, connection_id)

    def subscribers(self, subject: Subject) -> list[Connection]:
        """Live connections subscribed to a subject."""
        members = self._channels[subject.kind].members(subject)
        return [
            connection
            for connection_id in members
            if (connection := self._connections.get(connection_id)) is not None
        ]

    def is_subscribed(self, subject: Subject, connection_id: str) -> bool:
        return connection_id in self._channels[subject.kind].members(subject)

    def subjects_for(self, connection_id: str) -> list[Subject]:
        """Every subject a connection is subscribed to."""
        subjects: list[Subject] = []
        for index in self._channels.values():
            subjects.extend(index.keys_for(connection_id))
        return subjects

    def device_subscriber_count(self, device_id: int) -> int:
        return len(self.subscribers(Subject.device(device_id)))

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def connections(self) -> list[Connection]:
        """Snapshot of all live connections."""
        with self._principal_lock:
            return list(self._connections.values())

    def connections_for_user(self, user_id: int) -> list[Connection]:
        with self._principal_lock:
            return [self._connections[cid] for cid in self._by_user.get(user_id, ())]

    def count_connections(self) -> int:
        return len(self._connections)

    def count_distinct_users(self) -> int:
        return len(self._by_user)

    def is_user_connected(self, user_id: int) -> bool:
        return user_id in self._by_user

    def list_connected_users(self) -> list[int]:
        with self._principal_lock:
            return sorted(self._by_user)

    def get_stats(self) -> ConnectionStats:
        """Connection statistics for health and metrics endpoints."""
        device_counts = self._channels[SubjectKind.DEVICE].counts()
        return ConnectionStats(
            connected_users=self.count_distinct_users(),
            total_connections=self.count_connections(),
            device_subscriptions=[
                DeviceSubscriptionCount(device_id=subject.id, subscriber_count=count)
                for subject, count in sorted(device_counts.items(), key=lambda item: item[0].id)
            ],
        )
