"""WebSocket Heartbeat Manager.

Manages connection health through periodic heartbeats:
- Server sends ping every ``ping_interval`` seconds
- Client must respond with pong within ``pong_timeout`` seconds
- Connections missing ``max_missed_pongs`` pongs are closed and unregistered
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import UTC, datetime

from shared.observability import get_logger

from .registry import ConnectionRegistry

logger = get_logger(__name__)

GOING_AWAY = 1001


@dataclass
class HeartbeatState:
    """Liveness bookkeeping for one connection."""

    last_ping_sent: datetime | None = None
    last_pong_received: datetime | None = None
    unanswered_since: datetime | None = None
    missed_pongs: int = 0


class HeartbeatManager:
    """Pings every registered connection and reaps the silent ones."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        ping_interval: int = 25,
        pong_timeout: int = 20,
        max_missed_pongs: int = 3,
    ):
        """Initialize the heartbeat manager.

        Args:
            registry: Registry whose connections are monitored
            ping_interval: Seconds between ping messages
            pong_timeout: Seconds to wait for pong response
            max_missed_pongs: Number of missed pongs before closing connection
        """
        self.registry = registry
        self.ping_interval = ping_interval
        self.pong_timeout = pong_timeout
        self.max_missed_pongs = max_missed_pongs

        self._states: dict[str, HeartbeatState] = {}
        self._heartbeat_task: asyncio.Task | None = None
        self._running = False

    async def start(self) -> None:
        """Start the heartbeat loop."""
        if self._running:
            return

        self._running = True
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        logger.info("Heartbeat manager started", ping_interval=self.ping_interval)

    async def stop(self) -> None:
        """Stop the heartbeat loop."""
        self._running = False

        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
            self._heartbeat_task = None

        logger.info("Heartbeat manager stopped")

    def handle_pong(self, connection_id: str) -> None:
        """Handle pong response from client."""
        state = self._states.setdefault(connection_id, HeartbeatState())
        state.last_pong_received = datetime.now(UTC)
        state.unanswered_since = None
        state.missed_pongs = 0

        logger.debug("Pong received", connection_id=connection_id)

    def forget(self, connection_id: str) -> None:
        """Drop heartbeat state for a closed connection."""
        self._states.pop(connection_id, None)

    def get_state(self, connection_id: str) -> HeartbeatState | None:
        return self._states.get(connection_id)

    def check_connections(self, now: datetime | None = None) -> list[str]:
        """Run one heartbeat round: reap stale connections and ping the rest.

        Returns:
            Ids of the connections that were closed
        """
        now = now or datetime.now(UTC)
        closed: list[str] = []

        live_ids = set()
        for connection in self.registry.connections():
            live_ids.add(connection.id)
            state = self._states.setdefault(connection.id, HeartbeatState())

            # Timed from the oldest unanswered ping
            awaiting_pong = state.unanswered_since is not None
            if awaiting_pong and (now - state.unanswered_since).total_seconds() > self.pong_timeout:
                state.missed_pongs += 1

                if state.missed_pongs >= self.max_missed_pongs:
                    logger.warning(
                        "Connection stale - closing",
                        connection_id=connection.id,
                        user_id=connection.user_id,
                        missed_pongs=state.missed_pongs,
                    )
                    connection.close(code=GOING_AWAY, reason="Connection timeout")
                    self.registry.unregister(connection.id)
                    self.forget(connection.id)
                    closed.append(connection.id)
                    continue

            if connection.send({"type": "ping", "timestamp": now.isoformat()}):
                state.last_ping_sent = now
                if state.unanswered_since is None:
                    state.unanswered_since = now
                logger.debug("Ping sent", connection_id=connection.id)

        for connection_id in list(self._states):
            if connection_id not in live_ids:
                self.forget(connection_id)

        return closed

    async def _heartbeat_loop(self) -> None:
        """Main heartbeat loop."""
        while self._running:
            try:
                await asyncio.sleep(self.ping_interval)
                self.check_connections()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Heartbeat loop error", error=str(e))
