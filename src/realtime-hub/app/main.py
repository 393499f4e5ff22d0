"""Realtime Hub main application."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config import get_settings
from shared.database import create_engine, create_session_factory
from shared.observability import get_logger, setup_logging
from shared.redis_client import RedisClient

from .api import health, realtime, websocket
from .middleware.ws_auth import WebSocketAuthenticator
from .services.emitter import EventEmitter
from .services.event_router import EventRouter
from .services.heartbeat import HeartbeatManager
from .services.registry import ConnectionRegistry
from .services.sensor_monitor import SensorMonitor
from .services.subscriptions import SubscriptionManager
from .services.user_directory import SqlUserDirectory

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown of shared resources.
    """
    settings = get_settings()
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)

    logger.info(
        "Starting Realtime Hub",
        version=settings.app_version,
        environment=settings.environment,
    )

    # User lookups for the handshake
    engine = None
    if getattr(app.state, "user_directory", None) is None:
        engine = create_engine(settings.database.async_url)
        app.state.user_directory = SqlUserDirectory(create_session_factory(engine))

    heartbeat: HeartbeatManager = app.state.heartbeat
    await heartbeat.start()

    # Events published by other backend processes
    redis = None
    event_router = None
    router_task = None
    if settings.redis.enabled:
        redis = RedisClient(settings.redis.url)
        await redis.connect()
        app.state.redis = redis

        event_router = EventRouter(redis, app.state.emitter, settings.redis.events_channel)
        app.state.event_router = event_router
        router_task = asyncio.create_task(event_router.start())

    logger.info("Realtime Hub ready")

    yield

    # Cleanup
    logger.info("Shutting down Realtime Hub")
    await heartbeat.stop()

    for connection in app.state.registry.connections():
        connection.close(code=1001, reason="Server shutting down")

    if event_router is not None:
        await event_router.stop()
        router_task.cancel()
        try:
            await router_task
        except asyncio.CancelledError:
            pass
    if redis is not None:
        await redis.close()
    if engine is not None:
        await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Realtime fan-out of cooling device events over WebSocket",
        version=settings.app_version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.socket.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # In-memory components live for the whole process
    registry = ConnectionRegistry()
    emitter = EventEmitter(registry)
    app.state.registry = registry
    app.state.emitter = emitter
    app.state.subscriptions = SubscriptionManager(registry)
    app.state.sensor_monitor = SensorMonitor(emitter)
    app.state.authenticator = WebSocketAuthenticator(settings.jwt)
    app.state.heartbeat = HeartbeatManager(
        registry,
        ping_interval=settings.socket.ping_interval_seconds,
        pong_timeout=settings.socket.pong_timeout_seconds,
        max_missed_pongs=settings.socket.max_missed_pongs,
    )
    app.state.redis = None
    app.state.user_directory = None

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(realtime.router, prefix="/api/v1", tags=["Realtime"])
    app.include_router(websocket.router, tags=["WebSocket"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run("app.main:app", host=settings.host, port=settings.port)
