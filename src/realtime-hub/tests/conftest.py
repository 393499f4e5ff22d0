"""Test fixtures for the Realtime Hub service."""

import os
import time
from collections.abc import Callable, Generator
from typing import Any

# Set test environment before importing settings
os.environ["ENV"] = "development"
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["LOG_FORMAT"] = "text"
os.environ["REDIS_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ISSUER"] = "cooling-manager-api"
os.environ["JWT_AUDIENCE"] = "cooling-manager-app"

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from jose import jwt

from shared.models import Principal, UserRole

TEST_SECRET = "test-secret"
TEST_ISSUER = "cooling-manager-api"
TEST_AUDIENCE = "cooling-manager-app"


class InMemoryUserDirectory:
    """User directory backed by a dict."""

    def __init__(self, users):
        self.users = {user.id: user for user in users}
        self.lookups = 0

    async def get_user(self, user_id: int):
        self.lookups += 1
        return self.users.get(user_id)


@pytest.fixture
def users():
    from app.services.user_directory import UserRecord

    return [
        UserRecord(id=1, username="admin", role=UserRole.ADMIN, is_active=True),
        UserRecord(id=2, username="tech", role=UserRole.TECHNICIAN, is_active=True),
        UserRecord(id=7, username="alice", role=UserRole.USER, is_active=True),
        UserRecord(id=8, username="bob", role=UserRole.USER, is_active=True),
        UserRecord(id=9, username="mallory", role=UserRole.USER, is_active=False),
    ]


@pytest.fixture
def user_directory(users) -> InMemoryUserDirectory:
    return InMemoryUserDirectory(users)


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Issue HS256 tokens shaped like the REST backend's."""

    def _make(
        user_id: int = 7,
        expires_in: int = 3600,
        secret: str = TEST_SECRET,
        **claims: Any,
    ) -> str:
        now = int(time.time())
        payload = {
            "userId": user_id,
            "username": f"user{user_id}",
            "role": "USER",
            "iss": TEST_ISSUER,
            "aud": TEST_AUDIENCE,
            "iat": now,
            "exp": now + expires_in,
        }
        payload.update(claims)
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token) -> Callable[[int], dict[str, str]]:
    def _headers(user_id: int = 7) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers


@pytest.fixture
def app(user_directory) -> FastAPI:
    """Fresh application with in-memory user lookups."""
    from app.main import create_app

    application = create_app()
    application.state.user_directory = user_directory
    return application


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create test client."""
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Registry helpers
# =============================================================================


@pytest.fixture
def registry():
    from app.services.registry import ConnectionRegistry

    return ConnectionRegistry()


@pytest.fixture
def make_connection():
    from app.services.registry import Connection

    def _make(user_id: int = 7, outbox_size: int = 100) -> Connection:
        principal = Principal(user_id=user_id, username=f"user{user_id}")
        return Connection(principal=principal, outbox_size=outbox_size)

    return _make


@pytest.fixture
def connect(registry, make_connection):
    """Create and register a connection."""

    def _connect(user_id: int = 7, outbox_size: int = 100):
        connection = make_connection(user_id, outbox_size)
        registry.register(connection)
        return connection

    return _connect
