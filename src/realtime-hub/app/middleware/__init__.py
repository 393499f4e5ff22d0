"""Middleware for the Realtime Hub service."""

from .ws_auth import (
    AuthenticationRejected,
    TokenClaims,
    WebSocketAuthenticator,
)

__all__ = [
    "AuthenticationRejected",
    "TokenClaims",
    "WebSocketAuthenticator",
]
