"""Observability module for structured logging and security auditing."""

from .logging import (
    SECURITY_LOGGER_NAME,
    connection_id_var,
    get_logger,
    log_security_event,
    setup_logging,
    user_id_var,
)

__all__ = [
    # Setup
    "setup_logging",
    "get_logger",
    # Context
    "connection_id_var",
    "user_id_var",
    # Auditing
    "SECURITY_LOGGER_NAME",
    "log_security_event",
]
