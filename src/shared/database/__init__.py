"""Database configuration and models.

The hub reads the ``users`` table owned by the REST backend; it never writes.
"""

from .base import Base, create_engine, create_session_factory
from .models import UserModel

__all__ = [
    # Base
    "Base",
    "create_engine",
    "create_session_factory",
    # Models
    "UserModel",
]
