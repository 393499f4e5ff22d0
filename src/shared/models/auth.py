"""Authenticated identity models."""

from enum import Enum

from pydantic import ConfigDict, Field

from .base import CoolmonBaseModel


class UserRole(str, Enum):
    """Account roles issued by the REST backend."""

    ADMIN = "ADMIN"
    TECHNICIAN = "TECHNICIAN"
    USER = "USER"


class Principal(CoolmonBaseModel):
    """Identity bound to a connection at handshake time.

    Immutable for the lifetime of the connection.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int = Field(gt=0)
    username: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
