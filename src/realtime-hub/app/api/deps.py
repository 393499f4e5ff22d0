"""FastAPI dependencies for the HTTP control surface."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shared.models import Principal, UserRole
from shared.observability import get_logger

from ..middleware.ws_auth import AuthenticationRejected

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_principal(
    request: Request,
    auth: HTTPAuthorizationCredentials | None = Depends(security),
) -> Principal:
    """Dependency to get the authenticated caller."""
    if not auth:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    authenticator = request.app.state.authenticator
    ip = request.client.host if request.client else None
    try:
        principal = await authenticator.resolve_principal(
            auth.credentials, request.app.state.user_directory, ip=ip
        )
    except AuthenticationRejected as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.reason,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    request.state.principal = principal
    return principal


def require_roles(*roles: UserRole):
    """Dependency factory requiring one of the given roles."""
    allowed = {role.value for role in roles}

    async def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            logger.warning(
                "Insufficient role",
                user_id=principal.user_id,
                current_role=principal.role,
                required=sorted(allowed),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return dependency


require_admin = require_roles(UserRole.ADMIN)
require_operator = require_roles(UserRole.ADMIN, UserRole.TECHNICIAN)
