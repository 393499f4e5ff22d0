"""WebSocket Authentication Gate.

Connections are authenticated before ``accept()``: a rejected handshake never
reaches the connection registry.
"""

from urllib.parse import parse_qs

from fastapi import WebSocket, WebSocketException, status
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from shared.config import JWTSettings, get_settings
from shared.models import Principal
from shared.observability import get_logger, log_security_event

from ..services.user_directory import UserDirectory

logger = get_logger(__name__)

BEARER_SUBPROTOCOL = "bearer"
TOKEN_QUERY_PARAM = "access_token"


class AuthenticationRejected(WebSocketException):
    """Handshake refused. The reason is generic and safe to show to clients."""

    def __init__(self, reason: str = "Invalid token"):
        super().__init__(code=status.WS_1008_POLICY_VIOLATION, reason=reason)


class TokenClaims(BaseModel):
    """Claims issued by the REST backend's login endpoint."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: int = Field(alias="userId", gt=0)
    username: str | None = None
    role: str | None = None
    exp: int | None = None

    @model_validator(mode="before")
    @classmethod
    def fallback_to_subject(cls, data):
        """Accept tokens that carry the user id in ``sub`` instead of ``userId``."""
        if isinstance(data, dict) and "userId" not in data and "user_id" not in data and "sub" in data:
            data = {**data, "userId": data["sub"]}
        return data


class WebSocketAuthenticator:
    """Validates handshake credentials and resolves them to a live principal."""

    def __init__(self, settings: JWTSettings | None = None):
        self.settings = settings or get_settings().jwt

    def extract_token(self, websocket: WebSocket) -> str | None:
        """Extract token from WebSocket handshake.

        Token can be provided via:
        1. Authorization header: Bearer <token>
        2. Sec-WebSocket-Protocol header: bearer, <token>
        3. Query parameter: ?access_token=<token> (browser-native clients)
        """
        authorization = websocket.headers.get("authorization", "")
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()

        protocols = websocket.headers.get("sec-websocket-protocol", "")
        if protocols.startswith(f"{BEARER_SUBPROTOCOL},"):
            candidate = protocols.split(",", 1)[1].strip()
            if candidate:
                return candidate

        query_string = websocket.scope.get("query_string", b"").decode()
        params = parse_qs(query_string)
        if params.get(TOKEN_QUERY_PARAM):
            return params[TOKEN_QUERY_PARAM][0]

        return None

    def negotiated_subprotocol(self, websocket: WebSocket) -> str | None:
        """Subprotocol to echo on accept when the token came in the protocol header."""
        protocols = websocket.headers.get("sec-websocket-protocol", "")
        if protocols.startswith(f"{BEARER_SUBPROTOCOL},"):
            return BEARER_SUBPROTOCOL
        return None

    def validate_token(self, token: str) -> TokenClaims:
        """Verify signature, expiry, issuer and audience.

        Raises:
            JWTError: If the token is malformed, expired or mis-signed
            ValidationError: If required claims are missing
        """
        payload = jwt.decode(
            token,
            self.settings.secret,
            algorithms=[self.settings.algorithm],
            issuer=self.settings.issuer,
            audience=self.settings.audience,
            options={"verify_aud": self.settings.audience is not None},
        )
        return TokenClaims.model_validate(payload)

    async def resolve_principal(
        self,
        token: str | None,
        users: UserDirectory,
        ip: str | None = None,
    ) -> Principal:
        """Turn a bearer token into a principal backed by an active account.

        Raises:
            AuthenticationRejected: On any failure; the attempt is audited
        """
        if not token:
            log_security_event("Socket authentication failed - Missing token", ip=ip)
            raise AuthenticationRejected("Authentication required")

        try:
            claims = self.validate_token(token)
        except (JWTError, ValidationError) as e:
            logger.warning("JWT validation failed", error=str(e))
            log_security_event("Socket authentication failed - Invalid token", ip=ip)
            raise AuthenticationRejected("Invalid token") from e

        try:
            user = await users.get_user(claims.user_id)
        except Exception as e:
            logger.error("User lookup failed", user_id=claims.user_id, error=str(e))
            log_security_event(
                "Socket authentication failed - User lookup error",
                user_id=claims.user_id,
                ip=ip,
            )
            raise AuthenticationRejected("Authentication failed") from e

        if user is None or not user.is_active:
            log_security_event(
                "Socket authentication failed - User not found or inactive",
                user_id=claims.user_id,
                ip=ip,
            )
            raise AuthenticationRejected("Invalid token")

        return Principal(user_id=user.id, username=user.username, role=user.role)

    async def authenticate(self, websocket: WebSocket, users: UserDirectory) -> Principal:
        """Authenticate WebSocket connection.

        Returns the principal if valid, raises AuthenticationRejected otherwise.
        """
        ip = websocket.client.host if websocket.client else "unknown"
        principal = await self.resolve_principal(self.extract_token(websocket), users, ip=ip)

        logger.info(
            "WebSocket authenticated",
            user_id=principal.user_id,
            username=principal.username,
        )
        return principal
