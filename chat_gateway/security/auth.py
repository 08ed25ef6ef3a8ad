"""Bearer-token authentication for chat gateway callers.

Validates the JWT in the Authorization header and returns the
AuthenticatedUser the resolution layer works with. The raw header is
kept on the request so OpenID endpoints can forward it upstream.
"""

import logging

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from chat_gateway.config.settings import get_settings
from chat_gateway.resolution.request import AuthenticatedUser

logger = logging.getLogger("chat_gateway.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Decode and verify a gateway JWT.

    Raises:
        HTTPException: 401 if the token is invalid or expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("JWT validation failed", extra={"audit_data": {"error": str(e)}})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_user(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer_scheme),
) -> AuthenticatedUser:
    """FastAPI dependency that resolves the calling user from the bearer token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials)
    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no subject",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthenticatedUser(
        id=str(user_id),
        email=payload.get("email", ""),
        role=payload.get("role", "USER"),
    )
