from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from approvals_api.database import get_db
from approvals_api.exceptions import NotFound
from approvals_api.services.auth_service import verify_access_token
from approvals_api.services.role_service import Principal, resolve_principal

logger = structlog.get_logger()

security = HTTPBearer()


def _unauthenticated(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": {"code": code, "message": message}},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """FastAPI dependency: verify JWT, then resolve the user's roles from the database."""
    token = credentials.credentials
    try:
        payload = verify_access_token(token)
    except JWTError as e:
        logger.warning("auth_token_invalid", error=str(e))
        raise _unauthenticated("AUTH_TOKEN_INVALID", "Invalid or expired token")

    try:
        principal = await resolve_principal(db, payload["sub"])
    except NotFound:
        raise _unauthenticated("AUTH_USER_UNKNOWN", "User is unknown or inactive")

    structlog.contextvars.bind_contextvars(user_id=principal.user_id)
    return principal
