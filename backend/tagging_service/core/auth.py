"""Authentication dependencies and utilities."""
import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from tagging_service.core.config import settings

logger = logging.getLogger(__name__)
security = HTTPBearer()


@dataclass(frozen=True)
class Principal:
    """The authenticated caller: a user acting inside one organization."""

    user_id: str
    organization_id: str


def get_current_principal(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Principal:
    """
    Extract user and organization from the bearer JWT.

    The token is signed by the web frontend with the shared AUTH_SECRET;
    `sub` carries the user id and `org` the organization id.
    """
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.AUTH_SECRET,
            algorithms=[settings.AUTH_ALGORITHM],
        )
    except JWTError as e:
        logger.error(f"[AUTH] JWT validation failed: {type(e).__name__}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Could not validate credentials: {str(e)}",
        )

    user_id = payload.get("sub")
    organization_id = payload.get("org")
    if not user_id or not organization_id:
        logger.error("[AUTH] JWT payload missing 'sub' or 'org' claim")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )

    return Principal(user_id=user_id, organization_id=organization_id)
