# app/core/dependencies.py
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.security import TokenVerifier

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)
auth = TokenVerifier()


async def validate_token(token: HTTPAuthorizationCredentials | None = Depends(security)) -> dict:
    """Validate and decode the bearer token.

    Returns:
        dict: Decoded token payload

    Raises:
        HTTPException: If token is missing or invalid
    """
    if not token or not token.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token is required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = auth.verify_token(token.credentials)

    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


async def get_current_user_id(
    request: Request,
    payload: dict = Depends(validate_token),
) -> str:
    """Return the owner identity (``sub`` claim) of the authenticated caller.

    Raises:
        HTTPException: If the payload carries no subject
    """
    user_id = payload.get("sub")

    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload - missing user ID",
        )

    # Add user info to request state for logging
    request.state.user_id = user_id

    return str(user_id)
