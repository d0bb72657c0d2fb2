"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from carequeue.core.security import CallerContext, caller_from_payload, decode_access_token
from carequeue.database import get_db
from carequeue.services.notification_service import NotificationService

# Security
security = HTTPBearer()


async def get_current_caller(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> CallerContext:
    """
    Extract the caller's hospital and user from the JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Caller context

    Raises:
        HTTPException: If token is invalid, expired or lacks tenant claims
    """
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    caller = caller_from_payload(payload)
    if caller is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing user or hospital scope",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return caller


def get_notification_service(request: Request) -> NotificationService | None:
    """Event publisher owned by the application, if one was started."""
    return getattr(request.app.state, "notifications", None)


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentCaller = Annotated[CallerContext, Depends(get_current_caller)]
Notifications = Annotated[NotificationService | None, Depends(get_notification_service)]
