"""JWT handling and caller identity."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from carequeue.config import settings


@dataclass(frozen=True)
class CallerContext:
    """Authenticated caller: tenant scope plus the actor recorded on audit fields."""

    hospital_id: UUID
    user_id: UUID


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Payload data to encode (``sub`` and ``hospital_id`` expected)
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )

    return encoded_jwt


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None


def caller_from_payload(payload: dict[str, Any]) -> CallerContext | None:
    """Build the caller context from token claims, or None if claims are malformed."""
    user_id = payload.get("sub")
    hospital_id = payload.get("hospital_id")
    if not isinstance(user_id, str) or not isinstance(hospital_id, str):
        return None

    try:
        return CallerContext(hospital_id=UUID(hospital_id), user_id=UUID(user_id))
    except ValueError:
        return None
