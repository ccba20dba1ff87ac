"""
Security utilities for authentication and authorization

Tokens are issued by the platform's identity service; this module only
verifies them and maps the caller onto the role hierarchy.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from uuid import UUID
from jose import JWTError, jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging

from salon_waitlist.config import settings
from salon_waitlist.core.exceptions import AuthenticationError, AuthorizationError, RateLimitError
from salon_waitlist.core.roles import UserRole, role_dominates

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller"""
    id: UUID
    role: UserRole
    salon_id: Optional[UUID] = None


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token (used by tooling and tests)
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a JWT access token
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        logger.warning(f"JWT decode error: {e}")
        raise AuthenticationError("Could not validate credentials")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type. Expected access")
    return payload


def actor_from_payload(payload: Dict[str, Any]) -> Actor:
    try:
        actor_id = UUID(str(payload["sub"]))
        role = UserRole(payload["role"])
        salon_id = UUID(str(payload["salon_id"])) if payload.get("salon_id") else None
    except (KeyError, ValueError):
        raise AuthenticationError("Could not validate credentials")
    return Actor(id=actor_id, role=role, salon_id=salon_id)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Actor:
    """
    Resolve the caller from the bearer token
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")
    return actor_from_payload(decode_token(credentials.credentials))


def require_role(minimum: UserRole):
    """
    Dependency factory: accept `minimum` or any role above it.

    Usage: actor: Actor = Depends(require_role(UserRole.SALON_EMPLOYEE))
    """
    async def checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if not role_dominates(actor.role, minimum):
            raise AuthorizationError(
                "Not authorized",
                details={"required_role": minimum.value, "role": actor.role.value}
            )
        return actor

    return checker


class RateLimiter:
    """
    Per-actor rate limit for an endpoint
    """

    def __init__(self, scope: str, max_requests: int, window: int = 60):
        self.scope = scope
        self.max_requests = max_requests
        self.window = window

    async def __call__(self, actor: Actor = Depends(get_current_actor)) -> None:
        if not settings.RATE_LIMIT_ENABLED:
            return

        from salon_waitlist.core.rate_limit import rate_limiter

        key = f"actor:{actor.id}:{self.scope}"
        is_limited, count = await rate_limiter.is_rate_limited(key, self.max_requests, self.window)
        if is_limited:
            logger.warning(f"Rate limit hit for {key} ({count}/{self.max_requests})")
            raise RateLimitError(self.max_requests, self.window)
