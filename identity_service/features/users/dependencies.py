# Users Feature - Dependencies

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import ExpiredSignatureError, JWTError
from identity_service.core.logging import logger
from identity_service.core.rate_limit import FixedWindowRateLimiter
from identity_service.core.security import decode_token
from identity_service.features.users.models import Identity, Role
from identity_service.features.users.service import UserService
from identity_service.features.users.store import UserStore
from identity_service.shared.exceptions import (
    CredentialsException,
    ForbiddenException,
    RateLimitException,
)


# Missing or non-bearer headers resolve to None so the gate can answer with its own message
security = HTTPBearer(auto_error=False)


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_user_service(store: UserStore = Depends(get_user_store)) -> UserService:
    return UserService(store)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    service: UserService = Depends(get_user_service),
) -> Identity:
    """
    Dependency resolving the bearer token to an identity.

    The identity is also attached to ``request.state.user``. Nothing is
    written to the store.

    Raises:
        CredentialsException: If the token is missing, invalid or expired,
            or its subject no longer exists
    """
    if credentials is None:
        raise CredentialsException("Access denied. No token provided.")

    try:
        payload = decode_token(credentials.credentials)
    except ExpiredSignatureError:
        raise CredentialsException("Token expired.")
    except JWTError as e:
        logger.warning(f"Rejected token: {type(e).__name__}")
        raise CredentialsException("Invalid token.")

    subject_id = payload.get("sub")
    if not subject_id:
        raise CredentialsException("Invalid token.")

    user = await service.get_user(subject_id)
    if user is None:
        raise CredentialsException("Invalid token. User not found.")

    request.state.user = user
    return user


async def require_admin(current_user: Identity = Depends(get_current_user)) -> Identity:
    """Dependency allowing only admins through."""
    if current_user.role != Role.ADMIN:
        raise ForbiddenException("Access denied. Admin privileges required.")
    return current_user


def enforce_rate_limit(limiter: FixedWindowRateLimiter, key: str, message: Optional[str] = None) -> None:
    """Count a request against ``limiter`` and raise once the window is exhausted."""
    decision = limiter.check(key)
    if not decision.allowed:
        raise RateLimitException(decision.retry_after_seconds, message)
