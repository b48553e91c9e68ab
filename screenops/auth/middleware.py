"""Bearer authentication dependencies - console sessions and the cron key."""

import secrets
from collections.abc import Iterable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.auth.roles import APPLICATION_MANAGERS, RUBRIC_EDITORS
from screenops.auth.security import decode_session_token
from screenops.config import settings
from screenops.database import get_db
from screenops.models import UserProfile

API_KEY_HEADER = APIKeyHeader(name="Authorization", auto_error=False)


def _bearer_token(auth_header: str | None) -> str:
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid Authorization header",
        )
    token = auth_header[7:].strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )
    return token


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    auth_header: str | None = Depends(API_KEY_HEADER),
) -> UserProfile:
    """Resolve the signed-in user from the session token."""
    token = _bearer_token(auth_header)
    try:
        payload = decode_session_token(token)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session token")

    result = await db.execute(select(UserProfile).where(UserProfile.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    return user


def require_roles(allowed: Iterable[str]):
    """Dependency factory: the current user must hold one of `allowed`."""
    allowed = frozenset(allowed)

    async def dependency(user: Annotated[UserProfile, Depends(get_current_user)]) -> UserProfile:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return dependency


async def verify_cron_key(auth_header: str | None = Depends(API_KEY_HEADER)) -> None:
    """Gate for internal cron endpoints."""
    token = _bearer_token(auth_header)
    if not settings.cron_secure_key or not secrets.compare_digest(
        token.encode(), settings.cron_secure_key.encode()
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid cron key")


# Type aliases for dependency injection
CurrentUser = Annotated[UserProfile, Depends(get_current_user)]
ManagerUser = Annotated[UserProfile, Depends(require_roles(APPLICATION_MANAGERS))]
RubricEditor = Annotated[UserProfile, Depends(require_roles(RUBRIC_EDITORS))]
CronAuth = Depends(verify_cron_key)
