"""Session login."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.auth.middleware import CurrentUser
from screenops.auth.security import create_session_token, verify_password
from screenops.database import get_db
from screenops.schemas.users import LoginRequest, TokenResponse, UserOut
from screenops.storage.repositories import get_user_by_email
from screenops.utils.clock import utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: Annotated[AsyncSession, Depends(get_db)]):
    """Exchange email and password for a bearer session token."""
    user = await get_user_by_email(db, body.email)
    if user is None or not user.is_active or not verify_password(body.password, user.password_hash):
        logger.info("Failed login for %s", body.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    user.last_login_at = utcnow()
    await db.commit()
    token = create_session_token(subject=str(user.id), role=user.role)
    return TokenResponse(access_token=token, user_id=str(user.id), role=user.role)


@router.get("/me", response_model=UserOut)
async def me(user: CurrentUser):
    """The signed-in user."""
    return user
