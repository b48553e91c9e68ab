"""User management endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.auth.middleware import CurrentUser, ManagerUser
from screenops.auth.roles import ALL_ROLES, APPLICATION_MANAGERS, can_delete_users, can_manage_role
from screenops.auth.security import hash_password
from screenops.database import get_db
from screenops.models import Application, Screening, UserProfile
from screenops.schemas.common import MessageResponse, Page
from screenops.schemas.users import CreateUserRequest, ResetPasswordRequest, UpdateUserRequest, UserOut
from screenops.storage.repositories import get_user, get_user_by_email, paginate

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_manageable(actor: UserProfile, role: str) -> None:
    if role not in ALL_ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role: {role}")
    if not can_manage_role(actor.role, role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Not allowed to manage {role} users")


async def _get_or_404(db: AsyncSession, user_id: str) -> UserProfile:
    user = await get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("", response_model=Page[UserOut])
async def list_users(
    actor: ManagerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    role: str | None = None,
    page: int = 1,
    page_size: int | None = Query(None, alias="pageSize"),
):
    stmt = select(UserProfile)
    if role:
        stmt = stmt.where(UserProfile.role == role)
    stmt = stmt.order_by(UserProfile.last_name, UserProfile.first_name, UserProfile.email)
    rows, total, page, page_size = await paginate(db, stmt, page, page_size)
    return Page(items=[UserOut.model_validate(u) for u in rows], total=total, page=page, page_size=page_size)


@router.get("/{user_id}", response_model=UserOut)
async def get_user_detail(user_id: str, actor: CurrentUser, db: Annotated[AsyncSession, Depends(get_db)]):
    """Managers see anyone; everyone else only themselves."""
    if str(actor.id) != user_id and actor.role not in APPLICATION_MANAGERS:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
    return await _get_or_404(db, user_id)


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(body: CreateUserRequest, actor: ManagerUser, db: Annotated[AsyncSession, Depends(get_db)]):
    _check_manageable(actor, body.role)
    if await get_user_by_email(db, body.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists")
    user = UserProfile(
        email=body.email.strip().lower(),
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        role=body.role,
        password_hash=hash_password(body.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s (%s) created by %s", user.email, user.role, actor.email)
    return user


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: str,
    body: UpdateUserRequest,
    actor: ManagerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    user = await _get_or_404(db, user_id)
    _check_manageable(actor, user.role)
    if body.role is not None:
        _check_manageable(actor, body.role)
    for name, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(user, name, value)
    await db.commit()
    await db.refresh(user)
    return user


@router.post("/{user_id}/reset-password", response_model=MessageResponse)
async def reset_password(
    user_id: str,
    body: ResetPasswordRequest,
    actor: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Users may reset their own password; managers those of roles they manage."""
    user = await _get_or_404(db, user_id)
    if str(actor.id) != str(user.id):
        _check_manageable(actor, user.role)
    user.password_hash = hash_password(body.password)
    await db.commit()
    logger.info("Password reset for %s by %s", user.email, actor.email)
    return MessageResponse(message="Password updated")


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(user_id: str, actor: CurrentUser, db: Annotated[AsyncSession, Depends(get_db)]):
    if not can_delete_users(actor.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only administrators can delete users")
    if str(actor.id) == user_id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    user = await _get_or_404(db, user_id)
    await db.execute(
        update(Application).where(Application.assigned_screener_id == user_id).values(assigned_screener_id=None)
    )
    await db.execute(update(Screening).where(Screening.screener_id == user_id).values(screener_id=None))
    await db.delete(user)
    await db.commit()
    logger.info("User %s deleted by %s", user.email, actor.email)
    return MessageResponse(message="User deleted")
