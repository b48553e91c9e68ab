"""Screening notes endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.auth.middleware import CurrentUser
from screenops.database import get_db
from screenops.schemas.applications import ScreeningOut
from screenops.services.screenings import (
    NotesUpdate,
    get_initial_screening,
    get_role_notes,
    list_note_roles,
    save_notes,
)
from screenops.storage.repositories import get_application

router = APIRouter()


@router.get("/{application_id}/notes", response_model=ScreeningOut)
async def get_notes(application_id: str, user: CurrentUser, db: Annotated[AsyncSession, Depends(get_db)]):
    screening = await get_initial_screening(db, application_id)
    if not screening:
        raise HTTPException(status_code=404, detail="Screening not found")
    return screening


@router.post("/{application_id}/notes")
async def post_notes(
    application_id: str,
    body: NotesUpdate,
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Save a draft or submit notes; may also carry an application status change."""
    screening = await save_notes(db, application_id, user, body)
    application = await get_application(db, application_id)
    return {
        "message": "Screening notes processed successfully.",
        "data": ScreeningOut.model_validate(screening),
        "application_status": application.status,
    }


@router.get("/{application_id}/notes/roles")
async def get_note_roles(application_id: str, user: CurrentUser, db: Annotated[AsyncSession, Depends(get_db)]):
    """Role entries the caller may read."""
    return {"roles": await list_note_roles(db, application_id, str(user.id))}


@router.get("/{application_id}/notes/roles/{role}")
async def get_notes_for_role(
    application_id: str,
    role: str,
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    return await get_role_notes(db, application_id, role, str(user.id))
