"""Participant endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.auth.middleware import CurrentUser, ManagerUser
from screenops.database import get_db
from screenops.models import Application, Participant
from screenops.schemas.applications import ApplicationOut
from screenops.schemas.common import Page
from screenops.schemas.participants import (
    CreateParticipantRequest,
    ParticipantDetail,
    ParticipantOut,
    UpdateParticipantRequest,
)
from screenops.storage.repositories import get_participant, get_participant_by_email, paginate

router = APIRouter()


@router.get("", response_model=Page[ParticipantOut])
async def list_participants(
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    search: str | None = None,
    participant_status: str | None = Query(None, alias="status"),
    page: int = 1,
    page_size: int | None = Query(None, alias="pageSize"),
):
    stmt = select(Participant)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Participant.first_name.ilike(pattern),
                Participant.last_name.ilike(pattern),
                Participant.email.ilike(pattern),
            )
        )
    if participant_status:
        stmt = stmt.where(Participant.status == participant_status)
    stmt = stmt.order_by(Participant.created_at.desc(), Participant.email)
    rows, total, page, page_size = await paginate(db, stmt, page, page_size)
    return Page(
        items=[ParticipantOut.model_validate(p) for p in rows], total=total, page=page, page_size=page_size
    )


@router.get("/{participant_id}", response_model=ParticipantDetail)
async def get_participant_detail(
    participant_id: str,
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    participant = await get_participant(db, participant_id)
    if not participant:
        raise HTTPException(status_code=404, detail="Participant not found")
    detail = ParticipantDetail.model_validate(participant)
    result = await db.execute(
        select(Application)
        .where(Application.participant_id == participant_id)
        .order_by(Application.submission_date.desc())
    )
    detail.applications = [ApplicationOut.model_validate(a) for a in result.scalars().all()]
    return detail


@router.post("", response_model=ParticipantOut, status_code=status.HTTP_201_CREATED)
async def create_participant(
    body: CreateParticipantRequest,
    user: ManagerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Create a participant; emails are unique case-insensitively."""
    if not body.email.strip() or not body.first_name.strip() or not body.last_name.strip():
        raise HTTPException(status_code=400, detail="email, first_name and last_name are required")
    if await get_participant_by_email(db, body.email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Participant with this email already exists")
    participant = Participant(
        email=body.email.strip().lower(),
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        phone=body.phone,
        date_of_birth=body.date_of_birth,
    )
    db.add(participant)
    await db.commit()
    await db.refresh(participant)
    return participant


@router.patch("/{participant_id}", response_model=ParticipantOut)
async def update_participant(
    participant_id: str,
    body: UpdateParticipantRequest,
    user: ManagerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    participant = await get_participant(db, participant_id)
    if not participant:
        raise HTTPException(status_code=404, detail="Participant not found")
    for name, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(participant, name, value)
    await db.commit()
    await db.refresh(participant)
    return participant
