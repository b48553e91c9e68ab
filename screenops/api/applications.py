"""Application endpoints - list, detail, status changes, rescoring."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.auth.middleware import CurrentUser, ManagerUser
from screenops.database import get_db
from screenops.models import Application, Participant, ScreeningMeeting
from screenops.schemas.applications import (
    ApplicationDetail,
    ApplicationListItem,
    DuplicateCheck,
    FieldResponseOut,
    MeetingOut,
    ParticipantBrief,
    ScreeningOut,
    UpdateApplicationRequest,
)
from screenops.schemas.common import Page
from screenops.schemas.scoring import ScoringSummary
from screenops.services.applications import apply_status_change, validate_status_change
from screenops.services.crm_sync import build_sync_request, sync_with_time_box
from screenops.services.intake import is_fully_processed
from screenops.services.scoring import rescore_application
from screenops.services.screenings import get_initial_screening
from screenops.storage.repositories import (
    get_application,
    get_application_by_token,
    get_field_responses,
    get_field_versions_by_ids,
    paginate,
)

router = APIRouter()


@router.get("", response_model=Page[ApplicationListItem])
async def list_applications(
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    status: str | None = None,
    closed_reason: str | None = None,
    assigned_screener_id: str | None = None,
    search: str | None = None,
    min_red: int | None = None,
    min_green: int | None = None,
    page: int = 1,
    page_size: int | None = Query(None, alias="pageSize"),
):
    """List applications, newest first."""
    stmt = select(Application).join(Participant, Participant.id == Application.participant_id)
    if status:
        stmt = stmt.where(Application.status == status)
    if closed_reason:
        stmt = stmt.where(Application.closed_reason == closed_reason.lower())
    if assigned_screener_id:
        stmt = stmt.where(Application.assigned_screener_id == assigned_screener_id)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                Participant.first_name.ilike(pattern),
                Participant.last_name.ilike(pattern),
                Participant.email.ilike(pattern),
            )
        )
    if min_red is not None:
        stmt = stmt.where(Application.red_count >= min_red)
    if min_green is not None:
        stmt = stmt.where(Application.green_count >= min_green)
    stmt = stmt.order_by(Application.submission_date.desc(), Application.created_at.desc())

    rows, total, page, page_size = await paginate(db, stmt, page, page_size)
    participant_ids = list({str(a.participant_id) for a in rows})
    participants = {}
    if participant_ids:
        result = await db.execute(select(Participant).where(Participant.id.in_(participant_ids)))
        participants = {str(p.id): p for p in result.scalars().all()}

    items = []
    for application in rows:
        item = ApplicationListItem.model_validate(application)
        participant = participants.get(str(application.participant_id))
        if participant:
            item.participant = ParticipantBrief.model_validate(participant)
        items.append(item)
    return Page(items=items, total=total, page=page, page_size=page_size)


@router.get("/check-duplicate", response_model=DuplicateCheck)
async def check_duplicate(
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    token: str = Query(..., min_length=1),
):
    """Whether a submission token already produced an application."""
    application = await get_application_by_token(db, token)
    if application is None:
        return DuplicateCheck(exists=False)
    return DuplicateCheck(
        exists=True,
        application_id=str(application.id),
        processed=await is_fully_processed(db, application),
    )


@router.get("/{application_id}", response_model=ApplicationDetail)
async def get_application_detail(
    application_id: str,
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Application with participant, answers, meetings and screening."""
    application = await get_application(db, application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")

    detail = ApplicationDetail.model_validate(application)
    result = await db.execute(select(Participant).where(Participant.id == application.participant_id))
    participant = result.scalar_one_or_none()
    if participant:
        detail.participant = ParticipantBrief.model_validate(participant)

    responses = await get_field_responses(db, application_id)
    versions = {
        str(fv.id): fv
        for fv in await get_field_versions_by_ids(db, list({str(r.field_version_id) for r in responses}))
    }
    for response in responses:
        version = versions.get(str(response.field_version_id))
        detail.responses.append(
            FieldResponseOut(
                id=str(response.id),
                field_version_id=str(response.field_version_id),
                field_title=version.field_title if version else None,
                field_type=version.field_type if version else None,
                response_value=response.response_value,
                score=response.score,
            )
        )

    result = await db.execute(
        select(ScreeningMeeting)
        .where(ScreeningMeeting.application_id == application_id)
        .order_by(ScreeningMeeting.created_at.desc())
    )
    detail.meetings = [MeetingOut.model_validate(m) for m in result.scalars().all()]
    screening = await get_initial_screening(db, application_id)
    if screening:
        detail.screening = ScreeningOut.model_validate(screening)
    return detail


@router.patch("/{application_id}")
async def update_application(
    application_id: str,
    body: UpdateApplicationRequest,
    user: ManagerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Change status (and screener); the CRM is updated afterwards, best effort."""
    change = validate_status_change(body.status, body.closed_reason, body.rejected_type)
    application, outcome = await apply_status_change(
        db, application_id, change, assigned_screener_id=body.assigned_screener_id
    )
    return {
        "success": True,
        "status": application.status,
        "closed_reason": application.closed_reason,
        "rejected_type": application.rejected_type,
        "crm_synced": outcome is not None and not outcome.skipped,
    }


@router.post("/{application_id}/score", response_model=ScoringSummary)
async def score_application_now(
    application_id: str,
    user: ManagerUser,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Re-run the scoring pass and push the new score to the CRM."""
    summary = await rescore_application(db, application_id)
    application = await get_application(db, application_id)
    await sync_with_time_box(await build_sync_request(db, application, include_status=False, include_score=True))
    return summary
