"""Cron endpoints - sweep for stuck submissions and re-process them."""

import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.auth.middleware import CronAuth
from screenops.database import get_db
from screenops.schemas.scoring import ScoringSummary
from screenops.services.intake import reprocess_in_background, reprocess_submission
from screenops.services.locks import find_stale_submissions

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[CronAuth])


class ReprocessRequest(BaseModel):
    typeform_response_id: str


@router.get("/typeform/lookup-unprocessed")
async def lookup_unprocessed(background_tasks: BackgroundTasks, db: Annotated[AsyncSession, Depends(get_db)]):
    """Queue re-processing for submissions whose lock has been held too long."""
    stale = await find_stale_submissions(db)
    for item in stale:
        background_tasks.add_task(reprocess_in_background, item["typeform_response_id"])
    if stale:
        logger.info("Queued %d stuck submission(s) for re-processing", len(stale))
    return {"count": len(stale), "submissions": stale}


@router.post("/applications/re-process", response_model=ScoringSummary)
async def reprocess(body: ReprocessRequest, db: Annotated[AsyncSession, Depends(get_db)]):
    return await reprocess_submission(db, body.typeform_response_id)
