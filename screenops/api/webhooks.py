"""Inbound webhooks - Typeform submissions and Calendly bookings."""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.config import settings
from screenops.database import get_db
from screenops.integrations.typeform import verify_signature
from screenops.services.intake import ingest_submission
from screenops.services.scheduling import is_screening_booking, parse_booking, record_booking

logger = logging.getLogger(__name__)

router = APIRouter()


async def _json_body(request: Request) -> tuple[bytes, dict]:
    raw = await request.body()
    try:
        body = json.loads(raw or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Body must be JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Body must be a JSON object")
    return raw, body


@router.post("/typeform")
async def typeform_webhook(request: Request, db: Annotated[AsyncSession, Depends(get_db)]):
    """Create, process and score an application from a form_response event."""
    raw, body = await _json_body(request)
    if settings.typeform_webhook_secret and not verify_signature(
        raw, request.headers.get("Typeform-Signature"), settings.typeform_webhook_secret
    ):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    if body.get("event_type") != "form_response":
        logger.info("Ignoring Typeform event %s", body.get("event_type"))
        return {"status": "ignored", "reason": "event_type"}

    form_response = body.get("form_response")
    if not isinstance(form_response, dict) or not form_response.get("form_id") or not form_response.get("token"):
        raise HTTPException(status_code=400, detail="form_response with form_id and token is required")

    outcome = await ingest_submission(db, form_response)
    if outcome.status == "ignored":
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=outcome.model_dump(mode="json"))
    return outcome


@router.post("/calendly")
async def calendly_webhook(request: Request, db: Annotated[AsyncSession, Depends(get_db)]):
    """Attach a screening booking to the invitee's application."""
    _, body = await _json_body(request)
    booking = parse_booking(body)
    if not is_screening_booking(booking):
        logger.info("Ignoring Calendly event %r", booking.event_name)
        return {"ignored": True}
    if not booking.invitee_email:
        raise HTTPException(status_code=400, detail="Invitee email is required")

    outcome = await record_booking(db, body, booking)
    if outcome is None:
        # A 5xx makes Calendly redeliver once the submission has landed
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": f"No application found for {booking.invitee_email}"},
        )
    return {"received": True, **outcome.model_dump()}
