"""Typeform submission intake - participant/application creation, answer processing, scoring."""

import logging
import time
from typing import Any
from uuid import uuid4

from pydantic import BaseModel
from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from screenops import database
from screenops.config import settings
from screenops.exceptions import EntityNotFoundError, ProcessingError
from screenops.models import Application, FieldResponse, FieldVersion, Form
from screenops.schemas.scoring import ScoringSummary
from screenops.services.crm_sync import build_sync_request, sync_with_time_box
from screenops.services.locks import acquire_lock, release_lock, typeform_lock_id
from screenops.services.scoring import score_application
from screenops.storage.repositories import (
    count_field_responses,
    find_or_create_participant,
    get_active_field_versions,
    get_application,
    get_application_by_token,
    get_form_by_typeform_id,
)
from screenops.utils.clock import parse_timestamp, utcnow
from screenops.utils.retry import retry_once

logger = logging.getLogger(__name__)


class ParticipantInfo(BaseModel):
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    date_of_birth: str | None = None


class AnswerProcessingResult(BaseModel):
    processed: int
    skipped: int


class IntakeOutcome(BaseModel):
    """What happened to one inbound submission."""

    status: str  # processed | ignored
    reason: str | None = None
    application_id: str | None = None
    score: ScoringSummary | None = None


def _is_emergency_contact(ref: str, title: str) -> bool:
    return "emergency" in ref or "emergency" in title or "contact_" in ref


def extract_participant_info(form_response: dict) -> ParticipantInfo:
    """
    Pick the applicant's own email, name, phone and date of birth out of the answers.

    Emergency-contact questions are ignored. Missing values fall back to
    placeholders so a submission is never dropped for lack of identity.
    """
    definition = form_response.get("definition") or {}
    titles = {f.get("id"): (f.get("title") or "").lower() for f in definition.get("fields") or []}
    found: dict[str, str] = {}

    for answer in form_response.get("answers") or []:
        field = answer.get("field") or {}
        ref = (field.get("ref") or "").lower()
        title = titles.get(field.get("id"), "")
        kind = answer.get("type")
        if _is_emergency_contact(ref, title):
            continue

        if kind == "email":
            found.setdefault("email", answer.get("email") or "")
        elif kind in ("text", "short_text"):
            text = (answer.get("text") or "").strip()
            if ("first" in ref or "first name" in title or "first_name" in title) and "first_name" not in found:
                found["first_name"] = text
            elif ("last" in ref or "last name" in title or "last_name" in title) and "last_name" not in found:
                found["last_name"] = text
            elif "name" in ref or "name" in title:
                parts = text.split()
                if len(parts) >= 2:
                    found.setdefault("first_name", parts[0])
                    found.setdefault("last_name", parts[-1])
        elif kind == "phone_number":
            found.setdefault("phone", answer.get("phone_number") or "")
        elif kind == "date" and any(k in ref or k in title for k in ("birth", "dob")):
            found.setdefault("date_of_birth", answer.get("date") or "")

    if not found.get("email"):
        logger.warning("Email not found in submission %s; using placeholder", form_response.get("token"))
    return ParticipantInfo(
        email=found.get("email") or f"applicant_{int(time.time() * 1000)}@example.com",
        first_name=found.get("first_name") or "Anonymous",
        last_name=found.get("last_name") or "Applicant",
        phone=found.get("phone") or None,
        date_of_birth=found.get("date_of_birth") or None,
    )


def extract_response_value(answer: dict, multi_select: bool = False) -> Any:
    """Convert a Typeform answer into the stored response value."""
    kind = answer.get("type")
    if kind == "choices" or multi_select:
        choices = answer.get("choices") or {}
        if isinstance(choices, dict):
            labels = list(choices.get("labels") or [])
            if choices.get("other"):
                labels.append(choices["other"])
        else:
            labels = [c.get("label") if isinstance(c, dict) else str(c) for c in choices]
        if not labels and answer.get("choice"):
            labels = [answer["choice"].get("label") or answer["choice"].get("other")]
        return [label for label in labels if label]
    if kind == "choice":
        choice = answer.get("choice") or {}
        return choice.get("label") or choice.get("other") or ""
    if kind == "boolean":
        value = answer.get("boolean")
        return "" if value is None else ("yes" if value else "no")
    if kind == "number":
        return answer.get("number")
    if kind in ("text", "email", "url", "phone_number", "date", "file_url"):
        return answer.get(kind) or ""
    logger.info("Unhandled answer type %s", kind)
    return None


async def create_application_from_submission(
    db: AsyncSession, form: Form, form_response: dict
) -> tuple[Application, bool]:
    """Returns (application, created). Deduplicates on the submission token."""
    token = form_response["token"]
    existing = await get_application_by_token(db, token)
    if existing:
        return existing, False

    info = extract_participant_info(form_response)
    participant, _ = await find_or_create_participant(
        db, info.email, info.first_name, info.last_name, info.phone, info.date_of_birth
    )
    application = Application(
        participant_id=participant.id,
        form_id=form.id,
        typeform_response_id=token,
        submission_date=parse_timestamp(form_response.get("submitted_at")) or utcnow(),
        raw_data=form_response,
        application_data={},
        status="pending",
    )
    db.add(application)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent delivery of the same submission won the insert
        await db.rollback()
        existing = await get_application_by_token(db, token)
        if existing is None:
            raise
        return existing, False
    logger.info("Created application %s for %s", application.id, info.email)
    return application, True


def _latest_versions(field_versions: list[FieldVersion]) -> dict[str, FieldVersion]:
    latest: dict[str, FieldVersion] = {}
    for fv in field_versions:
        current = latest.get(fv.field_id)
        if current is None or fv.version_date > current.version_date:
            latest[fv.field_id] = fv
    return latest


async def process_answers(db: AsyncSession, application_id: str) -> AnswerProcessingResult:
    """
    Store one FieldResponse per answered question, replacing any previous rows.

    Answers are matched to the active field version of their field id.
    """
    application = await get_application(db, application_id)
    if application is None:
        raise EntityNotFoundError("Application", application_id)

    answers = (application.raw_data or {}).get("answers") or []
    versions = _latest_versions(list(await get_active_field_versions(db, application.form_id))) if application.form_id else {}

    await db.execute(delete(FieldResponse).where(FieldResponse.application_id == application_id))
    processed = skipped = 0
    for answer in answers:
        field_version = versions.get((answer.get("field") or {}).get("id"))
        if field_version is None:
            skipped += 1
            continue
        value = extract_response_value(answer, multi_select=field_version.field_type == "multiple_select")
        if value is None or value == "" or value == []:
            skipped += 1
            continue
        db.add(FieldResponse(application_id=application_id, field_version_id=field_version.id, response_value=value))
        processed += 1

    data = dict(application.application_data or {})
    data.update(
        answers_processed=True,
        processed_answer_count=processed,
        skipped_answer_count=skipped,
        answers_processed_at=utcnow().isoformat(),
    )
    application.application_data = data
    if processed and application.status == "pending":
        application.status = "new"
    await db.flush()
    logger.info("Processed %d answers (%d skipped) for application %s", processed, skipped, application_id)
    return AnswerProcessingResult(processed=processed, skipped=skipped)


async def is_fully_processed(db: AsyncSession, application: Application) -> bool:
    data = application.application_data or {}
    if not data.get("answers_processed") or application.calculated_score is None:
        return False
    return await count_field_responses(db, str(application.id)) > 0


async def process_and_score(db: AsyncSession, application_id: str, delay: float) -> ScoringSummary:
    """Answer processing (when not yet done) then scoring, each retried once after `delay`."""

    async def answers() -> AnswerProcessingResult:
        result = await process_answers(db, application_id)
        await db.commit()
        return result

    async def scoring() -> ScoringSummary:
        summary = await score_application(db, application_id)
        await db.commit()
        return summary

    application = await get_application(db, application_id)
    if application is None:
        raise EntityNotFoundError("Application", application_id)
    try:
        done = (application.application_data or {}).get("answers_processed")
        if not done or await count_field_responses(db, application_id) == 0:
            await retry_once(answers, delay, f"Answer processing for {application_id}", before_retry=db.rollback)
        return await retry_once(scoring, delay, f"Scoring for {application_id}", before_retry=db.rollback)
    except Exception as exc:
        await db.rollback()
        raise ProcessingError(f"Processing failed for application {application_id}: {exc}") from exc


async def _sync_score(db: AsyncSession, application_id: str) -> None:
    application = await get_application(db, application_id)
    request = await build_sync_request(db, application, include_status=False, include_score=True)
    await sync_with_time_box(request)


async def ingest_submission(db: AsyncSession, form_response: dict) -> IntakeOutcome:
    """Full webhook flow for one form_response payload."""
    form_id = form_response["form_id"]
    token = form_response["token"]
    form = await get_form_by_typeform_id(db, form_id)
    if form is None or not form.is_active:
        raise EntityNotFoundError("Form", form_id)

    application, created = await create_application_from_submission(db, form, form_response)
    application_id = str(application.id)
    if not created and await is_fully_processed(db, application):
        logger.info("Submission %s already processed as %s", token, application_id)
        return IntakeOutcome(status="ignored", reason="duplicate", application_id=application_id)

    lock_id = typeform_lock_id(token)
    if not await acquire_lock(db, lock_id, tracking_id=str(uuid4())):
        return IntakeOutcome(status="ignored", reason="locked", application_id=application_id)
    try:
        summary = await process_and_score(db, application_id, settings.webhook_retry_delay_seconds)
    finally:
        await release_lock(db, lock_id)

    await _sync_score(db, application_id)
    return IntakeOutcome(status="processed", application_id=application_id, score=summary)


async def reprocess_submission(db: AsyncSession, token: str) -> ScoringSummary:
    """Cron re-run for a submission whose lock was left behind."""
    application = await get_application_by_token(db, token)
    if application is None:
        raise EntityNotFoundError("Application", token)
    application_id = str(application.id)
    summary = await process_and_score(db, application_id, settings.reprocess_retry_delay_seconds)
    await release_lock(db, typeform_lock_id(token))
    await _sync_score(db, application_id)
    return summary


async def reprocess_in_background(token: str) -> None:
    """Background-task entry point with its own session."""
    async with database.async_session_maker() as session:
        try:
            await reprocess_submission(session, token)
        except Exception:
            logger.exception("Background re-processing failed for submission %s", token)
