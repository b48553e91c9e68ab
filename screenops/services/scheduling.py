"""Calendly booking intake - attach a screening meeting to the right application."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, NamedTuple

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.config import settings
from screenops.models import Application, ScreeningMeeting
from screenops.services.crm_sync import build_sync_request, sync_with_time_box
from screenops.storage.repositories import get_participant_by_email
from screenops.utils.clock import as_utc, parse_timestamp, utcnow

logger = logging.getLogger(__name__)

SCREENING_EVENT_MARKER = "Application Screening"


class Candidate(NamedTuple):
    application_id: str
    created_at: datetime
    has_meeting: bool


class BookingInfo(BaseModel):
    event_type: str
    event_name: str
    invitee_email: str | None
    invitee_name: str | None = None
    booked_at: datetime | None = None
    event_start: datetime | None = None
    event_end: datetime | None = None
    join_url: str | None = None
    host_name: str | None = None
    host_email: str | None = None


class BookingOutcome(BaseModel):
    status: str  # scheduled | ignored
    application_id: str | None = None
    meeting_id: str | None = None
    strategy: str | None = None


def _host_from(entries: Any) -> tuple[str | None, str | None]:
    if isinstance(entries, dict):
        entries = [entries]
    if not isinstance(entries, list) or not entries:
        return None, None
    entry = next((e for e in entries if isinstance(e, dict) and (e.get("user_email") or e.get("email"))), entries[0])
    if not isinstance(entry, dict):
        return None, None
    return entry.get("user_name") or entry.get("name"), entry.get("user_email") or entry.get("email")


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def parse_booking(body: dict) -> BookingInfo:
    """Normalize the invitee.created webhook body across Calendly payload variants."""
    data = _dict(body.get("payload")) or body
    event = _dict(data.get("scheduled_event"))
    nested = _dict(data.get("event"))
    host_name = host_email = None
    for source in (
        event.get("event_memberships"),
        nested.get("event_memberships"),
        event.get("hosts"),
        event.get("created_by"),
    ):
        name, email = _host_from(source)
        host_name = host_name or name
        host_email = host_email or email
        if host_name and host_email:
            break

    location = _dict(event.get("location")) or _dict(nested.get("location"))
    email = data.get("email") or _dict(data.get("invitee")).get("email")
    return BookingInfo(
        event_type=body["event"] if isinstance(body.get("event"), str) else "invitee.created",
        event_name=event.get("name") or "",
        invitee_email=email.strip().lower() if email else None,
        invitee_name=data.get("name") or _dict(data.get("invitee")).get("name"),
        booked_at=parse_timestamp(body.get("created_at") or data.get("created_at")),
        event_start=parse_timestamp(event.get("start_time")),
        event_end=parse_timestamp(event.get("end_time")),
        join_url=location.get("join_url"),
        host_name=host_name,
        host_email=host_email,
    )


def is_screening_booking(booking: BookingInfo) -> bool:
    return SCREENING_EVENT_MARKER in booking.event_name


def choose_application(
    candidates: list[Candidate], booked_at: datetime | None, window: timedelta
) -> tuple[str, str] | None:
    """
    Pick the application a booking belongs to. `candidates` are newest first.

    1. newest of the latest five without a meeting
    2. among the latest ten, first created within `window` of the booking
    3. the latest application
    Returns (application_id, strategy).
    """
    if not candidates:
        return None
    for candidate in candidates[:5]:
        if not candidate.has_meeting:
            return candidate.application_id, "no_meeting"
    if booked_at is not None:
        for candidate in candidates[:10]:
            if abs(as_utc(candidate.created_at) - as_utc(booked_at)) <= window:
                return candidate.application_id, "timestamp"
    return candidates[0].application_id, "latest"


async def _load_candidates(db: AsyncSession, participant_id: str) -> list[Candidate]:
    result = await db.execute(
        select(Application.id, Application.created_at)
        .where(Application.participant_id == participant_id)
        .order_by(Application.created_at.desc())
        .limit(10)
    )
    rows = result.all()
    if not rows:
        return []
    result = await db.execute(
        select(ScreeningMeeting.application_id).where(
            ScreeningMeeting.application_id.in_([str(r.id) for r in rows])
        )
    )
    with_meeting = {str(app_id) for app_id in result.scalars().all()}
    return [Candidate(str(r.id), r.created_at, str(r.id) in with_meeting) for r in rows]


async def _poll(attempts: int, delay: float, lookup):
    """Call `lookup` up to `attempts` times with a fixed delay; first truthy result wins."""
    for attempt in range(1, attempts + 1):
        found = await lookup()
        if found:
            return found
        if attempt < attempts:
            await asyncio.sleep(delay)
    return None


async def record_booking(db: AsyncSession, body: dict, booking: BookingInfo) -> BookingOutcome | None:
    """
    Attach the booking to an application and mark it screening_scheduled.

    Returns None when the participant or application is not there yet, so the
    caller can ask Calendly to redeliver.
    """
    delay = settings.calendly_retry_delay_seconds

    async def find_participant():
        await db.rollback()  # fresh snapshot on each attempt
        return await get_participant_by_email(db, booking.invitee_email)

    participant = await _poll(settings.calendly_participant_attempts, delay, find_participant)
    if participant is None:
        logger.warning("No participant yet for %s", booking.invitee_email)
        return None
    participant_id = str(participant.id)

    window = timedelta(minutes=settings.calendly_match_window_minutes)

    async def find_application():
        return choose_application(await _load_candidates(db, participant_id), booking.booked_at, window)

    match = await _poll(settings.calendly_application_attempts, delay, find_application)
    if match is None:
        logger.warning("No application yet for participant %s", participant_id)
        return None
    application_id, strategy = match

    meeting = ScreeningMeeting(
        application_id=application_id,
        participant_id=participant_id,
        event_type=booking.event_type,
        invitee_email=booking.invitee_email,
        invitee_name=booking.invitee_name,
        event_start=booking.event_start,
        event_end=booking.event_end,
        join_url=booking.join_url,
        host_name=booking.host_name,
        host_email=booking.host_email,
        payload=body,
    )
    db.add(meeting)

    result = await db.execute(select(Application).where(Application.id == application_id))
    application = result.scalar_one()
    application.status = "screening_scheduled"
    application.closed_reason = None
    application.rejected_type = None
    hints = dict(application.application_data or {})
    hints["hubspot_status_hint"] = "screening_scheduled"
    if booking.host_name:
        hints["hubspot_screener_hint"] = booking.host_name
    hints["screening_booked_at"] = (booking.booked_at or utcnow()).isoformat()
    application.application_data = hints
    await db.commit()
    logger.info("Booked screening %s for application %s via %s match", meeting.id, application_id, strategy)

    await sync_with_time_box(await build_sync_request(db, application))
    return BookingOutcome(
        status="scheduled", application_id=application_id, meeting_id=str(meeting.id), strategy=strategy
    )
