"""Screening notes - per-role drafts, submissions and action logs."""

import logging
from typing import Any

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.exceptions import EntityNotFoundError, ValidationError
from screenops.models import Screening, UserProfile
from screenops.services.applications import apply_status_change, validate_status_change
from screenops.services.crm_sync import build_sync_request, sync_with_time_box
from screenops.storage.repositories import get_application
from screenops.utils.clock import eastern_stamp, utcnow

logger = logging.getLogger(__name__)

INITIAL_SCREENING = "initial"

# Sections pushed to the CRM screener_notes property, in order
NOTE_SECTIONS = (
    ("initialScreeningSummary", "Initial Screening Summary"),
    ("secondaryScreeningSummary", "Secondary Screening Summary"),
    ("generalNotes", "Additional Information"),
    ("desiredRetreat", "Desired Retreat"),
    ("medsHealthHistory", "Meds / Health History"),
    ("supportSystem", "Support System"),
    ("intention", "Intention"),
    ("psychHistory", "Psych History"),
    ("psychedelicExperience", "Psychedelic Experience"),
    ("psychObservation", "Psych Observations & Background"),
    ("supportiveHabits", "Supportive Habits"),
)
NO_NOTES = "No screener notes available yet."


class NotesUpdate(BaseModel):
    notes: dict[str, Any] | None = None
    submitted: bool = False
    action_log_message: str | None = None
    application_status: str | None = None
    closed_reason: str | None = None
    rejected_type: str | None = None
    note_role: str | None = None


def role_key(role: str, user_id: str) -> str:
    return f"{role}:{user_id}"


def _has_content(notes: dict) -> bool:
    return notes.get("scholarshipNeeded") is True or any(
        isinstance(v, str) and v.strip() for v in notes.values()
    )


def merge_role_notes(existing: dict, incoming: dict, key: str, user_id: str, submitted: bool) -> dict:
    """
    Store `incoming` under notes.roles[key] and drop the user's other drafts.

    Flat note fields are also kept at the top level for older readers.
    """
    flat = {k: v for k, v in incoming.items() if k != "roles"}
    merged = {**existing, **flat}
    roles = dict(merged.get("roles") or {})
    if _has_content(flat) or submitted:
        roles[key] = {
            **flat,
            "submitted": submitted,
            "updated_at": utcnow().isoformat(),
            "submitted_by": user_id,
        }
    for other in list(roles):
        entry = roles[other]
        if other != key and isinstance(entry, dict) and entry.get("submitted") is not True and entry.get("submitted_by") == user_id:
            del roles[other]
    merged["roles"] = roles
    return merged


def curate_notes(notes: dict) -> str:
    """Plain-text summary of submitted notes for the CRM."""
    parts = []
    for name, label in NOTE_SECTIONS:
        value = notes.get(name)
        if value is not None and str(value).strip():
            parts.append(f"{label}:\n{str(value).strip()}")
    scholarship = notes.get("scholarshipNeeded")
    if isinstance(scholarship, bool) and (scholarship or parts):
        parts.append(f"Scholarship Needed:\n{'Yes' if scholarship else 'No'}")
    return "\n\n".join(parts) if parts else NO_NOTES


async def get_initial_screening(db: AsyncSession, application_id: str) -> Screening | None:
    result = await db.execute(
        select(Screening).where(
            Screening.application_id == application_id,
            Screening.screening_type == INITIAL_SCREENING,
        )
    )
    return result.scalars().first()


async def save_notes(db: AsyncSession, application_id: str, user: UserProfile, update: NotesUpdate) -> Screening:
    """Upsert the initial screening with the caller's notes; submission moves it to screening_in_process."""
    if not update.notes and not update.action_log_message and not update.submitted:
        raise ValidationError("Nothing to update. Provide notes, submitted or action_log_message.")
    change = None
    if update.application_status and not update.submitted:
        change = validate_status_change(update.application_status, update.closed_reason, update.rejected_type)

    application = await get_application(db, application_id)
    if application is None:
        raise EntityNotFoundError("Application", application_id)

    screening = await get_initial_screening(db, application_id)
    if screening is None:
        screening = Screening(
            application_id=application_id,
            participant_id=application.participant_id,
            screening_type=INITIAL_SCREENING,
            status=application.status or "new",
            notes={},
        )
        db.add(screening)

    user_id = str(user.id)
    notes = dict(screening.notes or {})
    if update.notes:
        key = role_key((update.note_role or "").strip() or user.role, user_id)
        notes = merge_role_notes(notes, update.notes, key, user_id, update.submitted)
    if update.action_log_message and update.action_log_message.strip():
        line = f"{user.full_name or 'Unknown User'} {update.action_log_message.strip()} at {eastern_stamp()}"
        notes["actionLogs"] = [*(notes.get("actionLogs") or []), line]

    screening.notes = notes
    screening.screener_id = user_id
    if update.submitted:
        screening.status = "screening_in_process"
        screening.completed_at = utcnow()
        application.status = "screening_in_process"
    await db.commit()
    await db.refresh(screening)
    logger.info("Saved screening notes for application %s (submitted=%s)", application_id, update.submitted)

    summary = curate_notes(notes) if update.submitted and update.notes else None
    if change is not None:
        await apply_status_change(db, application_id, change, notes=summary)
    elif update.submitted:
        await db.refresh(application)
        await sync_with_time_box(await build_sync_request(db, application, include_status=True, notes=summary))
    return screening


def visible_roles(notes: dict, user_id: str) -> dict[str, dict]:
    """Submitted role notes plus the caller's own drafts."""
    roles = notes.get("roles") or {}
    return {
        key: entry
        for key, entry in roles.items()
        if isinstance(entry, dict)
        and (entry.get("submitted") is True or entry.get("submitted_by") == user_id)
    }


async def list_note_roles(db: AsyncSession, application_id: str, user_id: str) -> list[dict]:
    screening = await get_initial_screening(db, application_id)
    roles = visible_roles((screening.notes if screening else None) or {}, user_id)
    if not roles:
        return []
    submitter_ids = {e["submitted_by"] for e in roles.values() if e.get("submitted_by")}
    result = await db.execute(select(UserProfile).where(UserProfile.id.in_(list(submitter_ids))))
    profiles = {str(p.id): p for p in result.scalars().all()}
    listing = []
    for key, entry in roles.items():
        profile = profiles.get(str(entry.get("submitted_by")))
        listing.append(
            {
                "role": key,
                "display_name": profile.full_name if profile else None,
                "display_role": profile.role if profile else key.split(":", 1)[0].upper(),
                "is_draft": entry.get("submitted") is not True,
            }
        )
    return listing


async def get_role_notes(db: AsyncSession, application_id: str, key: str, user_id: str) -> dict:
    screening = await get_initial_screening(db, application_id)
    entry = visible_roles((screening.notes if screening else None) or {}, user_id).get(key)
    if entry is None:
        raise EntityNotFoundError("Role notes", key)
    return {"role": key, "notes": entry, "is_draft": entry.get("submitted") is not True}
