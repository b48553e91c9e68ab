"""Application status changes - validate, persist, then mirror to HubSpot."""

import logging

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.engine.status_mapper import APPLICATION_STATUSES, CLOSED_REASONS, REJECTED_TYPES, TERMINAL_STATUSES
from screenops.exceptions import EntityNotFoundError, ValidationError
from screenops.models import Application
from screenops.services.crm_sync import CrmSyncOutcome, build_sync_request, sync_with_time_box
from screenops.storage.repositories import get_application, get_user

logger = logging.getLogger(__name__)


class StatusChange(BaseModel):
    """Validated status change, with reason and type lower-cased."""

    status: str
    closed_reason: str | None = None
    rejected_type: str | None = None


def validate_status_change(
    status: str | None,
    closed_reason: str | None = None,
    rejected_type: str | None = None,
) -> StatusChange:
    """
    Check a requested status against the fixed set.

    closed_reason and rejected_type only apply to closed/screening_completed and
    are dropped for every other status. rejected_type only applies to a
    rejected closure.
    """
    if not status:
        raise ValidationError("Status is required")
    status = str(status).strip()
    if status not in APPLICATION_STATUSES:
        raise ValidationError(f"Invalid status value: {status}")
    if status not in TERMINAL_STATUSES:
        return StatusChange(status=status)

    reason = closed_reason.strip().lower() if closed_reason else None
    if reason is not None and reason not in CLOSED_REASONS:
        raise ValidationError(f"Invalid closed_reason: {closed_reason}")
    kind = rejected_type.strip().lower() if rejected_type else None
    if kind is not None and kind not in REJECTED_TYPES:
        raise ValidationError(f"Invalid rejected_type: {rejected_type}")
    if reason != "rejected":
        kind = None
    return StatusChange(status=status, closed_reason=reason, rejected_type=kind)


async def apply_status_change(
    db: AsyncSession,
    application_id: str,
    change: StatusChange,
    assigned_screener_id: str | None = None,
    notes: str | None = None,
) -> tuple[Application, CrmSyncOutcome | None]:
    """
    Commit the new status locally, then run the time-boxed CRM sync.

    The sync never rolls back or blocks the committed change; its outcome is
    None when it failed, timed out or there was nothing to match on.
    """
    application = await get_application(db, application_id)
    if application is None:
        raise EntityNotFoundError("Application", application_id)
    if assigned_screener_id is not None:
        if await get_user(db, assigned_screener_id) is None:
            raise EntityNotFoundError("User", assigned_screener_id)
        application.assigned_screener_id = assigned_screener_id

    previous = application.status
    application.status = change.status
    application.closed_reason = change.closed_reason
    application.rejected_type = change.rejected_type
    await db.commit()
    await db.refresh(application)
    logger.info("Application %s status %s -> %s", application_id, previous, change.status)

    request = await build_sync_request(db, application, include_status=True, notes=notes)
    outcome = await sync_with_time_box(request)
    return application, outcome
