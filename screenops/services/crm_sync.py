"""Sync reconciler - mirrors a persisted status/score change onto the HubSpot deal.

Every HubSpot call is wrapped: a 403 (missing scope) is logged and the step is
skipped, anything else propagates. The local change has already been committed
by the time this runs, so a failure here never undoes it.
"""

import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.config import settings
from screenops.engine.status_mapper import map_status, score_summary, stage_for_status
from screenops.integrations.hubspot import (
    PROP_APPLICATION_SCORE,
    PROP_APPLICATION_STATUS,
    PROP_SCREENER_NOTES,
    PROP_SCREENERS_NAME,
    HubSpotClient,
    HubSpotError,
)
from screenops.models import Application, Participant, UserProfile
from screenops.utils.tasks import run_time_boxed

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CrmSyncRequest(BaseModel):
    """Snapshot of what to push, taken while the request's session is still open."""

    application_id: str
    email: str
    status: str | None = None
    closed_reason: str | None = None
    rejected_type: str | None = None
    status_label: str | None = None
    red: int | None = None
    yellow: int | None = None
    green: int | None = None
    notes: str | None = None
    screener_name: str | None = None


class CrmSyncOutcome(BaseModel):
    """What the reconciler managed to do."""

    contact_id: str | None = None
    deal_id: str | None = None
    properties: dict[str, Any] = Field(default_factory=dict)
    stage: str | None = None
    skipped: list[str] = Field(default_factory=list)


async def _tolerate_scope_error(step: str, call: Awaitable[T], outcome: CrmSyncOutcome) -> T | None:
    try:
        return await call
    except HubSpotError as exc:
        if not exc.is_scope_error:
            raise
        logger.warning("HubSpot %s skipped: missing scope (403) %s", step, exc.body[:200])
        outcome.skipped.append(step)
        return None


async def sync_application(request: CrmSyncRequest, client: HubSpotClient | None = None) -> CrmSyncOutcome:
    """Resolve contact and deal, then push status/score/notes properties and the pipeline stage."""
    client = client or HubSpotClient()
    outcome = CrmSyncOutcome()
    if not client.is_enabled:
        logger.info("HubSpot not configured; skipping sync for application %s", request.application_id)
        outcome.skipped.append("not_configured")
        return outcome

    outcome.contact_id = await _tolerate_scope_error(
        "contact lookup", client.find_contact_id_by_email(request.email), outcome
    )
    if not outcome.contact_id:
        logger.info("No HubSpot contact for %s", request.email)
        outcome.skipped.append("no_contact")
        return outcome

    outcome.deal_id = await _tolerate_scope_error(
        "deal lookup", client.find_latest_deal_id_for_contact(outcome.contact_id), outcome
    )
    if not outcome.deal_id:
        logger.info("No HubSpot deal for contact %s", outcome.contact_id)
        outcome.skipped.append("no_deal")
        return outcome

    properties: dict[str, Any] = {}
    label = request.status_label
    if label is None and request.status:
        label = map_status(request.status, request.closed_reason, request.rejected_type)
    if label:
        properties[PROP_APPLICATION_STATUS] = label
    summary = score_summary(request.red, request.yellow, request.green)
    if summary:
        properties[PROP_APPLICATION_SCORE] = summary
    if request.notes:
        properties[PROP_SCREENER_NOTES] = request.notes
    if request.screener_name:
        option = await _tolerate_scope_error(
            "screener options", client.find_screener_option(request.screener_name), outcome
        )
        if option:
            properties[PROP_SCREENERS_NAME] = option
        else:
            logger.warning("No HubSpot screener option matches %r", request.screener_name)

    if properties:
        updated = await _tolerate_scope_error(
            "property update", client.update_deal_properties(outcome.deal_id, properties), outcome
        )
        if updated is not None:
            outcome.properties = properties

    stage = stage_for_status(request.status, request.closed_reason, request.rejected_type) if request.status else None
    if stage:
        result = await _tolerate_scope_error(
            "stage update", client.update_deal_stage(outcome.deal_id, stage.pipeline, stage.stage), outcome
        )
        if result is not None:
            outcome.stage = stage.stage
    return outcome


async def build_sync_request(
    db: AsyncSession,
    application: Application,
    include_status: bool = True,
    include_score: bool = False,
    notes: str | None = None,
) -> CrmSyncRequest | None:
    """Capture the CRM-facing state of an application; None when there is no email to match on."""
    result = await db.execute(select(Participant.email).where(Participant.id == application.participant_id))
    email = result.scalar_one_or_none()
    if not email:
        return None

    hints = application.application_data or {}
    screener_name = hints.get("hubspot_screener_hint")
    if application.assigned_screener_id:
        result = await db.execute(select(UserProfile).where(UserProfile.id == application.assigned_screener_id))
        screener = result.scalar_one_or_none()
        if screener:
            screener_name = screener.full_name

    request = CrmSyncRequest(application_id=str(application.id), email=email, notes=notes, screener_name=screener_name)
    if include_status:
        request.status = application.status
        request.closed_reason = application.closed_reason
        request.rejected_type = application.rejected_type
    if include_score:
        request.red = application.red_count
        request.yellow = application.yellow_count
        request.green = application.green_count
    return request


async def sync_with_time_box(request: CrmSyncRequest | None, client: HubSpotClient | None = None) -> CrmSyncOutcome | None:
    """
    Run the reconciler for at most `crm_sync_timeout_seconds`.

    A timed-out sync keeps running as a detached task. Failures are logged and
    never reach the caller's response.
    """
    if request is None:
        return None
    try:
        boxed = await run_time_boxed(
            sync_application(request, client),
            settings.crm_sync_timeout_seconds,
            name=f"crm-sync-{request.application_id}",
        )
    except Exception:
        logger.exception("HubSpot sync failed for application %s; local change kept", request.application_id)
        return None
    return boxed.value
