"""Status mapper - internal application status to CRM labels and pipeline stages.

Pure and table driven. closed_reason and rejected_type are matched
case-insensitively; only `closed` and `screening_completed` look at them.
"""

from typing import NamedTuple

from screenops.config import settings

APPLICATION_STATUSES = (
    "pending",
    "new",
    "screening_scheduled",
    "screening_no_show",
    "invited_to_reschedule",
    "secondary_screening",
    "medical_review_required",
    "conditionally_approved",
    "screening_in_process",
    "screening_completed",
    "closed",
)
TERMINAL_STATUSES = ("closed", "screening_completed")
CLOSED_REASONS = ("approved", "unresponsive", "rejected")
REJECTED_TYPES = ("temporary", "permanent")


class PipelineStage(NamedTuple):
    pipeline: str
    stage: str


# HubSpot deal stage ids
STAGE_NEW = "1142575458"
STAGE_SCHEDULED = "appointmentscheduled"
STAGE_QUALIFIED = "qualifiedtobuy"
STAGE_CLOSED_WON = "closedwon"
STAGE_CLOSED_LOST = "121534028"
STAGE_SCREENED_OUT = "107658399"

STAGE_BY_STATUS = {
    "pending": STAGE_NEW,
    "new": STAGE_NEW,
    "screening_scheduled": STAGE_SCHEDULED,
    "screening_no_show": STAGE_SCHEDULED,
    "invited_to_reschedule": STAGE_SCHEDULED,
    "secondary_screening": STAGE_SCHEDULED,
    "screening_in_process": STAGE_SCHEDULED,
    "medical_review_required": STAGE_SCHEDULED,
    "conditionally_approved": STAGE_QUALIFIED,
    "closed": STAGE_CLOSED_LOST,
}

# (status, closed_reason, rejected_type); rejected_type None is the generic rejected stage
TERMINAL_STAGES = {
    ("closed", "approved", None): STAGE_CLOSED_WON,
    ("closed", "unresponsive", None): STAGE_CLOSED_LOST,
    ("closed", "rejected", None): STAGE_CLOSED_LOST,
    ("closed", "rejected", "temporary"): STAGE_CLOSED_LOST,
    ("closed", "rejected", "permanent"): STAGE_CLOSED_LOST,
    ("screening_completed", "approved", None): STAGE_QUALIFIED,
    ("screening_completed", "unresponsive", None): STAGE_SCREENED_OUT,
    ("screening_completed", "rejected", None): STAGE_SCREENED_OUT,
    ("screening_completed", "rejected", "temporary"): STAGE_SCREENED_OUT,
    ("screening_completed", "rejected", "permanent"): STAGE_SCREENED_OUT,
}

STATUS_LABELS = {
    "pending": "Pending",
    "new": "Pending",
    "screening_scheduled": "Screening Scheduled",
    "screening_no_show": "Screening No Show",
    "invited_to_reschedule": "Invited to Reschedule",
    "secondary_screening": "Secondary Screening",
    "medical_review_required": "Medical Review Required",
    "screening_in_process": "Screening",
    "conditionally_approved": "Conditionally Approved",
}

TERMINAL_PREFIX = {"closed": "Closed", "screening_completed": "Screening Completed"}
# Label used when a terminal status arrives without a recognised reason
TERMINAL_FALLBACK_LABEL = {"closed": "Pending", "screening_completed": "Screening Completed"}


def _norm(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


def _terminal_key(status: str, closed_reason: str | None, rejected_type: str | None):
    reason = _norm(closed_reason)
    kind = _norm(rejected_type) if reason == "rejected" else None
    if kind not in REJECTED_TYPES:
        kind = None
    return status, reason, kind


def map_status(
    status: str,
    closed_reason: str | None = None,
    rejected_type: str | None = None,
) -> str | None:
    """CRM `application_status` dropdown label, or None for unmapped statuses."""
    status = _norm(status) or ""
    if status not in TERMINAL_STATUSES:
        return STATUS_LABELS.get(status)

    _, reason, kind = _terminal_key(status, closed_reason, rejected_type)
    if reason not in CLOSED_REASONS:
        return TERMINAL_FALLBACK_LABEL[status]
    parts = [TERMINAL_PREFIX[status], reason.capitalize()]
    if kind:
        parts.append(kind.capitalize())
    return " - ".join(parts)


def stage_for_status(
    status: str,
    closed_reason: str | None = None,
    rejected_type: str | None = None,
) -> PipelineStage | None:
    """Deal pipeline stage for a status, or None when no stage applies."""
    status = _norm(status) or ""
    stage = None
    if status in TERMINAL_STATUSES:
        key = _terminal_key(status, closed_reason, rejected_type)
        stage = TERMINAL_STAGES.get(key) or TERMINAL_STAGES.get(key[:2] + (None,))
    if stage is None:
        stage = STAGE_BY_STATUS.get(status)
    if stage is None:
        return None
    return PipelineStage(settings.hubspot_pipeline, stage)


def merged_status(status: str, closed_reason: str | None = None, rejected_type: str | None = None) -> str:
    """Internal status joined with its sub-classification, e.g. 'closed - rejected - permanent'."""
    return " - ".join(part for part in (status, closed_reason, rejected_type) if part)


def score_summary(red: int | None, yellow: int | None, green: int | None) -> str | None:
    """'{red} / {yellow} / {green}' for the CRM score property."""
    if red is None and yellow is None and green is None:
        return None
    return f"{red or 0} / {yellow or 0} / {green or 0}"
