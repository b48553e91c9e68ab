"""Application API schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class ParticipantBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: str
    last_name: str


class ApplicationOut(BaseModel):
    """Application row as listed."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    participant_id: str
    form_id: str | None = None
    typeform_response_id: str | None = None
    submission_date: datetime
    status: str
    closed_reason: str | None = None
    rejected_type: str | None = None
    red_count: int
    yellow_count: int
    green_count: int
    calculated_score: int | None = None
    assigned_screener_id: str | None = None
    created_at: datetime
    updated_at: datetime


class ApplicationListItem(ApplicationOut):
    participant: ParticipantBrief | None = None


class FieldResponseOut(BaseModel):
    id: str
    field_version_id: str
    field_title: str | None = None
    field_type: str | None = None
    response_value: Any = None
    score: str | None = None


class MeetingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_start: datetime | None = None
    event_end: datetime | None = None
    join_url: str | None = None
    host_name: str | None = None
    host_email: str | None = None
    created_at: datetime


class ScreeningOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    application_id: str
    screener_id: str | None = None
    screening_type: str
    status: str
    notes: dict[str, Any]
    completed_at: datetime | None = None
    updated_at: datetime


class ApplicationDetail(ApplicationOut):
    """GET /v1/applications/{id} response."""

    application_data: dict[str, Any] = {}
    participant: ParticipantBrief | None = None
    responses: list[FieldResponseOut] = []
    meetings: list[MeetingOut] = []
    screening: ScreeningOut | None = None


class UpdateApplicationRequest(BaseModel):
    """PATCH /v1/applications/{id} request. Status is checked by the service."""

    status: str | None = None
    closed_reason: str | None = None
    rejected_type: str | None = None
    assigned_screener_id: str | None = None


class DuplicateCheck(BaseModel):
    exists: bool
    application_id: str | None = None
    processed: bool = False
