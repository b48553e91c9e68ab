"""Participant API schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from screenops.schemas.applications import ApplicationOut


class CreateParticipantRequest(BaseModel):
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    date_of_birth: str | None = None


class UpdateParticipantRequest(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    date_of_birth: str | None = None
    status: str | None = None


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    date_of_birth: str | None = None
    status: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ParticipantDetail(ParticipantOut):
    applications: list[ApplicationOut] = []
