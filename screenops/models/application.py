"""Participant, application and field response models."""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from screenops.database import Base, JSONType, UUIDType
from screenops.utils.clock import utcnow


class Participant(Base):
    """A person who has applied, keyed by email."""

    __tablename__ = "participants"

    id: Mapped[str] = mapped_column(UUIDType, primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    date_of_birth: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(40), nullable=False, default="active")
    hubspot_contact_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Application(Base):
    """One form submission. Colour counts are derived by the scoring pass."""

    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(UUIDType, primary_key=True, default=lambda: str(uuid4()))
    participant_id: Mapped[str] = mapped_column(
        UUIDType, ForeignKey("participants.id"), nullable=False, index=True
    )
    form_id: Mapped[str | None] = mapped_column(UUIDType, ForeignKey("typeform_forms.id"), nullable=True)
    typeform_response_id: Mapped[str | None] = mapped_column(Text, unique=True, nullable=True)
    submission_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    raw_data: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    application_data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(40), nullable=False, default="pending")
    closed_reason: Mapped[str | None] = mapped_column(String(40), nullable=True)
    rejected_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    red_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    yellow_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    green_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    calculated_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    assigned_screener_id: Mapped[str | None] = mapped_column(
        UUIDType, ForeignKey("user_profiles.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class FieldResponse(Base):
    """One answered question of an application, tied to the field version in force."""

    __tablename__ = "application_field_responses"

    id: Mapped[str] = mapped_column(UUIDType, primary_key=True, default=lambda: str(uuid4()))
    application_id: Mapped[str] = mapped_column(
        UUIDType, ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field_version_id: Mapped[str] = mapped_column(
        UUIDType, ForeignKey("typeform_field_versions.id"), nullable=False
    )
    response_value: Mapped[Any] = mapped_column(JSONType, nullable=True)  # str | list[str] | number | bool
    score: Mapped[str | None] = mapped_column(String(10), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
