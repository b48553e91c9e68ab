"""Screening call and booked meeting models."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from screenops.database import Base, JSONType, UUIDType
from screenops.utils.clock import utcnow


class Screening(Base):
    """Screening record holding per-role notes for an application."""

    __tablename__ = "screenings"

    id: Mapped[str] = mapped_column(UUIDType, primary_key=True, default=lambda: str(uuid4()))
    application_id: Mapped[str] = mapped_column(
        UUIDType, ForeignKey("applications.id"), nullable=False, index=True
    )
    participant_id: Mapped[str] = mapped_column(UUIDType, ForeignKey("participants.id"), nullable=False)
    screener_id: Mapped[str | None] = mapped_column(
        UUIDType, ForeignKey("user_profiles.id"), nullable=True
    )
    screening_type: Mapped[str] = mapped_column(String(20), nullable=False, default="initial")
    status: Mapped[str] = mapped_column(String(40), nullable=False, default="scheduled")
    notes: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class ScreeningMeeting(Base):
    """Screening call booked through Calendly."""

    __tablename__ = "calendly_screening_meetings"

    id: Mapped[str] = mapped_column(UUIDType, primary_key=True, default=lambda: str(uuid4()))
    application_id: Mapped[str] = mapped_column(
        UUIDType, ForeignKey("applications.id"), nullable=False, index=True
    )
    participant_id: Mapped[str] = mapped_column(UUIDType, ForeignKey("participants.id"), nullable=False)
    event_type: Mapped[str] = mapped_column(Text, nullable=False)
    invitee_email: Mapped[str] = mapped_column(Text, nullable=False)
    invitee_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    event_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    join_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    host_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    host_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    payload: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
