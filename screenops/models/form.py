"""Form, field version and choice version models."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from screenops.database import Base, JSONType, UUIDType
from screenops.utils.clock import utcnow


class Form(Base):
    """A Typeform form registered with the console."""

    __tablename__ = "typeform_forms"

    id: Mapped[str] = mapped_column(UUIDType, primary_key=True, default=lambda: str(uuid4()))
    form_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    form_title: Mapped[str] = mapped_column(Text, nullable=False)
    workspace_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class FieldVersion(Base):
    """Immutable snapshot of a form question. Scoring rules target these rows."""

    __tablename__ = "typeform_field_versions"

    id: Mapped[str] = mapped_column(UUIDType, primary_key=True, default=lambda: str(uuid4()))
    form_id: Mapped[str] = mapped_column(UUIDType, ForeignKey("typeform_forms.id"), nullable=False)
    field_id: Mapped[str] = mapped_column(Text, nullable=False)  # Typeform field id
    field_title: Mapped[str] = mapped_column(Text, nullable=False)
    field_type: Mapped[str] = mapped_column(Text, nullable=False)
    field_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_field_version_id: Mapped[str | None] = mapped_column(
        UUIDType, ForeignKey("typeform_field_versions.id"), nullable=True
    )
    properties: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class ChoiceVersion(Base):
    """Immutable snapshot of one option offered by a field version."""

    __tablename__ = "typeform_choice_versions"

    id: Mapped[str] = mapped_column(UUIDType, primary_key=True, default=lambda: str(uuid4()))
    field_version_id: Mapped[str] = mapped_column(
        UUIDType, ForeignKey("typeform_field_versions.id"), nullable=False
    )
    choice_id: Mapped[str] = mapped_column(Text, nullable=False)
    choice_label: Mapped[str] = mapped_column(Text, nullable=False)
    choice_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
