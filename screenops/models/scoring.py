"""Scoring rule model."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from screenops.database import Base, JSONType, UUIDType
from screenops.utils.clock import utcnow


class ScoringRule(Base):
    """Colour tag attached to a field or choice version."""

    __tablename__ = "scoring_rules"

    id: Mapped[str] = mapped_column(UUIDType, primary_key=True, default=lambda: str(uuid4()))
    target_type: Mapped[str] = mapped_column(String(10), nullable=False)  # field|choice
    target_id: Mapped[str] = mapped_column(UUIDType, nullable=False, index=True)
    score_value: Mapped[str] = mapped_column(String(10), nullable=False)  # red|yellow|green|na
    criteria: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_by: Mapped[str | None] = mapped_column(UUIDType, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
