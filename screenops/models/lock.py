"""Processing lock model."""

from datetime import datetime

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from screenops.database import Base
from screenops.utils.clock import utcnow


class ProcessingLock(Base):
    """Row whose primary key guards one in-flight submission (e.g. typeform_{token})."""

    __tablename__ = "processing_locks"

    lock_id: Mapped[str] = mapped_column(Text, primary_key=True)
    tracking_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
