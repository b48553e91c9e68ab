"""Processing locks - one row per in-flight submission, keyed by its token."""

import logging
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.config import settings
from screenops.models import Application, ProcessingLock
from screenops.utils.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

TYPEFORM_LOCK_PREFIX = "typeform_"


def typeform_lock_id(token: str) -> str:
    return f"{TYPEFORM_LOCK_PREFIX}{token}"


async def acquire_lock(db: AsyncSession, lock_id: str, tracking_id: str | None = None) -> bool:
    """
    Insert the lock row; the primary key makes this the mutual exclusion point.

    A lock older than `processing_lock_stale_seconds` is taken over. Unexpected
    store errors fail open so a broken lock table never blocks intake.
    """
    now = utcnow()
    try:
        lock = ProcessingLock(lock_id=lock_id, tracking_id=tracking_id, created_at=now, updated_at=now)
        db.add(lock)
        await db.commit()
        db.expunge(lock)
        return True
    except IntegrityError:
        await db.rollback()
    except Exception:
        await db.rollback()
        logger.exception("Lock store error for %s; proceeding without lock", lock_id)
        return True

    result = await db.execute(select(ProcessingLock).where(ProcessingLock.lock_id == lock_id))
    existing = result.scalar_one_or_none()
    if existing is None:
        # Another worker finished and released it between our insert and the lookup
        logger.info("Lock %s released concurrently; skipping", lock_id)
        return False

    age = now - as_utc(existing.created_at)
    if age > timedelta(seconds=settings.processing_lock_stale_seconds):
        logger.warning("Taking over stale lock %s (age %s)", lock_id, age)
        existing.tracking_id = tracking_id
        existing.created_at = now
        existing.updated_at = now
        await db.commit()
        db.expunge(existing)
        return True

    db.expunge(existing)
    logger.info("Lock %s held by %s; skipping", lock_id, existing.tracking_id)
    return False


async def release_lock(db: AsyncSession, lock_id: str) -> None:
    """Delete the lock row. Failures are logged, never raised."""
    try:
        await db.execute(delete(ProcessingLock).where(ProcessingLock.lock_id == lock_id))
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Failed to release processing lock %s", lock_id)


async def find_stale_submissions(db: AsyncSession) -> list[dict]:
    """Submissions whose typeform lock is older than the sweep threshold."""
    cutoff = utcnow() - timedelta(seconds=settings.unprocessed_lock_age_seconds)
    result = await db.execute(
        select(ProcessingLock)
        .where(
            ProcessingLock.lock_id.like(f"{TYPEFORM_LOCK_PREFIX}%"),
            ProcessingLock.created_at < cutoff,
        )
        .order_by(ProcessingLock.created_at)
        .limit(settings.unprocessed_batch_size)
    )
    locks = result.scalars().all()
    tokens = {lock.lock_id[len(TYPEFORM_LOCK_PREFIX):]: lock for lock in locks}
    if not tokens:
        return []

    result = await db.execute(
        select(Application.id, Application.typeform_response_id).where(
            Application.typeform_response_id.in_(list(tokens))
        )
    )
    found = []
    for application_id, token in result.all():
        lock = tokens[token]
        found.append(
            {
                "application_id": str(application_id),
                "typeform_response_id": token,
                "lock_id": lock.lock_id,
                "locked_at": as_utc(lock.created_at).isoformat(),
            }
        )
    return found
