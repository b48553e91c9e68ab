"""Repository functions for participants, applications, forms, rules and users."""

from collections.abc import Sequence
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.models import (
    Application,
    ChoiceVersion,
    FieldResponse,
    FieldVersion,
    Form,
    Participant,
    ScoringRule,
    UserProfile,
)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def normalize_page(page: int | None, page_size: int | None) -> tuple[int, int]:
    """1-based page; page size clamped to [1, MAX_PAGE_SIZE]."""
    page = max(1, page or 1)
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE
    page_size = max(1, min(MAX_PAGE_SIZE, page_size))
    return page, page_size


async def paginate(
    db: AsyncSession, stmt: Select, page: int | None, page_size: int | None
) -> tuple[Sequence[Any], int, int, int]:
    """Run `stmt` for one page. Returns (rows, total, page, page_size)."""
    page, page_size = normalize_page(page, page_size)
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(stmt.offset((page - 1) * page_size).limit(page_size))
    return result.scalars().all(), total, page, page_size


# Participants


async def get_participant(db: AsyncSession, participant_id: str) -> Participant | None:
    result = await db.execute(select(Participant).where(Participant.id == participant_id))
    return result.scalar_one_or_none()


async def get_participant_by_email(db: AsyncSession, email: str) -> Participant | None:
    result = await db.execute(
        select(Participant).where(func.lower(Participant.email) == email.strip().lower())
    )
    return result.scalars().first()


async def find_or_create_participant(
    db: AsyncSession,
    email: str,
    first_name: str,
    last_name: str,
    phone: str | None = None,
    date_of_birth: str | None = None,
) -> tuple[Participant, bool]:
    """Returns (participant, created)."""
    existing = await get_participant_by_email(db, email)
    if existing:
        return existing, False
    participant = Participant(
        email=email.strip().lower(),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        date_of_birth=date_of_birth,
    )
    db.add(participant)
    await db.flush()
    return participant, True


# Applications


async def get_application(db: AsyncSession, application_id: str) -> Application | None:
    result = await db.execute(select(Application).where(Application.id == application_id))
    return result.scalar_one_or_none()


async def get_application_by_token(db: AsyncSession, token: str) -> Application | None:
    result = await db.execute(select(Application).where(Application.typeform_response_id == token))
    return result.scalar_one_or_none()


async def get_field_responses(db: AsyncSession, application_id: str) -> Sequence[FieldResponse]:
    result = await db.execute(
        select(FieldResponse)
        .where(FieldResponse.application_id == application_id)
        .order_by(FieldResponse.created_at)
    )
    return result.scalars().all()


async def count_field_responses(db: AsyncSession, application_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(FieldResponse).where(FieldResponse.application_id == application_id)
    )
    return result.scalar_one()


# Forms, field and choice versions


async def get_form_by_typeform_id(db: AsyncSession, form_id: str) -> Form | None:
    result = await db.execute(select(Form).where(Form.form_id == form_id))
    return result.scalar_one_or_none()


async def get_active_field_versions(db: AsyncSession, form_pk: str) -> Sequence[FieldVersion]:
    result = await db.execute(
        select(FieldVersion)
        .where(FieldVersion.form_id == form_pk, FieldVersion.is_active.is_(True))
        .order_by(FieldVersion.display_order, FieldVersion.version_date.desc())
    )
    return result.scalars().all()


async def get_field_versions_by_ids(db: AsyncSession, ids: Sequence[str]) -> Sequence[FieldVersion]:
    if not ids:
        return []
    result = await db.execute(select(FieldVersion).where(FieldVersion.id.in_(list(ids))))
    return result.scalars().all()


async def get_choices_for_field_versions(
    db: AsyncSession, field_version_ids: Sequence[str], active_only: bool = False
) -> Sequence[ChoiceVersion]:
    if not field_version_ids:
        return []
    stmt = select(ChoiceVersion).where(ChoiceVersion.field_version_id.in_(list(field_version_ids)))
    if active_only:
        stmt = stmt.where(ChoiceVersion.is_active.is_(True))
    result = await db.execute(stmt.order_by(ChoiceVersion.display_order))
    return result.scalars().all()


# Scoring rules


async def get_active_rules_for_targets(
    db: AsyncSession, target_ids: Sequence[str], target_type: str | None = None
) -> Sequence[ScoringRule]:
    if not target_ids:
        return []
    stmt = select(ScoringRule).where(
        ScoringRule.target_id.in_(list(target_ids)),
        ScoringRule.is_active.is_(True),
    )
    if target_type:
        stmt = stmt.where(ScoringRule.target_type == target_type)
    result = await db.execute(stmt.order_by(ScoringRule.created_at))
    return result.scalars().all()


def rule_as_dict(rule: ScoringRule) -> dict:
    """Plain mapping consumed by the evaluator."""
    return {
        "id": str(rule.id),
        "target_type": rule.target_type,
        "target_id": str(rule.target_id),
        "score_value": rule.score_value,
        "criteria": rule.criteria,
        "is_active": rule.is_active,
    }


# Users


async def get_user(db: AsyncSession, user_id: str) -> UserProfile | None:
    result = await db.execute(select(UserProfile).where(UserProfile.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> UserProfile | None:
    result = await db.execute(
        select(UserProfile).where(func.lower(UserProfile.email) == email.strip().lower())
    )
    return result.scalars().first()
