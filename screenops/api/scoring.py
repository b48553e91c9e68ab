"""Scoring rule endpoints - list, upsert, soft delete."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.auth.middleware import CurrentUser, RubricEditor
from screenops.database import get_db
from screenops.models import ScoringRule
from screenops.schemas.scoring import SCORE_VALUES, TARGET_TYPES, ScoringRuleOut, UpsertScoringRuleRequest
from screenops.storage.repositories import get_active_rules_for_targets
from screenops.utils.canonical import same_document

logger = logging.getLogger(__name__)

router = APIRouter()


def _is_uuid(value: str) -> bool:
    try:
        UUID(value)
    except (TypeError, ValueError):
        return False
    return True


@router.get("/rules")
async def list_rules(
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)],
    target_type: str = Query(..., alias="targetType"),
    target_ids: str = Query(..., alias="targetIds"),
):
    """Active rules for a comma-separated list of field or choice version ids."""
    if target_type not in TARGET_TYPES:
        raise HTTPException(status_code=400, detail="Invalid parameters")
    ids = [t.strip() for t in target_ids.split(",") if _is_uuid(t.strip())]
    rules = await get_active_rules_for_targets(db, ids, target_type)
    return {"rules": [ScoringRuleOut.model_validate(r) for r in rules]}


@router.post("/rules")
async def upsert_rule(
    body: UpsertScoringRuleRequest,
    user: RubricEditor,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Create or update the active rule for a target.

    Field rules are keyed by (target, criteria) so one field can carry several
    conditions; choice rules by target alone.
    """
    if body.target_type not in TARGET_TYPES or body.score_value not in SCORE_VALUES or not _is_uuid(body.target_id):
        raise HTTPException(status_code=400, detail="Invalid parameters")
    criteria = body.criteria or None

    result = await db.execute(
        select(ScoringRule).where(
            ScoringRule.target_type == body.target_type,
            ScoringRule.target_id == body.target_id,
            ScoringRule.is_active.is_(True),
        )
    )
    existing = None
    for rule in result.scalars().all():
        if body.target_type == "choice" or same_document(rule.criteria or None, criteria):
            existing = rule
            break

    if existing:
        existing.score_value = body.score_value
        existing.criteria = criteria
        await db.commit()
        logger.info("Updated scoring rule %s -> %s", existing.id, body.score_value)
        return {"ruleId": str(existing.id)}

    rule = ScoringRule(
        target_type=body.target_type,
        target_id=body.target_id,
        score_value=body.score_value,
        criteria=criteria,
        created_by=str(user.id),
    )
    db.add(rule)
    await db.commit()
    logger.info("Created scoring rule %s on %s %s", rule.id, body.target_type, body.target_id)
    return {"ruleId": str(rule.id)}


@router.delete("/rules")
async def delete_rule(
    user: RubricEditor,
    db: Annotated[AsyncSession, Depends(get_db)],
    rule_id: str | None = Query(None, alias="ruleId"),
):
    """Soft delete. Unknown ids succeed too."""
    if not rule_id:
        raise HTTPException(status_code=400, detail="Rule ID is required")
    rule = None
    if _is_uuid(rule_id):
        result = await db.execute(select(ScoringRule).where(ScoringRule.id == rule_id))
        rule = result.scalar_one_or_none()
    if rule is None:
        logger.info("Scoring rule %s not found for deletion; nothing to do", rule_id)
        return {"success": True}
    rule.is_active = False
    await db.commit()
    return {"success": True}
