"""Application scoring pass - evaluates every response and persists the tally."""

import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from screenops.config import settings
from screenops.engine.aggregator import aggregate, calculated_score, group_rules_by_target
from screenops.engine.evaluator import evaluate_response
from screenops.exceptions import EntityNotFoundError, ProcessingError
from screenops.models import Application
from screenops.schemas.scoring import ResponseEvaluation, ScoringSummary
from screenops.storage.repositories import (
    get_active_rules_for_targets,
    get_application,
    get_choices_for_field_versions,
    get_field_responses,
    get_field_versions_by_ids,
    rule_as_dict,
)
from screenops.utils.clock import utcnow
from screenops.utils.retry import retry_once

logger = logging.getLogger(__name__)


async def score_application(
    db: AsyncSession, application_id: str, legacy_yes_no: bool | None = None
) -> ScoringSummary:
    """
    Score all field responses of an application against the rules in force
    for their field/choice versions.

    A response that fails to evaluate is logged, scored `na` and skipped.
    Counts are written with one UPDATE so they replace, never increment.
    """
    if legacy_yes_no is None:
        legacy_yes_no = settings.scoring_legacy_yes_no

    application = await get_application(db, application_id)
    if not application:
        raise EntityNotFoundError("Application", application_id)

    responses = await get_field_responses(db, application_id)
    field_versions = {
        str(fv.id): fv
        for fv in await get_field_versions_by_ids(db, list({str(r.field_version_id) for r in responses}))
    }
    choices_by_field: dict[str, list[dict]] = {}
    for choice in await get_choices_for_field_versions(db, list(field_versions)):
        choices_by_field.setdefault(str(choice.field_version_id), []).append(
            {"id": str(choice.id), "choice_label": choice.choice_label}
        )

    target_ids = list(field_versions) + [c["id"] for cs in choices_by_field.values() for c in cs]
    rules = [rule_as_dict(r) for r in await get_active_rules_for_targets(db, target_ids)]
    field_rules = group_rules_by_target(r for r in rules if r["target_type"] == "field")
    choice_rules = group_rules_by_target(r for r in rules if r["target_type"] == "choice")

    evaluations: list[ResponseEvaluation] = []
    failed = 0
    for response in responses:
        field_version = field_versions.get(str(response.field_version_id))
        if field_version is None:
            logger.warning("Field version %s missing for response %s", response.field_version_id, response.id)
            response.score = "na"
            continue
        try:
            evaluation = evaluate_response(
                field_version.field_type,
                response.response_value,
                field_rules.get(str(field_version.id), []),
                choices_by_field.get(str(field_version.id), []),
                choice_rules,
                legacy_yes_no=legacy_yes_no,
            )
        except Exception:
            logger.exception("Error evaluating response %s of application %s", response.id, application_id)
            failed += 1
            response.score = "na"
            continue
        response.score = evaluation.score
        evaluations.append(evaluation)

    tally = aggregate(evaluations)
    total = calculated_score(tally)
    await db.execute(
        update(Application)
        .where(Application.id == application_id)
        .values(
            red_count=tally.red,
            yellow_count=tally.yellow,
            green_count=tally.green,
            calculated_score=total,
            updated_at=utcnow(),
        )
    )
    await db.flush()

    logger.info(
        "Scored application %s: red=%d yellow=%d green=%d score=%d",
        application_id,
        tally.red,
        tally.yellow,
        tally.green,
        total,
    )
    return ScoringSummary(
        application_id=str(application_id),
        red=tally.red,
        yellow=tally.yellow,
        green=tally.green,
        calculated_score=total,
        responses_scored=len(evaluations),
        responses_failed=failed,
    )


async def rescore_application(db: AsyncSession, application_id: str, delay: float | None = None) -> ScoringSummary:
    """Staff-triggered rescore: one retry after `delay`, then ProcessingError."""
    if await get_application(db, application_id) is None:
        raise EntityNotFoundError("Application", application_id)

    async def attempt() -> ScoringSummary:
        summary = await score_application(db, application_id)
        await db.commit()
        return summary

    delay = settings.webhook_retry_delay_seconds if delay is None else delay
    try:
        return await retry_once(attempt, delay, f"Rescoring {application_id}", before_retry=db.rollback)
    except Exception as exc:
        await db.rollback()
        raise ProcessingError(f"Scoring failed for application {application_id}: {exc}") from exc
