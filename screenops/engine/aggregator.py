"""Application score aggregation."""

from collections.abc import Iterable

from screenops.schemas.scoring import ResponseEvaluation, ScoreTally


def aggregate(evaluations: Iterable[ResponseEvaluation]) -> ScoreTally:
    """Sum colour counts across every evaluated response of an application."""
    total = ScoreTally()
    for evaluation in evaluations:
        total = total.merge(evaluation.tally)
    return total


def calculated_score(tally: ScoreTally) -> int:
    """Single sortable number: greens add three, reds subtract three, yellows subtract one."""
    return tally.green * 3 - tally.red * 3 - tally.yellow


def group_rules_by_target(rules: Iterable[dict]) -> dict[str, list[dict]]:
    """Index active rules by the field/choice version they target."""
    grouped: dict[str, list[dict]] = {}
    for rule in rules:
        if not rule.get("is_active", True):
            continue
        grouped.setdefault(str(rule["target_id"]), []).append(rule)
    return grouped
