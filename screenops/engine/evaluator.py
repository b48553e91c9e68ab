"""Field response evaluator - matches one answer against field and choice rules."""

import json
import logging
from typing import Any

from screenops.schemas.scoring import MatchedRule, ResponseEvaluation
from screenops.utils.canonical import canonical_json

logger = logging.getLogger(__name__)

TEXT_TYPES = frozenset({"short_text", "long_text"})
SCORED_TYPES = TEXT_TYPES | {"multiple_choice", "multiple_select", "opinion_scale", "yes_no"}

_TRUE_WORDS = {"yes", "true", "y", "1"}
_FALSE_WORDS = {"no", "false", "n", "0"}


def parse_criteria(criteria: Any) -> dict:
    """Criteria may arrive as a dict or as a JSON string."""
    if criteria is None:
        return {}
    if isinstance(criteria, str):
        try:
            criteria = json.loads(criteria)
        except ValueError:
            logger.warning("Unparseable scoring criteria: %r", criteria)
            return {}
    return criteria if isinstance(criteria, dict) else {}


def as_text(value: Any) -> str:
    """Stringify a stored answer the way it is compared against criteria."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_selection(value: Any) -> list[str]:
    """Multi-select answers are compared as a list of labels."""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [as_text(v) for v in value if v is not None and v != ""]
    return [as_text(value)]


def _single(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return as_text(value[0]) if value else ""
    return as_text(value)


def _as_bool(value: Any) -> bool | None:
    word = as_text(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    return None


def _yes_no_matches(response_value: Any, criteria: dict, legacy: bool) -> bool:
    answer = as_text(response_value).strip().lower()
    if not answer:
        return False
    expected = criteria.get("answer", criteria.get("condition_value"))
    if legacy or expected is None:
        # Substring of the serialized criteria; only used when no explicit answer is stored.
        return answer in canonical_json(criteria).lower()
    given, wanted = _as_bool(answer), _as_bool(expected)
    if given is None or wanted is None:
        return answer == as_text(expected).strip().lower()
    return given == wanted


def field_rule_matches(
    field_type: str,
    response_value: Any,
    criteria: Any,
    legacy_yes_no: bool = False,
) -> bool:
    """Evaluate one field-level rule's criteria against a response."""
    crit = parse_criteria(criteria)
    if field_type == "yes_no":
        return _yes_no_matches(response_value, crit, legacy_yes_no)

    condition = str(crit.get("condition_type") or "").lower()
    expected = crit.get("condition_value")
    if expected is None or expected == "":
        return False
    expected_text = as_text(expected)

    if field_type in TEXT_TYPES:
        text = as_text(response_value)
        if condition == "equals":
            return text == expected_text
        if condition == "contains":
            return expected_text in text
        return False
    if field_type == "multiple_choice":
        return condition == "equals" and _single(response_value) == expected_text
    if field_type == "multiple_select":
        return condition == "contains" and expected_text in normalize_selection(response_value)
    if field_type == "opinion_scale":
        return condition == "equals" and _single(response_value) == expected_text
    return False


def _selected_choices(field_type: str, response_value: Any, choices: list[dict]) -> list[dict]:
    """Choices whose label equals the answer, or is included in a multi-select answer."""
    if field_type == "multiple_select" or isinstance(response_value, (list, tuple)):
        labels = set(normalize_selection(response_value))
        return [c for c in choices if c.get("choice_label") in labels]
    label = as_text(response_value)
    if not label:
        return []
    return [c for c in choices if c.get("choice_label") == label]


def evaluate_response(
    field_type: str,
    response_value: Any,
    field_rules: list[dict],
    choices: list[dict] | None = None,
    choice_rules: dict[str, list[dict]] | None = None,
    legacy_yes_no: bool = False,
) -> ResponseEvaluation:
    """
    Evaluate one answer against the rules of its field version.

    Field-level rules are checked by field type. Choice-level rules count for
    every selected choice without any further condition. Rules tagged `na`
    are reported as matched but never counted.
    """
    result = ResponseEvaluation()
    if field_type not in SCORED_TYPES:
        logger.info("Skipping scoring for unsupported field type %s", field_type)
        return result

    for rule in field_rules:
        if not rule.get("is_active", True):
            continue
        if field_rule_matches(field_type, response_value, rule.get("criteria"), legacy_yes_no):
            _record(result, rule)

    rules_by_choice = choice_rules or {}
    for choice in _selected_choices(field_type, response_value, choices or []):
        for rule in rules_by_choice.get(str(choice["id"]), []):
            if rule.get("is_active", True):
                _record(result, rule)

    return result


def _record(result: ResponseEvaluation, rule: dict) -> None:
    result.matched.append(
        MatchedRule(
            rule_id=str(rule.get("id", "")),
            target_type=rule.get("target_type", ""),
            target_id=str(rule.get("target_id", "")),
            score_value=rule.get("score_value", "na"),
        )
    )
    result.tally.add(rule.get("score_value", "na"))
