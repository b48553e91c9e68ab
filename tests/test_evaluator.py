"""Unit tests for the field response evaluator and score aggregator."""

from screenops.engine.aggregator import aggregate, calculated_score, group_rules_by_target
from screenops.engine.evaluator import evaluate_response, field_rule_matches, normalize_selection
from screenops.storage.repositories import DEFAULT_PAGE_SIZE, normalize_page


def _rule(rule_id, target_id, score, criteria=None, target_type="field"):
    return {
        "id": rule_id,
        "target_type": target_type,
        "target_id": target_id,
        "score_value": score,
        "criteria": criteria,
        "is_active": True,
    }


def test_text_equals_and_contains():
    """short_text/long_text match on equals and contains."""
    assert field_rule_matches("short_text", "Yes please", {"condition_type": "equals", "condition_value": "Yes please"})
    assert not field_rule_matches("short_text", "Yes please", {"condition_type": "equals", "condition_value": "Yes"})
    assert field_rule_matches("long_text", "I take lithium daily", {"condition_type": "contains", "condition_value": "lithium"})
    assert not field_rule_matches("long_text", "nothing", {"condition_type": "contains", "condition_value": "lithium"})


def test_multiple_choice_equals_selected_label():
    """multiple_choice compares the single selected label."""
    crit = {"condition_type": "equals", "condition_value": "Weekly"}
    assert field_rule_matches("multiple_choice", "Weekly", crit)
    assert field_rule_matches("multiple_choice", ["Weekly"], crit)
    assert not field_rule_matches("multiple_choice", "Daily", crit)


def test_multiple_select_contains():
    """multiple_select matches when the condition value is in the selection."""
    crit = {"condition_type": "contains", "condition_value": "B"}
    assert field_rule_matches("multiple_select", ["A", "B"], crit)
    assert field_rule_matches("multiple_select", "B", crit)
    assert not field_rule_matches("multiple_select", ["A"], crit)


def test_opinion_scale_compares_stringified_number():
    """opinion_scale numbers are compared as strings."""
    crit = {"condition_type": "equals", "condition_value": "3"}
    assert field_rule_matches("opinion_scale", 3, crit)
    assert field_rule_matches("opinion_scale", 3.0, crit)
    assert not field_rule_matches("opinion_scale", 4, crit)


def test_yes_no_explicit_answer():
    """yes_no rules with an explicit answer use boolean equality."""
    crit = {"condition_type": "equals", "answer": "yes"}
    assert field_rule_matches("yes_no", "yes", crit)
    assert field_rule_matches("yes_no", True, crit)
    assert not field_rule_matches("yes_no", "no", crit)


def test_yes_no_without_answer_uses_serialized_criteria():
    """Criteria without an explicit answer fall back to the substring match."""
    crit = {"label": "flag if yes"}
    assert field_rule_matches("yes_no", "yes", crit)
    assert not field_rule_matches("yes_no", "no", crit)


def test_yes_no_legacy_mode():
    """Legacy mode matches 'no' against criteria that merely mention 'no'."""
    crit = {"condition_type": "equals", "answer": "yes", "note": "no history"}
    assert not field_rule_matches("yes_no", "no", crit)
    assert field_rule_matches("yes_no", "no", crit, legacy_yes_no=True)


def test_criteria_as_json_string():
    """Criteria stored as a JSON string are parsed."""
    assert field_rule_matches("short_text", "abc", '{"condition_type": "equals", "condition_value": "abc"}')
    assert not field_rule_matches("short_text", "abc", "not json")


def test_unknown_field_type_skipped():
    """Unsupported field types never match."""
    result = evaluate_response("file_upload", "x.pdf", [_rule("r1", "f1", "red", {"condition_type": "equals", "condition_value": "x.pdf"})])
    assert result.matched == []
    assert result.score == "na"


def test_choice_rule_counts_on_selection_regardless_of_order():
    """A choice rule on 'B' contributes exactly one match for ['A', 'B'] and ['B', 'A']."""
    choices = [{"id": "cA", "choice_label": "A"}, {"id": "cB", "choice_label": "B"}]
    choice_rules = group_rules_by_target([_rule("rB", "cB", "green", target_type="choice")])
    for value in (["A", "B"], ["B", "A"]):
        result = evaluate_response("multiple_select", value, [], choices, choice_rules)
        assert len(result.matched) == 1
        assert result.tally.green == 1


def test_choice_rule_ignores_criteria():
    """Selecting the choice alone triggers its rule."""
    choices = [{"id": "c1", "choice_label": "Daily"}]
    rule = _rule("r1", "c1", "yellow", {"condition_type": "equals", "condition_value": "something else"}, "choice")
    result = evaluate_response("multiple_choice", "Daily", [], choices, group_rules_by_target([rule]))
    assert result.tally.yellow == 1


def test_na_rules_match_but_do_not_count():
    """Rules tagged na are reported but add nothing to the tally."""
    rule = _rule("r1", "f1", "na", {"condition_type": "equals", "condition_value": "x"})
    result = evaluate_response("short_text", "x", [rule])
    assert len(result.matched) == 1
    assert result.tally.total == 0
    assert result.score == "na"


def test_inactive_rules_ignored():
    """Inactive rules never match."""
    rule = _rule("r1", "f1", "red", {"condition_type": "equals", "condition_value": "x"})
    rule["is_active"] = False
    assert evaluate_response("short_text", "x", [rule]).matched == []


def test_response_score_is_worst_colour():
    """A response's own score is red over yellow over green."""
    rules = [
        _rule("r1", "f1", "green", {"condition_type": "contains", "condition_value": "a"}),
        _rule("r2", "f1", "yellow", {"condition_type": "contains", "condition_value": "b"}),
    ]
    assert evaluate_response("short_text", "ab", rules).score == "yellow"


def test_normalize_selection():
    """Selections normalize to a list of strings."""
    assert normalize_selection(None) == []
    assert normalize_selection("A") == ["A"]
    assert normalize_selection(["A", None, 2]) == ["A", "2"]


def test_scenario_two_yes_no_reds_and_two_greens():
    """Two yes_no reds and a multi-select with two green choices tally red:2 yellow:0 green:2."""
    red_yes = {"condition_type": "equals", "answer": "yes"}
    field_rules = group_rules_by_target(
        [_rule("r1", "meds", "red", red_yes), _rule("r2", "heart", "red", red_yes)]
    )
    choices = [
        {"id": "c1", "choice_label": "Therapist"},
        {"id": "c2", "choice_label": "Community"},
        {"id": "c3", "choice_label": "None"},
    ]
    choice_rules = group_rules_by_target(
        [
            _rule("g1", "c1", "green", target_type="choice"),
            _rule("g2", "c2", "green", target_type="choice"),
            _rule("y1", "c3", "yellow", target_type="choice"),
        ]
    )
    evaluations = [
        evaluate_response("yes_no", "yes", field_rules["meds"]),
        evaluate_response("yes_no", "yes", field_rules["heart"]),
        evaluate_response("multiple_select", ["Community", "Therapist"], [], choices, choice_rules),
    ]
    tally = aggregate(evaluations)
    assert (tally.red, tally.yellow, tally.green) == (2, 0, 2)
    assert calculated_score(tally) == 0


def test_aggregate_is_idempotent():
    """Aggregating the same evaluations twice gives identical counts."""
    rule = _rule("r1", "f1", "yellow", {"condition_type": "equals", "condition_value": "x"})
    evaluations = [evaluate_response("short_text", "x", [rule]) for _ in range(3)]
    first = aggregate(evaluations)
    second = aggregate(evaluations)
    assert first == second
    assert first.yellow == 3


def test_calculated_score_weights():
    """Greens add three, reds subtract three, yellows subtract one."""
    from screenops.schemas.scoring import ScoreTally

    assert calculated_score(ScoreTally(red=1, yellow=2, green=4)) == 12 - 3 - 2


def test_normalize_page_bounds():
    """Page sizes clamp to [1, 100]; pages start at 1; missing size uses the default."""
    assert normalize_page(0, 0) == (1, 1)
    assert normalize_page(2, 500) == (2, 100)
    assert normalize_page(None, None) == (1, DEFAULT_PAGE_SIZE)
