#!/usr/bin/env python3
"""
Score a sample submission in memory (no DB/API needed).
Prints the per-field colours, the red/yellow/green tally and the CRM summary string.
Usage: python scripts/score_sample_submission.py [submission.json]
"""

import json
import sys
from pathlib import Path

# Add project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from screenops.engine.aggregator import aggregate, calculated_score, group_rules_by_target
from screenops.engine.evaluator import evaluate_response
from screenops.engine.status_mapper import score_summary

# Same rubric as the seed's demo form, with ids standing in for version rows
FIELDS = {
    "fld_meds": {"type": "yes_no", "title": "Psychiatric medication"},
    "fld_heart": {"type": "yes_no", "title": "Heart conditions"},
    "fld_support": {"type": "multiple_select", "title": "Supports at home"},
    "fld_ready": {"type": "opinion_scale", "title": "Readiness"},
}
CHOICES = {
    "fld_support": [
        {"id": "ch_therapist", "choice_label": "Therapist"},
        {"id": "ch_family", "choice_label": "Family"},
        {"id": "ch_community", "choice_label": "Community group"},
        {"id": "ch_none", "choice_label": "None"},
    ],
}
RULES = [
    {"id": "r1", "target_type": "field", "target_id": "fld_meds", "score_value": "red",
     "criteria": {"condition_type": "equals", "answer": "yes"}},
    {"id": "r2", "target_type": "field", "target_id": "fld_heart", "score_value": "red",
     "criteria": {"condition_type": "equals", "answer": "yes"}},
    {"id": "r3", "target_type": "choice", "target_id": "ch_therapist", "score_value": "green"},
    {"id": "r4", "target_type": "choice", "target_id": "ch_community", "score_value": "green"},
    {"id": "r5", "target_type": "choice", "target_id": "ch_none", "score_value": "yellow"},
    {"id": "r6", "target_type": "field", "target_id": "fld_ready", "score_value": "yellow",
     "criteria": {"condition_type": "equals", "condition_value": "1"}},
]

SAMPLE = {
    "fld_meds": "yes",
    "fld_heart": "yes",
    "fld_support": ["Community group", "Therapist"],
    "fld_ready": 4,
}


def main():
    answers = SAMPLE
    if len(sys.argv) > 1:
        path = Path(sys.argv[1])
        if not path.exists():
            print(f"Error: {path} not found")
            sys.exit(1)
        with open(path) as f:
            answers = json.load(f)

    field_rules = group_rules_by_target(r for r in RULES if r["target_type"] == "field")
    choice_rules = group_rules_by_target(r for r in RULES if r["target_type"] == "choice")

    evaluations = []
    for field_id, value in answers.items():
        field = FIELDS.get(field_id)
        if field is None:
            print(f"  {field_id}: not part of the rubric, skipped")
            continue
        evaluation = evaluate_response(
            field["type"], value, field_rules.get(field_id, []), CHOICES.get(field_id), choice_rules
        )
        evaluations.append(evaluation)
        matched = ", ".join(m.rule_id for m in evaluation.matched) or "-"
        print(f"  {field['title']}: {value!r} -> {evaluation.score} (rules: {matched})")

    tally = aggregate(evaluations)
    print(f"Tally: red={tally.red} yellow={tally.yellow} green={tally.green}")
    print(f"Calculated score: {calculated_score(tally)}")
    print(f"CRM application_score: {score_summary(tally.red, tally.yellow, tally.green)}")


if __name__ == "__main__":
    main()
