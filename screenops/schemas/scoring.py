"""Scoring schemas - tallies, matched rules, rule admin payloads."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

COLOURS = ("red", "yellow", "green")
SCORE_VALUES = ("red", "yellow", "green", "na")
TARGET_TYPES = ("field", "choice")


class ScoreTally(BaseModel):
    """Red/yellow/green counts."""

    red: int = 0
    yellow: int = 0
    green: int = 0

    def add(self, score_value: str) -> None:
        if score_value in COLOURS:
            setattr(self, score_value, getattr(self, score_value) + 1)

    def merge(self, other: "ScoreTally") -> "ScoreTally":
        return ScoreTally(
            red=self.red + other.red,
            yellow=self.yellow + other.yellow,
            green=self.green + other.green,
        )

    @property
    def colour(self) -> str:
        """Worst colour present, or na."""
        for colour in COLOURS:
            if getattr(self, colour) > 0:
                return colour
        return "na"

    @property
    def total(self) -> int:
        return self.red + self.yellow + self.green


class MatchedRule(BaseModel):
    """Rule that matched a response."""

    rule_id: str
    target_type: str
    target_id: str
    score_value: str


class ResponseEvaluation(BaseModel):
    """Result of evaluating one field response."""

    matched: list[MatchedRule] = Field(default_factory=list)
    tally: ScoreTally = Field(default_factory=ScoreTally)

    @property
    def score(self) -> str:
        return self.tally.colour


class ScoringSummary(BaseModel):
    """Outcome of a scoring pass over one application."""

    application_id: str
    red: int
    yellow: int
    green: int
    calculated_score: int
    responses_scored: int
    responses_failed: int = 0


class UpsertScoringRuleRequest(BaseModel):
    """POST /v1/scoring/rules request."""

    model_config = ConfigDict(populate_by_name=True)

    target_type: str = Field(alias="targetType")
    target_id: str = Field(alias="targetId")
    score_value: str = Field(alias="scoreValue")
    criteria: dict[str, Any] | None = None


class ScoringRuleOut(BaseModel):
    """Scoring rule as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    target_type: str
    target_id: str
    score_value: str
    criteria: dict[str, Any] | None = None
    is_active: bool
