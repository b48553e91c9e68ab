"""Database models."""

from screenops.models.application import Application, FieldResponse, Participant
from screenops.models.form import ChoiceVersion, FieldVersion, Form
from screenops.models.lock import ProcessingLock
from screenops.models.scoring import ScoringRule
from screenops.models.screening import Screening, ScreeningMeeting
from screenops.models.user import UserProfile

__all__ = [
    "Application",
    "ChoiceVersion",
    "FieldResponse",
    "FieldVersion",
    "Form",
    "Participant",
    "ProcessingLock",
    "ScoringRule",
    "Screening",
    "ScreeningMeeting",
    "UserProfile",
]
