"""Unit tests for the status mapper."""

import pytest

from screenops.engine.status_mapper import (
    APPLICATION_STATUSES,
    STAGE_CLOSED_LOST,
    STAGE_CLOSED_WON,
    STAGE_QUALIFIED,
    STAGE_SCREENED_OUT,
    map_status,
    merged_status,
    score_summary,
    stage_for_status,
)


def test_closed_rejected_types_are_distinct():
    """Permanent, temporary and approved closures map to different labels."""
    permanent = map_status("closed", "Rejected", "Permanent")
    temporary = map_status("closed", "Rejected", "Temporary")
    approved = map_status("closed", "Approved")
    assert permanent == "Closed - Rejected - Permanent"
    assert len({permanent, temporary, approved}) == 3


def test_case_insensitive():
    """Reason and type are matched case-insensitively."""
    assert map_status("closed", "REJECTED", "temporary") == map_status("closed", "rejected", "Temporary")
    assert stage_for_status("closed", "APPROVED") == stage_for_status("closed", "approved")


def test_rejected_without_type_is_generic():
    """A rejection without a type uses the generic rejected label."""
    assert map_status("closed", "rejected") == "Closed - Rejected"
    assert stage_for_status("closed", "rejected").stage == STAGE_CLOSED_LOST


def test_rejected_type_ignored_for_other_reasons():
    """rejected_type only refines a rejected closure."""
    assert map_status("closed", "approved", "permanent") == "Closed - Approved"


def test_terminal_without_reason_falls_back():
    """closed without a recognised reason maps to the fallback label."""
    assert map_status("closed") == "Pending"
    assert map_status("closed", "mystery") == "Pending"
    assert map_status("screening_completed") == "Screening Completed"


def test_screening_completed_reasons():
    """screening_completed uses its own prefix and stages."""
    assert map_status("screening_completed", "approved") == "Screening Completed - Approved"
    assert stage_for_status("screening_completed", "approved").stage == STAGE_QUALIFIED
    assert stage_for_status("screening_completed", "rejected", "permanent").stage == STAGE_SCREENED_OUT


def test_closed_approved_stage():
    """An approved closure is a won deal."""
    assert stage_for_status("closed", "approved").stage == STAGE_CLOSED_WON


@pytest.mark.parametrize("status", [s for s in APPLICATION_STATUSES if s != "screening_completed"])
def test_every_status_has_a_stage(status):
    """Non-terminal statuses map table-driven to a stage."""
    assert stage_for_status(status) is not None


def test_unknown_status():
    """Unknown statuses map to nothing."""
    assert map_status("archived") is None
    assert stage_for_status("archived") is None


def test_merged_status_and_score_summary():
    """Helper strings used in CRM properties."""
    assert merged_status("closed", "rejected", "permanent") == "closed - rejected - permanent"
    assert merged_status("new") == "new"
    assert score_summary(2, 0, 3) == "2 / 0 / 3"
    assert score_summary(None, None, None) is None
