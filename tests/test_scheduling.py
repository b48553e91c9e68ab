"""Unit tests for Calendly booking parsing and application matching."""

from datetime import datetime, timedelta, timezone

from screenops.services.scheduling import Candidate, choose_application, is_screening_booking, parse_booking

NOW = datetime(2025, 7, 8, 15, 0, tzinfo=timezone.utc)
WINDOW = timedelta(minutes=10)


def _candidates(*specs):
    """(id, minutes before NOW, has_meeting), newest first."""
    return [Candidate(app_id, NOW - timedelta(minutes=ago), has) for app_id, ago, has in specs]


def test_prefers_newest_without_meeting():
    """Strategy 1: the newest of the latest five with no meeting."""
    candidates = _candidates(("a3", 1, True), ("a2", 60, False), ("a1", 120, False))
    assert choose_application(candidates, NOW, WINDOW) == ("a2", "no_meeting")


def test_falls_back_to_timestamp_proximity():
    """Strategy 2: every candidate booked; pick the one created within the window."""
    candidates = _candidates(("a3", 30, True), ("a2", 5, True), ("a1", 200, True))
    candidates.sort(key=lambda c: c.created_at, reverse=True)
    assert choose_application(candidates, NOW, WINDOW) == ("a2", "timestamp")


def test_falls_back_to_latest():
    """Strategy 3: nothing close in time, take the latest."""
    candidates = _candidates(("a2", 60, True), ("a1", 600, True))
    assert choose_application(candidates, NOW, WINDOW) == ("a2", "latest")


def test_only_latest_five_considered_for_missing_meeting():
    """A meeting-less sixth application is not picked by strategy 1."""
    specs = [(f"a{i}", i * 100, True) for i in range(1, 6)] + [("old", 900, False)]
    assert choose_application(_candidates(*specs), None, WINDOW) == ("a1", "latest")


def test_no_candidates():
    """No applications, no match."""
    assert choose_application([], NOW, WINDOW) is None


def test_naive_timestamps_are_treated_as_utc():
    """SQLite returns naive datetimes; they still compare."""
    candidates = [Candidate("a1", (NOW - timedelta(minutes=3)).replace(tzinfo=None), True)]
    assert choose_application(candidates, NOW, WINDOW) == ("a1", "timestamp")


def test_parse_booking_reads_invitee_host_and_location():
    """Invitee, host membership and join URL are pulled from the payload."""
    body = {
        "event": "invitee.created",
        "created_at": "2025-07-08T15:00:00.000000Z",
        "payload": {
            "email": "Ada@Example.com",
            "name": "Ada Lovelace",
            "scheduled_event": {
                "name": "Application Screening Call",
                "start_time": "2025-07-10T14:00:00Z",
                "end_time": "2025-07-10T14:30:00Z",
                "location": {"join_url": "https://zoom.example/j/1"},
                "event_memberships": [{"user_name": "Sam Screener"}, {"user_name": "Lee Lead", "user_email": "lee@example.com"}],
            },
        },
    }
    booking = parse_booking(body)
    assert booking.invitee_email == "ada@example.com"
    assert booking.host_name == "Lee Lead"
    assert booking.host_email == "lee@example.com"
    assert booking.join_url == "https://zoom.example/j/1"
    assert booking.booked_at == NOW
    assert booking.event_start == datetime(2025, 7, 10, 14, 0, tzinfo=timezone.utc)
    assert is_screening_booking(booking)


def test_parse_booking_host_falls_back_to_creator():
    """Without memberships or hosts the event creator is the host."""
    body = {
        "payload": {
            "email": "x@example.com",
            "scheduled_event": {"name": "Intro chat", "created_by": {"name": "Pat", "email": "pat@example.com"}},
        }
    }
    booking = parse_booking(body)
    assert (booking.host_name, booking.host_email) == ("Pat", "pat@example.com")
    assert not is_screening_booking(booking)
