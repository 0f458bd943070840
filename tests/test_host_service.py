"""
Tests for host controls that are easier to check below the HTTP layer.
"""
from datetime import datetime, timedelta

import pytest

from models import Rating, db
from services.errors import ConflictError, ValidationError
from services.host_service import (
    clear_events,
    leads_csv,
    pause_timer,
    start_timer,
    timer_remaining,
    update_settings,
)
from services.ingestion_service import submit_rating, submit_reaction
from services.target_service import set_target


T0 = datetime(2026, 1, 1, 12, 0, 0)


def test_pause_stores_remaining_time(app):
    """Pausing 40 seconds into 2:30 leaves 1:50 on the clock."""
    start_timer(2, 30, now=T0)
    row = pause_timer(now=T0 + timedelta(seconds=40))

    assert row.is_running is False
    assert (row.minutes, row.seconds) == (1, 50)
    assert timer_remaining(row) == 110


def test_resume_continues_from_paused_time(app):
    """Starting without a duration keeps the stored remaining time."""
    start_timer(1, 0, now=T0)
    pause_timer(now=T0 + timedelta(seconds=15))
    row = start_timer(now=T0 + timedelta(minutes=5))

    assert timer_remaining(row, T0 + timedelta(minutes=5, seconds=5)) == 40
    assert timer_remaining(row, T0 + timedelta(hours=1)) == 0


def test_invalid_timer_duration(app):
    """Seconds must stay below a minute."""
    with pytest.raises(ValidationError):
        start_timer(1, 75)


def test_clear_reactions_keeps_ratings(app):
    """Reactions are cleared for the global tag and the target; ratings stay."""
    set_target("Jordan Rivera")
    submit_rating({"overall": 5, "presentation": 4, "layout": 4, "content": 5})
    submit_reaction({"reaction": "👏"})
    submit_reaction({"reaction": "🔥"})

    assert clear_events("reactions") == 2
    remaining = Rating.query.all()
    assert len(remaining) == 1
    assert remaining[0].overall == 5


def test_clear_all(app):
    """Everything for the target goes, in one commit."""
    set_target("Jordan Rivera")
    submit_rating({"overall": 5, "presentation": 4, "layout": 4, "content": 5})
    submit_reaction({"reaction": "👏"})

    assert clear_events("all") == 2
    assert db.session.query(Rating).count() == 0


def test_settings_version_check(app):
    """A stale expected_version is refused; a current one wins."""
    row = update_settings("signup", {"signup_required": "true"})
    assert row.signup_required is True

    with pytest.raises(ConflictError):
        update_settings("signup", {"signup_required": False}, expected_version=row.version - 1)
    assert update_settings("signup", {"signup_required": False}, expected_version=row.version).signup_required is False


def test_empty_leads_csv(app):
    """The export always carries its header."""
    assert leads_csv().strip() == "first_name,last_name,email,job_title,created_at"
