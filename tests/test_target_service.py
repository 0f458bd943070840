"""
Singleton writes under concurrent changes.

A second writer is simulated with raw SQL on the same connection, which the
ORM identity map does not see.
"""
import pytest
from sqlalchemy import event, text
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from models import SINGLETON_ID, CurrentTarget, db
from services.errors import ConflictError
from services.target_service import get_current_target, set_target


BUMP_TARGET = text("UPDATE current_target SET target_person = :name, version = version + 1 WHERE id = 1")


def _other_writer(name):
    db.session.execute(BUMP_TARGET, {"name": name})


def test_checked_write_sees_changes_behind_the_identity_map(app):
    """A version read before another writer committed is refused."""
    set_target("Alice")
    loaded = db.session.get(CurrentTarget, SINGLETON_ID).version

    _other_writer("Bob")

    with pytest.raises(ConflictError) as info:
        set_target("Carol", expected_version=loaded)
    assert info.value.details == {"current_version": loaded + 1}
    assert get_current_target() == "Bob"


def test_update_is_guarded_by_the_loaded_version(app):
    """Flushing a row whose version moved underneath raises instead of overwriting."""
    set_target("Alice")
    row = db.session.get(CurrentTarget, SINGLETON_ID)

    _other_writer("Bob")
    row.target_person = "Carol"

    with pytest.raises(StaleDataError):
        db.session.flush()
    db.session.rollback()


def test_write_racing_at_flush_time(app):
    """A checked write that loses the race at flush is a conflict; an unchecked one retries."""
    set_target("Alice")
    version = db.session.get(CurrentTarget, SINGLETON_ID).version
    calls = []

    def interleave(session, flush_context, instances):
        if not calls:
            calls.append(True)
            session.connection().execute(BUMP_TARGET, {"name": "Bob"})

    event.listen(Session, "before_flush", interleave)
    try:
        with pytest.raises(ConflictError):
            set_target("Carol", expected_version=version)

        calls.clear()
        assert set_target("Dana") == "Dana"
        assert len(calls) == 1
    finally:
        event.remove(Session, "before_flush", interleave)

    row = db.session.get(CurrentTarget, SINGLETON_ID, populate_existing=True)
    assert row.target_person == "Dana"
    assert row.version == version + 1


def test_unchecked_write_wins_over_an_earlier_change(app):
    """Without an expected version the latest write wins."""
    set_target("Alice")
    _other_writer("Bob")

    set_target("Carol")
    assert get_current_target() == "Carol"
