"""
Tests for the change feed: only committed changes are broadcast.
"""
from models import ChatMessage, CurrentTarget, SINGLETON_ID, db
from services.realtime import DELETE, INSERT, UPDATE, ChangeFeed, ChangeEvent, change_feed


def _collect(table, **kwargs):
    received = []
    subscription = change_feed.subscribe(table, received.append, **kwargs)
    return received, subscription


def test_insert_is_published_after_commit(app):
    """The row snapshot arrives once the transaction commits."""
    received, subscription = _collect("chat_messages")
    try:
        message = ChatMessage(target_person="Jordan", message="Hello", first_name="Rivera")
        db.session.add(message)
        db.session.flush()
        assert received == []

        db.session.commit()
        assert len(received) == 1
        assert received[0].event_type == INSERT
        assert received[0].row["message"] == "Hello"
        assert received[0].row["id"] == message.id
    finally:
        subscription.unsubscribe()


def test_rollback_publishes_nothing(app):
    """Rolled-back writes never reach subscribers."""
    received, subscription = _collect("chat_messages")
    try:
        db.session.add(ChatMessage(target_person="Jordan", message="Draft"))
        db.session.flush()
        db.session.rollback()
        db.session.commit()
        assert received == []
    finally:
        subscription.unsubscribe()


def test_update_and_delete_are_published(app):
    """Singleton updates and row deletes carry their event type."""
    updates, target_sub = _collect("current_target", event_type=UPDATE)
    deletes, chat_sub = _collect("chat_messages", event_type=DELETE)
    try:
        row = db.session.get(CurrentTarget, SINGLETON_ID)
        row.target_person = "Jordan"
        db.session.commit()

        message = ChatMessage(target_person="Jordan", message="Bye")
        db.session.add(message)
        db.session.commit()
        db.session.delete(message)
        db.session.commit()

        assert [change.row["target_person"] for change in updates] == ["Jordan"]
        assert [change.event_type for change in deletes] == [DELETE]
    finally:
        target_sub.unsubscribe()
        chat_sub.unsubscribe()


def test_match_filter():
    """Subscriptions can filter on row values."""
    feed = ChangeFeed()
    received = []
    feed.subscribe("questions", received.append, match={"target_person": "Jordan"})

    feed.publish(ChangeEvent("questions", INSERT, {"id": "q1", "target_person": "Rivera"}))
    feed.publish(ChangeEvent("questions", INSERT, {"id": "q2", "target_person": "Jordan"}))
    assert [change.row["id"] for change in received] == ["q2"]


def test_failing_subscriber_does_not_block_others():
    """One callback raising still lets the rest receive the change."""
    feed = ChangeFeed()
    received = []

    def broken(_change):
        raise RuntimeError("boom")

    feed.subscribe("ratings", broken)
    feed.subscribe("ratings", received.append)
    feed.publish(ChangeEvent("ratings", INSERT, {"id": "r1"}))
    assert len(received) == 1
