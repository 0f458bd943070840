# FILE: services/realtime.py
"""
In-process change feed.

Committed row changes are captured from SQLAlchemy session events and
broadcast to subscribers as ChangeEvent(table, event_type, row). Rows are
plain dict snapshots (model.to_dict()). Changes from a rolled-back
transaction are never published.

Only ORM-level changes are seen: bulk query.delete()/update() bypass the
flush and must not be used for broadcast tables.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from sqlalchemy import event
from sqlalchemy.orm import Session


logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ALL_EVENTS = "*"

_PENDING_KEY = "live_review_pending_changes"


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    row: dict


@dataclass(eq=False)
class Subscription:
    table: str
    callback: Callable[[ChangeEvent], None]
    event_type: str = ALL_EVENTS
    match: dict = field(default_factory=dict)
    feed: "ChangeFeed | None" = None
    active: bool = True

    def accepts(self, change: ChangeEvent) -> bool:
        if not self.active or change.table != self.table:
            return False
        if self.event_type != ALL_EVENTS and change.event_type != self.event_type:
            return False
        return all(change.row.get(key) == value for key, value in self.match.items())

    def unsubscribe(self):
        if self.feed is not None:
            self.feed.unsubscribe(self)
        self.active = False


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[Subscription] = []

    def init_app(self, app):
        app.extensions["change_feed"] = self

    def subscribe(self, table: str, callback, event_type: str = ALL_EVENTS, match: dict | None = None) -> Subscription:
        subscription = Subscription(
            table=table,
            callback=callback,
            event_type=event_type,
            match=dict(match or {}),
            feed=self,
        )
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription):
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        subscription.active = False

    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, change: ChangeEvent):
        with self._lock:
            targets = [s for s in self._subscriptions if s.accepts(change)]
        for subscription in targets:
            try:
                subscription.callback(change)
            except Exception:
                # One broken subscriber must not stop delivery to the others.
                logger.exception("Change feed subscriber failed on %s %s", change.table, change.event_type)


change_feed = ChangeFeed()


def _snapshot(instance) -> dict | None:
    to_dict = getattr(instance, "to_dict", None)
    if to_dict is None or not hasattr(instance, "__tablename__"):
        return None
    return to_dict()


@event.listens_for(Session, "before_flush")
def _collect_deletes(session, flush_context, instances):
    # Snapshot while the rows still exist; expired attributes load here.
    pending = session.info.setdefault(_PENDING_KEY, [])
    for instance in session.deleted:
        row = _snapshot(instance)
        if row is not None:
            pending.append(ChangeEvent(instance.__tablename__, DELETE, row))


@event.listens_for(Session, "after_flush")
def _collect_changes(session, flush_context):
    pending = session.info.setdefault(_PENDING_KEY, [])
    for instance in session.new:
        row = _snapshot(instance)
        if row is not None:
            pending.append(ChangeEvent(instance.__tablename__, INSERT, row))
    for instance in session.dirty:
        if not session.is_modified(instance, include_collections=False):
            continue
        row = _snapshot(instance)
        if row is not None:
            pending.append(ChangeEvent(instance.__tablename__, UPDATE, row))


@event.listens_for(Session, "after_commit")
def _publish_changes(session):
    pending = session.info.pop(_PENDING_KEY, [])
    for change in pending:
        change_feed.publish(change)


@event.listens_for(Session, "after_soft_rollback")
def _discard_changes(session, previous_transaction):
    session.info.pop(_PENDING_KEY, None)
