# FILE: services/live_service.py
import json
import queue
import threading

from flask import current_app

from models import ChatMessage, DisplaySettings, Question, Rating, TimerState
from services.live_view import LiveView
from services.realtime import change_feed
from services.target_service import get_current_target, get_singleton


class Presence:
    """Open display connections, counted per target they currently show."""

    def __init__(self):
        self._lock = threading.Lock()
        self._views: set[LiveView] = set()

    def join(self, view: LiveView):
        with self._lock:
            self._views.add(view)

    def leave(self, view: LiveView):
        with self._lock:
            self._views.discard(view)

    def count(self, target: str | None = None) -> int:
        # A following view counts toward whatever target it shows right now.
        with self._lock:
            views = list(self._views)
        if target is None:
            return len(views)
        return sum(1 for view in views if view.target.get() == target)


presence = Presence()


def format_sse_event(event_type: str, data: dict) -> str:
    """
    Format data as SSE event.

    event: event_name
    data: {"type": "event_name", ...}
    """
    data_with_type = {"type": event_type, **data}
    return f"event: {event_type}\ndata: {json.dumps(data_with_type, default=str)}\n\n"


def load_view(view: LiveView):
    """
    Fetches current rows into the view.

    A following view first re-reads the target register; rows already
    delivered live are skipped by the view's id dedup.
    """
    if view.follow_target:
        view.target.set(get_current_target())
    target = view.target.get()

    ratings, questions, messages = [], [], []
    if target:
        ratings = [row.to_dict() for row in Rating.query.filter(
            Rating.target_person == target, Rating.overall.isnot(None)
        ).all()]
        questions = [row.to_dict() for row in Question.query.filter_by(
            target_person=target, is_answered=False
        ).all()]
        messages = [row.to_dict() for row in ChatMessage.query.filter_by(target_person=target)
                    .order_by(ChatMessage.created_at.desc()).limit(view.chat.limit).all()]

    settings = {
        "display_settings": get_singleton(DisplaySettings).to_dict(),
        "timer": get_singleton(TimerState).to_dict(),
    }
    view.seed(ratings=ratings, questions=questions, messages=messages, settings=settings)
    return view


def open_view(follow_target: bool = True, target: str | None = None, on_change=None) -> LiveView:
    view = LiveView(
        target=target,
        follow_target=follow_target,
        ttls=current_app.config.get("OVERLAY_TTLS"),
        recent_limit=current_app.config.get("RECENT_RATINGS_LIMIT", 50),
        on_change=on_change,
    )
    # Subscribe before fetching so nothing committed in between is missed.
    view.attach(change_feed)
    try:
        load_view(view)
    except Exception:
        view.detach()
        raise
    return view


def iter_display_events(view: LiveView, updates: queue.Queue, keepalive: float = 15.0):
    """Yields SSE frames for one display connection until the client goes away."""
    presence.join(view)
    try:
        yield format_sse_event("snapshot", view.snapshot())
        while True:
            try:
                change = updates.get(timeout=keepalive)
            except queue.Empty:
                yield ": keepalive\n\n"
                continue
            if view.stale:
                load_view(view)
            yield format_sse_event(
                "snapshot",
                {**view.snapshot(), "change": {"table": change.table, "event_type": change.event_type}},
            )
    finally:
        presence.leave(view)
        view.detach()
        current_app.logger.info("Display stream closed")


def stream_display(follow_target: bool = True, target: str | None = None):
    updates = queue.Queue()
    view = open_view(follow_target, target, on_change=lambda _view, change: updates.put(change))
    keepalive = current_app.config.get("SSE_KEEPALIVE_SECONDS", 15)
    return iter_display_events(view, updates, keepalive)
