# FILE: services/live_view.py
import logging
import random
import threading
import time

from services.aggregation import (
    GLOBAL_REACTIONS_TARGET,
    ChatFeed,
    Overlay,
    QuestionBoard,
    QuickReaction,
    ScoreAggregator,
    ScoredRating,
    TargetCell,
    parse_rating,
)
from services.realtime import DELETE, INSERT, UPDATE, ChangeEvent


logger = logging.getLogger(__name__)

DEFAULT_TTLS = {
    "reaction": 3.0,
    "reaction_dedup": 4.0,
    "chat": 8.0,
    "feedback": 10.0,
    "question": 12.0,
}
CLEAR_KINDS = ("ratings", "reactions", "questions", "chat", "all")
SETTINGS_TABLES = ("display_settings", "timer")


class LiveView:
    """
    One display/viewer client's reducer over the change feed.

    The view owns all of its state; nothing is shared between views. When it
    follows the target register, a target change resets every surface and
    marks the view stale so its owner re-fetches rows for the new target.
    A pinned view (follow_target=False) keeps its target for its lifetime.
    """

    TABLES = ("ratings", "chat_messages", "questions", "current_target") + SETTINGS_TABLES

    def __init__(self, target: str | None = None, follow_target: bool = True, ttls: dict | None = None,
                 recent_limit: int = 50, clock=time.monotonic, rng: random.Random | None = None,
                 on_change=None):
        ttls = {**DEFAULT_TTLS, **(ttls or {})}
        rng = rng or random.Random()
        self.target = TargetCell(target)
        self.follow_target = follow_target
        self.on_change = on_change
        self.stale = False
        self.settings: dict[str, dict] = {}

        self.scores = ScoreAggregator(recent_limit=recent_limit, clock=clock)
        self.chat = ChatFeed(clock=clock)
        self.questions = QuestionBoard(clock=clock)
        self.reactions = Overlay(ttls["reaction"], (10.0, 90.0), (20.0, 80.0),
                                 dedup_ttl=ttls["reaction_dedup"], clock=clock, rng=rng)
        self.chat_bubbles = Overlay(ttls["chat"], (20.0, 80.0), (30.0, 70.0), clock=clock, rng=rng)
        self.feedback = Overlay(ttls["feedback"], (25.0, 75.0), (25.0, 75.0), clock=clock, rng=rng)
        self.floating_questions = Overlay(ttls["question"], (25.0, 75.0), (20.0, 60.0), clock=clock, rng=rng)

        self._lock = threading.RLock()
        self._subscriptions = []

    # --- wiring ---

    def attach(self, feed):
        for table in self.TABLES:
            self._subscriptions.append(feed.subscribe(table, self.handle))
        return self

    def detach(self):
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    @property
    def attached(self) -> bool:
        return bool(self._subscriptions)

    # --- delivery ---

    def handle(self, change: ChangeEvent):
        with self._lock:
            handler = getattr(self, f"_on_{change.table}", None)
            if handler is None:
                return
            handler(change)
        if self.on_change is not None:
            self.on_change(self, change)

    def _on_current_target(self, change: ChangeEvent):
        if change.event_type != UPDATE or not self.follow_target:
            return
        if self.target.set(change.row.get("target_person")):
            logger.info("Target changed to %r; resetting live view", self.target.get())
            self._reset()
            self.stale = True

    def _on_ratings(self, change: ChangeEvent):
        if change.event_type == DELETE:
            rating_id = change.row.get("id")
            self.scores.remove(rating_id)
            self.feedback.discard(rating_id)
            return
        if change.event_type != INSERT:
            return
        event = parse_rating(change.row)
        if isinstance(event, QuickReaction):
            if event.target == GLOBAL_REACTIONS_TARGET or self.target.matches(event.target):
                self.reactions.push(event.id, {"emoji": event.reaction})
        elif isinstance(event, ScoredRating) and self.target.matches(event.target):
            if self.scores.add(event) and event.feedback and event.feedback.strip():
                self.feedback.push(event.id, {"feedback": event.feedback})

    def _on_chat_messages(self, change: ChangeEvent):
        row = change.row
        if change.event_type == DELETE:
            self.chat.remove(row.get("id"))
            self.chat_bubbles.discard(row.get("id"))
        elif change.event_type == INSERT and self.target.matches(row.get("target_person")):
            if self.chat.add(row):
                self.chat_bubbles.push(row["id"], {"message": row.get("message"), "first_name": row.get("first_name")})

    def _on_questions(self, change: ChangeEvent):
        row = change.row
        if change.event_type == DELETE:
            self.questions.remove(row.get("id"))
            self.floating_questions.discard(row.get("id"))
            return
        if not self.target.matches(row.get("target_person")):
            return
        if change.event_type == INSERT:
            if self.questions.add(row):
                self.floating_questions.push(
                    row["id"],
                    {"question": row.get("question"), "author_name": row.get("author_name"), "upvotes": row.get("upvotes")},
                )
        elif change.event_type == UPDATE:
            self.questions.update(row)
            if row.get("is_answered"):
                self.floating_questions.discard(row.get("id"))

    def _on_display_settings(self, change: ChangeEvent):
        if change.event_type != DELETE:
            self.settings["display_settings"] = change.row

    def _on_timer(self, change: ChangeEvent):
        if change.event_type != DELETE:
            self.settings["timer"] = change.row

    # --- fetch / clear ---

    def seed(self, ratings=(), questions=(), messages=(), settings: dict | None = None):
        """Folds fetched rows in without creating overlay items."""
        with self._lock:
            for row in ratings:
                event = parse_rating(row)
                if isinstance(event, ScoredRating) and self.target.matches(event.target):
                    self.scores.add(event)
            for row in questions:
                if self.target.matches(row.get("target_person")):
                    self.questions.add(row)
            for row in messages:
                if self.target.matches(row.get("target_person")):
                    self.chat.add(row)
            if settings:
                self.settings.update(settings)
            self.stale = False

    def clear(self, kind: str):
        if kind not in CLEAR_KINDS:
            raise ValueError(f"Unknown clear kind: {kind}")
        with self._lock:
            if kind in ("ratings", "all"):
                self.scores.clear()
                self.feedback.clear()
            if kind in ("reactions", "all"):
                self.reactions.clear()
            if kind in ("questions", "all"):
                self.questions.clear()
                self.floating_questions.clear()
            if kind in ("chat", "all"):
                self.chat.clear()
                self.chat_bubbles.clear()

    def _reset(self):
        self.scores.reset()
        self.chat.reset()
        self.questions.reset()
        self.reactions.clear()
        self.feedback.clear()
        self.chat_bubbles.clear()
        self.floating_questions.clear()

    # --- rendering ---

    def snapshot(self) -> dict:
        with self._lock:
            display = self.settings.get("display_settings") or {}
            return {
                "target": self.target.get(),
                "results_hidden": bool(display.get("results_hidden", False)),
                "orientation": display.get("orientation", "landscape"),
                "timer": self.settings.get("timer"),
                "stats": self.scores.stats(),
                "recent_ratings": [_rating_dict(r) for r in self.scores.recent()],
                "questions": self.questions.items(),
                "chat": self.chat.items(),
                "overlays": {
                    "reactions": [item.to_dict() for item in self.reactions.active()],
                    "chat": [item.to_dict() for item in self.chat_bubbles.active()],
                    "feedback": [item.to_dict() for item in self.feedback.active()],
                    "questions": [item.to_dict() for item in self.floating_questions.active()],
                },
            }


def _rating_dict(rating: ScoredRating) -> dict:
    return {
        "id": rating.id,
        "overall": rating.overall,
        "presentation": rating.presentation,
        "layout": rating.layout,
        "content": rating.content,
        "feedback": rating.feedback,
        "agreement": rating.agreement,
        "created_at": rating.created_at,
    }
