# FILE: services/aggregation.py
"""
Reducers for the live display.

Every surface folds change-feed rows into its own state and tolerates
duplicate and reordered delivery: state is keyed by event id, removed ids are
remembered for TOMBSTONE_TTL seconds so a replayed insert cannot bring them
back, and every statistic is order-independent (integer sums, counts, sorted
views).
"""
import logging
import math
import random
import threading
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass


logger = logging.getLogger(__name__)

GLOBAL_REACTIONS_TARGET = "GLOBAL_REACTIONS"
SCORE_FIELDS = ("overall", "presentation", "layout", "content")
AGREEMENTS = ("agree", "disagree")
MIN_SCORE = 1
MAX_SCORE = 5
# Seconds a removed id stays tombstoned against replayed inserts.
TOMBSTONE_TTL = 300.0


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


class TargetCell:
    """Latest-value cell for the current target, read at delivery time."""

    def __init__(self, value: str | None = None):
        self._value = value
        self._lock = threading.Lock()

    def get(self) -> str | None:
        with self._lock:
            return self._value

    def set(self, value: str | None) -> bool:
        with self._lock:
            changed = value != self._value
            self._value = value
            return changed

    def matches(self, target: str | None) -> bool:
        current = self.get()
        return current is not None and target == current


# --- Rating variants -------------------------------------------------------


@dataclass(frozen=True)
class ScoredRating:
    target: str
    overall: int
    presentation: int
    layout: int
    content: int
    feedback: str | None = None
    agreement: str | None = None
    id: str | None = None
    created_at: str | None = None

    def __post_init__(self):
        if not self.target:
            raise ValueError("target is required")
        for name in SCORE_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer")
            if not MIN_SCORE <= value <= MAX_SCORE:
                raise ValueError(f"{name} must be between {MIN_SCORE} and {MAX_SCORE}")
        if self.agreement is not None and self.agreement not in AGREEMENTS:
            raise ValueError("agreement must be 'agree', 'disagree' or empty")

    def to_row(self) -> dict:
        row = {
            "target_person": self.target,
            "overall": self.overall,
            "presentation": self.presentation,
            "layout": self.layout,
            "content": self.content,
            "feedback": self.feedback,
            "agreement": self.agreement,
            "reaction": None,
        }
        if self.id:
            row["id"] = self.id
        return row


@dataclass(frozen=True)
class QuickReaction:
    target: str
    reaction: str
    id: str | None = None
    created_at: str | None = None

    def __post_init__(self):
        if not self.target:
            raise ValueError("target is required")
        if not self.reaction:
            raise ValueError("reaction is required")

    def to_row(self) -> dict:
        row = {field: None for field in SCORE_FIELDS}
        row.update(
            {
                "target_person": self.target,
                "reaction": self.reaction,
                "feedback": None,
                "agreement": None,
            }
        )
        if self.id:
            row["id"] = self.id
        return row


def parse_rating(row: dict) -> ScoredRating | QuickReaction | None:
    """Returns the variant a ratings row represents, or None for a mixed or broken row."""
    scores = [row.get(name) for name in SCORE_FIELDS]
    reaction = row.get("reaction")
    try:
        if all(score is None for score in scores):
            if reaction:
                return QuickReaction(
                    target=row.get("target_person"),
                    reaction=reaction,
                    id=row.get("id"),
                    created_at=row.get("created_at"),
                )
            return None
        if reaction:
            return None
        return ScoredRating(
            target=row.get("target_person"),
            overall=row.get("overall"),
            presentation=row.get("presentation"),
            layout=row.get("layout"),
            content=row.get("content"),
            feedback=row.get("feedback"),
            agreement=row.get("agreement"),
            id=row.get("id"),
            created_at=row.get("created_at"),
        )
    except ValueError as exc:
        logger.debug("Ignoring malformed rating row %s: %s", row.get("id"), exc)
        return None


def is_quick_reaction(row: dict) -> bool:
    return isinstance(parse_rating(row), QuickReaction)


def is_real_rating(row: dict) -> bool:
    overall = row.get("overall")
    return overall is not None and overall > 0 and isinstance(parse_rating(row), ScoredRating)


# --- Time-windowed dedup and overlays --------------------------------------


class ExpiringIdSet:
    """Set of event ids where each id is forgotten ttl seconds after it was added."""

    def __init__(self, ttl: float, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._expires: OrderedDict[str, float] = OrderedDict()

    def _evict(self):
        now = self._clock()
        while self._expires:
            event_id, expires_at = next(iter(self._expires.items()))
            if expires_at > now:
                break
            self._expires.popitem(last=False)

    def add(self, event_id: str) -> bool:
        """Adds the id; False when it is already present (a duplicate)."""
        self._evict()
        if event_id in self._expires:
            return False
        self._expires[event_id] = self._clock() + self.ttl
        return True

    def discard(self, event_id: str):
        self._expires.pop(event_id, None)

    def clear(self):
        self._expires.clear()

    def __contains__(self, event_id) -> bool:
        self._evict()
        return event_id in self._expires

    def __len__(self) -> int:
        self._evict()
        return len(self._expires)


@dataclass
class OverlayItem:
    id: str
    payload: dict
    x: float
    y: float
    expires_at: float

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("expires_at")
        return data


class Overlay:
    """Ephemeral on-screen items with a random position and a fixed lifetime."""

    def __init__(self, ttl: float, x_range=(10.0, 90.0), y_range=(20.0, 80.0), dedup_ttl: float | None = None,
                 clock=time.monotonic, rng: random.Random | None = None):
        self.ttl = ttl
        self.x_range = x_range
        self.y_range = y_range
        self._clock = clock
        self._rng = rng or random.Random()
        self._seen = ExpiringIdSet(dedup_ttl if dedup_ttl is not None else ttl, clock)
        self._items: OrderedDict[str, OverlayItem] = OrderedDict()

    def push(self, item_id: str, payload: dict) -> OverlayItem | None:
        if not self._seen.add(item_id):
            return None
        x_low, x_high = self.x_range
        y_low, y_high = self.y_range
        item = OverlayItem(
            id=item_id,
            payload=payload,
            x=x_low + self._rng.random() * (x_high - x_low),
            y=y_low + self._rng.random() * (y_high - y_low),
            expires_at=self._clock() + self.ttl,
        )
        self._items[item_id] = item
        return item

    def active(self) -> list[OverlayItem]:
        now = self._clock()
        for item_id in [i for i, item in self._items.items() if item.expires_at <= now]:
            del self._items[item_id]
        return list(self._items.values())

    def discard(self, item_id: str):
        self._items.pop(item_id, None)

    def clear(self):
        # Seen ids are kept until they expire so a replayed insert stays hidden.
        self._items.clear()


# --- Keyed surfaces --------------------------------------------------------


class KeyedSurface:
    """Rows keyed by id; removed ids are tombstoned for tombstone_ttl seconds or until reset()."""

    def __init__(self, tombstone_ttl: float = TOMBSTONE_TTL, clock=time.monotonic):
        self._rows: dict[str, object] = {}
        self._removed = ExpiringIdSet(tombstone_ttl, clock)

    def _accept(self, event_id: str, value) -> bool:
        if not event_id or event_id in self._removed or event_id in self._rows:
            return False
        self._rows[event_id] = value
        return True

    def remove(self, event_id: str) -> bool:
        self._removed.add(event_id)
        return self._rows.pop(event_id, None) is not None

    def clear(self):
        for event_id in self._rows:
            self._removed.add(event_id)
        self._rows.clear()

    def reset(self):
        self._rows.clear()
        self._removed.clear()

    def __contains__(self, event_id) -> bool:
        return event_id in self._rows

    def __len__(self) -> int:
        return len(self._rows)


def _newest_first(values, key):
    return sorted(values, key=key, reverse=True)


class ScoreAggregator(KeyedSurface):
    """Running statistics over the scored ratings of one target."""

    def __init__(self, recent_limit: int = 50, **kwargs):
        super().__init__(**kwargs)
        self.recent_limit = recent_limit

    def add(self, rating: ScoredRating) -> bool:
        return self._accept(rating.id, rating)

    @property
    def vote_count(self) -> int:
        return len(self._rows)

    def _sum(self, name: str) -> int:
        return sum(getattr(rating, name) for rating in self._rows.values())

    def average(self) -> float | None:
        if not self._rows:
            return None
        return self._sum("overall") / len(self._rows)

    def category_averages(self) -> dict:
        if not self._rows:
            return {name: None for name in SCORE_FIELDS}
        count = len(self._rows)
        return {name: self._sum(name) / count for name in SCORE_FIELDS}

    def agreement_counts(self) -> dict:
        counts = {name: 0 for name in AGREEMENTS}
        for rating in self._rows.values():
            if rating.agreement in counts:
                counts[rating.agreement] += 1
        counts["total"] = counts["agree"] + counts["disagree"]
        return counts

    def recent(self) -> list[ScoredRating]:
        ordered = _newest_first(self._rows.values(), key=lambda r: (r.created_at or "", r.id))
        return ordered[: self.recent_limit]

    def stats(self) -> dict:
        average = self.average()
        return {
            "vote_count": self.vote_count,
            "average": average,
            "average_display": round_half_up(average, 1) if average is not None else None,
            "stars": int(round_half_up(average)) if average is not None else 0,
            "categories": self.category_averages(),
            "agreement": self.agreement_counts(),
        }


class ChatFeed(KeyedSurface):
    def __init__(self, limit: int = 100, **kwargs):
        super().__init__(**kwargs)
        self.limit = limit

    def add(self, row: dict) -> bool:
        return self._accept(row.get("id"), row)

    def items(self) -> list[dict]:
        ordered = _newest_first(self._rows.values(), key=lambda r: (r.get("created_at") or "", r.get("id")))
        return ordered[: self.limit]


class QuestionBoard(KeyedSurface):
    """Open questions, most upvoted first, then newest first."""

    def add(self, row: dict) -> bool:
        if row.get("is_answered"):
            return False
        return self._accept(row.get("id"), row)

    def update(self, row: dict) -> bool:
        question_id = row.get("id")
        if question_id in self._removed:
            return False
        if row.get("is_answered"):
            return self.remove(question_id)
        if question_id in self._rows:
            self._rows[question_id] = row
            return True
        return self.add(row)

    def items(self) -> list[dict]:
        return _newest_first(
            self._rows.values(),
            key=lambda r: (r.get("upvotes") or 0, r.get("created_at") or "", r.get("id")),
        )
