# FILE: services/rate_limit_service.py
from uuid import uuid4

from flask import current_app, session
from flask_limiter import Limiter

from services.errors import ModerationBlocked


def viewer_id() -> str:
    # Anonymous per-session id; keys rate limits and upvotes.
    if "viewer_id" not in session:
        session["viewer_id"] = uuid4().hex
    return session["viewer_id"]


limiter = Limiter(key_func=viewer_id)


def limit_for(action_type: str):
    """Limit string for an action from RATE_LIMITS, e.g. "3 per 5 minutes"."""

    def _limit() -> str:
        max_attempts, window_minutes = current_app.config["RATE_LIMITS"][action_type]
        return f"{max_attempts} per {window_minutes} minutes"

    return _limit


def counts_against_limit(response) -> bool:
    # Malformed submissions are free to correct; stored and blocked ones count.
    return response.status_code < 400 or response.status_code == ModerationBlocked.status_code


def rate_limited(action_type: str):
    return limiter.limit(limit_for(action_type), deduct_when=counts_against_limit)
