# FILE: services/ingestion_service.py
"""
Write paths for viewer events.

Each submit validates and moderates locally before touching the database,
appends one immutable row tagged with the current target and returns its id.
The commit is what broadcasts the row to every live view.
"""
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import ChatMessage, Lead, Question, QuestionUpvote, Rating, SignupSettings, db
from services.aggregation import GLOBAL_REACTIONS_TARGET, SCORE_FIELDS, QuickReaction, ScoredRating
from services.errors import BackendError, ConflictError, ModerationBlocked, NotFound, ValidationError
from services.moderation_service import (
    is_blocked_email,
    log_moderation_action,
    moderate_text,
    validate_email,
    validate_job_title,
    validate_name,
    validate_question,
)
from services.target_service import commit_or_raise, get_singleton, require_target


UNIQUE_VIOLATION = "23505"
MAX_FEEDBACK_LENGTH = 1000
MAX_MESSAGE_LENGTH = 500
DEFAULT_AUTHOR = "Anonymous"


def require_registration(registered: bool) -> None:
    """Ratings, chat and questions need a registered viewer while signup is required."""
    if get_singleton(SignupSettings).signup_required and not registered:
        raise ValidationError("Please join the session before taking part.", details={"signup_required": True})


def _parse_score(payload: dict, name: str) -> int:
    value = payload.get(name)
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a whole number from 1 to 5.")
    if value in (None, "", 0, "0"):
        raise ValidationError("Please rate all categories before submitting!", details={"missing": name})
    try:
        score = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a whole number from 1 to 5.")
    if isinstance(value, float) and value != score:
        raise ValidationError(f"{name} must be a whole number from 1 to 5.")
    return score


def _moderated(text: str, target_type: str, session_id: str | None) -> str:
    result = moderate_text(text)
    if result.blocked:
        log_moderation_action(
            "blocked",
            target_type,
            "Content blocked due to inappropriate content",
            metadata={"session_id": session_id, "flags": result.flags},
        )
        raise ModerationBlocked("Message blocked due to inappropriate content")
    if result.was_moderated:
        current_app.logger.info("%s moderated (flags=%s)", target_type, ",".join(result.flags))
    return result.filtered


def _insert(row, action: str) -> str:
    db.session.add(row)
    commit_or_raise(action)
    return row.id


def submit_rating(payload: dict, session_id: str | None = None) -> str:
    target = require_target()
    scores = {name: _parse_score(payload, name) for name in SCORE_FIELDS}

    feedback = (payload.get("feedback") or "").strip() or None
    if feedback and len(feedback) > MAX_FEEDBACK_LENGTH:
        raise ValidationError("Feedback is too long.")
    if feedback:
        feedback = _moderated(feedback, "rating_feedback", session_id)

    agreement = payload.get("agreement") or None
    try:
        rating = ScoredRating(target=target, feedback=feedback, agreement=agreement, **scores)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    return _insert(Rating(**rating.to_row()), "submit rating")


def submit_reaction(payload: dict) -> str:
    emoji = (payload.get("reaction") or payload.get("emoji") or "").strip()
    allowed = current_app.config.get("QUICK_REACTIONS") or []
    if not emoji:
        raise ValidationError("Reaction is required.")
    if allowed and emoji not in allowed:
        raise ValidationError("Unsupported reaction.")
    reaction = QuickReaction(target=GLOBAL_REACTIONS_TARGET, reaction=emoji)
    return _insert(Rating(**reaction.to_row()), "send reaction")


def submit_chat_message(payload: dict, session_id: str | None = None) -> str:
    target = require_target()
    message = (payload.get("message") or "").strip()
    if not message:
        raise ValidationError("Message is required.")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError("Message is too long.")
    first_name = (payload.get("first_name") or "").strip() or DEFAULT_AUTHOR

    filtered = _moderated(message, "chat_message", session_id)
    return _insert(
        ChatMessage(target_person=target, message=filtered, first_name=first_name[:100]),
        "send message",
    )


def submit_question(payload: dict, session_id: str | None = None) -> str:
    target = require_target()
    text = (payload.get("question") or "").strip()
    _check(validate_question(text), session_id, "question")
    author = (payload.get("author_name") or "").strip() or None
    return _insert(
        Question(target_person=target, question=text, author_name=author[:100] if author else None),
        "submit question",
    )


def toggle_upvote(question_id: str, user_id: str) -> dict:
    """Adds or removes the user's upvote; the counter is recounted from the upvote rows."""
    if not user_id:
        raise ValidationError("A session is required to upvote.")
    question = db.session.get(Question, question_id)
    if question is None:
        raise NotFound("Question not found.")

    existing = QuestionUpvote.query.filter_by(question_id=question_id, user_id=user_id).first()
    try:
        if existing is not None:
            db.session.delete(existing)
            upvoted = False
        else:
            db.session.add(QuestionUpvote(question_id=question_id, user_id=user_id))
            upvoted = True
        db.session.flush()
        question.upvotes = (
            db.session.query(func.count(QuestionUpvote.id)).filter_by(question_id=question_id).scalar()
        )
        db.session.commit()
    except IntegrityError:
        # Concurrent double-click from the same session.
        db.session.rollback()
        return {"question_id": question_id, "upvoted": True, "upvotes": question.upvotes}
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Error handling upvote: %s", exc)
        raise BackendError("Failed to update upvote. Please try again.") from exc
    return {"question_id": question_id, "upvoted": upvoted, "upvotes": question.upvotes}


def _check(result, session_id: str | None, target_type: str):
    if result.is_valid:
        return
    if result.blocked:
        log_moderation_action("blocked", target_type, result.reason, metadata={"session_id": session_id})
        raise ModerationBlocked(result.reason)
    raise ValidationError(result.reason)


def _is_unique_violation(exc: IntegrityError) -> bool:
    original = exc.orig
    if getattr(original, "pgcode", None) == UNIQUE_VIOLATION:
        return True
    return "UNIQUE constraint failed" in str(original)


def register_lead(payload: dict, session_id: str | None = None) -> str:
    first_name = (payload.get("first_name") or "").strip()
    last_name = (payload.get("last_name") or "").strip()
    email = (payload.get("email") or "").strip()
    job_title = (payload.get("job_title") or "").strip()

    _check(validate_name(first_name), session_id, "lead_name")
    _check(validate_name(last_name), session_id, "lead_name")
    _check(validate_email(email), session_id, "lead_email")
    _check(validate_job_title(job_title), session_id, "lead_job_title")
    if is_blocked_email(email):
        log_moderation_action("blocked", "lead_email", "Blocked email or domain", metadata={"email": email})
        raise ModerationBlocked("This email address cannot be used to join the session.")

    lead = Lead(
        name=f"{first_name} {last_name}",
        first_name=first_name,
        last_name=last_name,
        email=email,
        job_title=job_title,
    )
    db.session.add(lead)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if _is_unique_violation(exc):
            raise ConflictError("This email has already been used to join the session.") from exc
        current_app.logger.exception("Error submitting lead: %s", exc)
        raise BackendError("Failed to save your information. Please try again.") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Error submitting lead: %s", exc)
        raise BackendError("Failed to save your information. Please try again.") from exc
    return lead.id
