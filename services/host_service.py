# FILE: services/host_service.py
from datetime import datetime
from uuid import uuid4

import pandas as pd
from flask import current_app

from models import (
    AtsSettings,
    ChatMessage,
    DisplaySettings,
    Lead,
    ModerationLog,
    Question,
    QuestionUpvote,
    Rating,
    Resume,
    SchedulingSettings,
    SignupSettings,
    TimerState,
    db,
)
from services.aggregation import GLOBAL_REACTIONS_TARGET
from services.errors import NotFound, ValidationError
from services.live_view import CLEAR_KINDS
from services.storage_service import EXTENSIONS, RESUME_BUCKET, get_public_url, remove, upload, validate_upload
from services.target_service import commit_or_raise, get_singleton, require_target, set_target, update_singleton


ORIENTATIONS = ("landscape", "portrait")
LEAD_COLUMNS = ["first_name", "last_name", "email", "job_title", "created_at"]

def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# settings name -> (model, field -> coercion)
SETTINGS = {
    "display": (DisplaySettings, {"results_hidden": _as_bool, "orientation": str}),
    "scheduling": (SchedulingSettings, {"scheduling_enabled": _as_bool}),
    "signup": (SignupSettings, {"signup_required": _as_bool}),
    "ats": (AtsSettings, {"ats_enabled": _as_bool}),
}


# --- clearing ---

def _rows_to_clear(kind: str, target: str) -> list:
    rows = []
    if kind in ("ratings", "all"):
        rows += Rating.query.filter(Rating.target_person == target, Rating.overall.isnot(None)).all()
    if kind in ("reactions", "all"):
        rows += Rating.query.filter(
            Rating.target_person.in_([target, GLOBAL_REACTIONS_TARGET]),
            Rating.overall.is_(None),
            Rating.reaction.isnot(None),
        ).all()
    if kind in ("questions", "all"):
        questions = Question.query.filter_by(target_person=target).all()
        ids = [question.id for question in questions]
        if ids:
            rows += QuestionUpvote.query.filter(QuestionUpvote.question_id.in_(ids)).all()
        rows += questions
    if kind in ("chat", "all"):
        rows += ChatMessage.query.filter_by(target_person=target).all()
    return rows


def clear_events(kind: str) -> int:
    """
    Deletes the current target's rows of one kind.

    Rows are deleted one by one through the session so that every delete is
    broadcast; views that already cleared locally treat them as no-ops.
    """
    if kind not in CLEAR_KINDS:
        raise ValidationError(f"Unknown clear kind: {kind}")
    target = require_target()
    rows = _rows_to_clear(kind, target)
    for row in rows:
        db.session.delete(row)
    commit_or_raise(f"clear {kind}")
    current_app.logger.info("Cleared %d %s row(s) for %s", len(rows), kind, target)
    return len(rows)


# --- questions ---

def _get_question(question_id: str) -> Question:
    question = db.session.get(Question, question_id)
    if question is None:
        raise NotFound("Question not found.")
    return question


def answer_question(question_id: str, answered: bool = True) -> dict:
    question = _get_question(question_id)
    question.is_answered = bool(answered)
    commit_or_raise("update question")
    return question.to_dict()


def delete_question(question_id: str):
    question = _get_question(question_id)
    for upvote in QuestionUpvote.query.filter_by(question_id=question_id).all():
        db.session.delete(upvote)
    db.session.delete(question)
    commit_or_raise("delete question")


# --- settings ---

def get_settings(name: str):
    if name not in SETTINGS:
        raise NotFound(f"Unknown settings: {name}")
    return get_singleton(SETTINGS[name][0])


def update_settings(name: str, patch: dict, expected_version: int | None = None):
    if name not in SETTINGS:
        raise NotFound(f"Unknown settings: {name}")
    model, fields = SETTINGS[name]
    unknown = set(patch) - set(fields)
    if unknown:
        raise ValidationError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
    values = {key: fields[key](value) for key, value in patch.items()}
    if values.get("orientation") not in (None,) + ORIENTATIONS:
        raise ValidationError("Orientation must be landscape or portrait.")
    row = update_singleton(model, values, expected_version)
    current_app.logger.info("Updated %s settings: %s", name, values)
    return row


# --- timer ---

def _parse_duration(minutes, seconds) -> tuple[int, int]:
    try:
        minutes, seconds = int(minutes), int(seconds)
    except (TypeError, ValueError):
        raise ValidationError("Timer minutes and seconds must be whole numbers.")
    if minutes < 0 or not 0 <= seconds < 60:
        raise ValidationError("Timer duration is out of range.")
    return minutes, seconds


def timer_remaining(row: TimerState, now: datetime | None = None) -> int:
    total = row.minutes * 60 + row.seconds
    if not row.is_running or row.started_at is None:
        return total
    elapsed = int(((now or datetime.utcnow()) - row.started_at).total_seconds())
    return max(0, total - elapsed)


def timer_state(row: TimerState, now: datetime | None = None) -> dict:
    return {**row.to_dict(), "remaining_seconds": timer_remaining(row, now)}


def start_timer(minutes=None, seconds=None, expected_version: int | None = None, now: datetime | None = None):
    patch = {"is_running": True, "started_at": now or datetime.utcnow(), "paused_at": None}
    if minutes is not None or seconds is not None:
        patch["minutes"], patch["seconds"] = _parse_duration(minutes or 0, seconds or 0)
    return update_singleton(TimerState, patch, expected_version)


def pause_timer(expected_version: int | None = None, now: datetime | None = None):
    now = now or datetime.utcnow()
    row = get_singleton(TimerState)
    if not row.is_running:
        return row
    remaining = timer_remaining(row, now)
    return update_singleton(
        TimerState,
        {
            "minutes": remaining // 60,
            "seconds": remaining % 60,
            "is_running": False,
            "started_at": None,
            "paused_at": now,
        },
        expected_version,
    )


def reset_timer(minutes=5, seconds=0, expected_version: int | None = None):
    minutes, seconds = _parse_duration(minutes, seconds)
    return update_singleton(
        TimerState,
        {"minutes": minutes, "seconds": seconds, "is_running": False, "started_at": None, "paused_at": None},
        expected_version,
    )


# --- resumes ---

def upload_resume(name: str, file_bytes: bytes, mime_type: str) -> Resume:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Resume name is required.")
    validate_upload(file_bytes, mime_type)

    key = f"{uuid4().hex}{EXTENSIONS[mime_type]}"
    upload(RESUME_BUCKET, key, file_bytes)
    resume = Resume(name=name[:200], file_path=key, file_type=mime_type, file_size=len(file_bytes))
    db.session.add(resume)
    commit_or_raise("save resume")
    current_app.logger.info("Uploaded resume %s as %s", name, key)
    return resume


def resume_dict(resume: Resume) -> dict:
    return {**resume.to_dict(), "url": get_public_url(RESUME_BUCKET, resume.file_path)}


def list_resumes() -> list[dict]:
    return [resume_dict(resume) for resume in Resume.query.order_by(Resume.created_at.desc()).all()]


def _get_resume(resume_id: str) -> Resume:
    resume = db.session.get(Resume, resume_id)
    if resume is None:
        raise NotFound("Resume not found.")
    return resume


def select_resume(resume_id: str, expected_version: int | None = None) -> str:
    return set_target(_get_resume(resume_id).name, expected_version)


def delete_resume(resume_id: str):
    resume = _get_resume(resume_id)
    key = resume.file_path
    db.session.delete(resume)
    commit_or_raise("delete resume")
    remove(RESUME_BUCKET, key)


# --- leads / moderation ---

def list_leads() -> list[dict]:
    return [lead.to_dict() for lead in Lead.query.order_by(Lead.created_at.desc()).all()]


def leads_csv() -> str:
    frame = pd.DataFrame(list_leads(), columns=LEAD_COLUMNS)
    return frame.to_csv(index=False)


def list_moderation_log(limit: int = 100) -> list[dict]:
    rows = ModerationLog.query.order_by(ModerationLog.created_at.desc()).limit(limit).all()
    return [row.to_dict() for row in rows]
