# FILE: models.py
from datetime import date, datetime
from uuid import uuid4

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import declared_attr


db = SQLAlchemy()

SINGLETON_ID = 1


def _new_id() -> str:
    return uuid4().hex


class RowMixin:
    # Row snapshot used by the change feed and the JSON API.
    def to_dict(self) -> dict:
        row = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            row[column.name] = value
        return row


class SingletonMixin(RowMixin):
    version = db.Column(db.Integer, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @declared_attr
    def __mapper_args__(cls):
        # Every UPDATE carries "AND version = :loaded"; a lost race raises StaleDataError.
        return {"version_id_col": cls.__table__.c.version}


class CurrentTarget(SingletonMixin, db.Model):
    __tablename__ = "current_target"

    id = db.Column(db.Integer, primary_key=True)
    target_person = db.Column(db.String(200), nullable=True)


class Rating(RowMixin, db.Model):
    __tablename__ = "ratings"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    target_person = db.Column(db.String(200), nullable=False, index=True)
    overall = db.Column(db.Integer, nullable=True)
    presentation = db.Column(db.Integer, nullable=True)
    layout = db.Column(db.Integer, nullable=True)
    content = db.Column(db.Integer, nullable=True)
    feedback = db.Column(db.Text, nullable=True)
    agreement = db.Column(db.String(16), nullable=True)
    reaction = db.Column(db.String(16), nullable=True)
    category = db.Column(db.String(32), nullable=False, default="resume")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class ChatMessage(RowMixin, db.Model):
    __tablename__ = "chat_messages"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    target_person = db.Column(db.String(200), nullable=False, index=True)
    first_name = db.Column(db.String(100), nullable=True)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class Question(RowMixin, db.Model):
    __tablename__ = "questions"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    target_person = db.Column(db.String(200), nullable=False, index=True)
    question = db.Column(db.Text, nullable=False)
    author_name = db.Column(db.String(100), nullable=True)
    upvotes = db.Column(db.Integer, nullable=False, default=0)
    is_answered = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class QuestionUpvote(RowMixin, db.Model):
    __tablename__ = "question_upvotes"
    __table_args__ = (db.UniqueConstraint("question_id", "user_id", name="uq_question_upvote"),)

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    question_id = db.Column(db.String(32), db.ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class Resume(RowMixin, db.Model):
    __tablename__ = "resumes"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    name = db.Column(db.String(200), nullable=False)
    file_path = db.Column(db.String(500), nullable=False)
    file_type = db.Column(db.String(100), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class ResumeAnalysis(RowMixin, db.Model):
    __tablename__ = "resume_analysis"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    resume_id = db.Column(db.String(32), db.ForeignKey("resumes.id", ondelete="CASCADE"), nullable=True, index=True)
    ats_score = db.Column(db.Integer, nullable=True)
    formatting_score = db.Column(db.Integer, nullable=True)
    skills_extracted = db.Column(db.JSON, nullable=True)
    keywords_found = db.Column(db.JSON, nullable=True)
    suggestions = db.Column(db.JSON, nullable=True)
    analysis_data = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class Lead(RowMixin, db.Model):
    __tablename__ = "leads"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    name = db.Column(db.String(200), nullable=False)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(320), nullable=False, unique=True)
    job_title = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class BlockedEmail(RowMixin, db.Model):
    __tablename__ = "blocked_emails"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(320), nullable=True, index=True)
    domain = db.Column(db.String(255), nullable=True, index=True)


class ModerationLog(RowMixin, db.Model):
    __tablename__ = "moderation_log"

    id = db.Column(db.Integer, primary_key=True)
    action_type = db.Column(db.String(50), nullable=False)
    target_id = db.Column(db.String(64), nullable=True)
    target_type = db.Column(db.String(50), nullable=True)
    reason = db.Column(db.Text, nullable=True)
    moderator = db.Column(db.String(50), nullable=False, default="system")
    # "metadata" is reserved on declarative models.
    details = db.Column("metadata", db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class TimeSlot(RowMixin, db.Model):
    __tablename__ = "time_slots"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)
    is_available = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class Booking(RowMixin, db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    # One booking per slot.
    time_slot_id = db.Column(
        db.String(32), db.ForeignKey("time_slots.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    lead_id = db.Column(db.String(32), db.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="confirmed")
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class DisplaySettings(SingletonMixin, db.Model):
    __tablename__ = "display_settings"

    id = db.Column(db.Integer, primary_key=True)
    results_hidden = db.Column(db.Boolean, nullable=False, default=False)
    orientation = db.Column(db.String(16), nullable=False, default="landscape")


class SchedulingSettings(SingletonMixin, db.Model):
    __tablename__ = "scheduling_settings"

    id = db.Column(db.Integer, primary_key=True)
    scheduling_enabled = db.Column(db.Boolean, nullable=False, default=False)


class SignupSettings(SingletonMixin, db.Model):
    __tablename__ = "signup_settings"

    id = db.Column(db.Integer, primary_key=True)
    signup_required = db.Column(db.Boolean, nullable=False, default=False)


class AtsSettings(SingletonMixin, db.Model):
    __tablename__ = "ats_settings"

    id = db.Column(db.Integer, primary_key=True)
    ats_enabled = db.Column(db.Boolean, nullable=False, default=True)


class TimerState(SingletonMixin, db.Model):
    __tablename__ = "timer"

    id = db.Column(db.Integer, primary_key=True)
    minutes = db.Column(db.Integer, nullable=False, default=5)
    seconds = db.Column(db.Integer, nullable=False, default=0)
    is_running = db.Column(db.Boolean, nullable=False, default=False)
    started_at = db.Column(db.DateTime, nullable=True)
    paused_at = db.Column(db.DateTime, nullable=True)


SINGLETON_MODELS = (
    CurrentTarget,
    DisplaySettings,
    SchedulingSettings,
    SignupSettings,
    AtsSettings,
    TimerState,
)
