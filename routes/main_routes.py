# FILE: routes/main_routes.py
from flask import Blueprint, jsonify, request, session

from models import CurrentTarget, Question, TimerState
from services.host_service import SETTINGS, get_settings, timer_state
from services.ingestion_service import (
    register_lead,
    require_registration,
    submit_chat_message,
    submit_question,
    submit_rating,
    submit_reaction,
    toggle_upvote,
)
from services.rate_limit_service import rate_limited, viewer_id
from services.scheduling_service import book_slot, list_available_slots
from services.target_service import get_current_target, get_singleton


main_bp = Blueprint("main", __name__, url_prefix="/api")


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict() or {}


@main_bp.route("/session", methods=["GET"])
def viewer_session():
    return jsonify({"viewer_id": viewer_id(), "registered": bool(session.get("registered"))})


@main_bp.route("/target", methods=["GET"])
def current_target():
    row = get_singleton(CurrentTarget)
    return jsonify({"target": row.target_person, "version": row.version})


@main_bp.route("/ratings", methods=["POST"])
@rate_limited("rating")
def create_rating():
    require_registration(session.get("registered"))
    rating_id = submit_rating(_payload(), session_id=viewer_id())
    return jsonify({"id": rating_id}), 201


@main_bp.route("/reactions", methods=["POST"])
@rate_limited("reaction")
def create_reaction():
    reaction_id = submit_reaction(_payload())
    return jsonify({"id": reaction_id}), 201


@main_bp.route("/chat", methods=["POST"])
@rate_limited("chat_message")
def create_chat_message():
    require_registration(session.get("registered"))
    message_id = submit_chat_message(_payload(), session_id=viewer_id())
    return jsonify({"id": message_id}), 201


@main_bp.route("/questions", methods=["GET"])
def list_questions():
    target = get_current_target()
    if not target:
        return jsonify({"target": None, "questions": []})
    rows = (
        Question.query.filter_by(target_person=target, is_answered=False)
        .order_by(Question.upvotes.desc(), Question.created_at.desc())
        .all()
    )
    return jsonify({"target": target, "questions": [row.to_dict() for row in rows]})


@main_bp.route("/questions", methods=["POST"])
@rate_limited("question")
def create_question():
    require_registration(session.get("registered"))
    question_id = submit_question(_payload(), session_id=viewer_id())
    return jsonify({"id": question_id}), 201


@main_bp.route("/questions/<string:question_id>/upvote", methods=["POST"])
@rate_limited("upvote")
def upvote_question(question_id: str):
    return jsonify(toggle_upvote(question_id, viewer_id()))


@main_bp.route("/leads", methods=["POST"])
@rate_limited("registration")
def create_lead():
    lead_id = register_lead(_payload(), session_id=viewer_id())
    session["registered"] = True
    session["lead_id"] = lead_id
    return jsonify({"id": lead_id}), 201


@main_bp.route("/slots", methods=["GET"])
def available_slots():
    return jsonify({"slots": list_available_slots()})


@main_bp.route("/bookings", methods=["POST"])
@rate_limited("booking")
def create_booking():
    payload = _payload()
    booking = book_slot(payload.get("time_slot_id") or "", session.get("lead_id"))
    return jsonify(booking), 201


@main_bp.route("/settings", methods=["GET"])
def public_settings():
    return jsonify({name: get_settings(name).to_dict() for name in SETTINGS})


@main_bp.route("/timer", methods=["GET"])
def current_timer():
    return jsonify(timer_state(get_singleton(TimerState)))
