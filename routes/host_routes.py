# FILE: routes/host_routes.py
from flask import Blueprint, Response, jsonify, request

from models import CurrentTarget
from services.errors import ValidationError
from services.extraction_service import analyze_resume
from services.host_service import (
    answer_question,
    clear_events,
    delete_question,
    delete_resume,
    leads_csv,
    list_leads,
    list_moderation_log,
    list_resumes,
    pause_timer,
    reset_timer,
    resume_dict,
    select_resume,
    start_timer,
    timer_state,
    update_settings,
    upload_resume,
)
from services.scheduling_service import add_time_slot, delete_time_slot, list_slots
from services.target_service import clear_target, get_singleton, set_target


host_bp = Blueprint("host", __name__, url_prefix="/api/host")


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict() or {}


def _expected_version(payload: dict) -> int | None:
    value = payload.get("expected_version")
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("expected_version must be an integer.")


def _target_response():
    row = get_singleton(CurrentTarget)
    return jsonify({"target": row.target_person, "version": row.version})


@host_bp.route("/target", methods=["PUT", "POST"])
def put_target():
    payload = _payload()
    set_target(payload.get("target") or payload.get("name") or "", _expected_version(payload))
    return _target_response()


@host_bp.route("/target", methods=["DELETE"])
def delete_target():
    clear_target(_expected_version(request.args))
    return _target_response()


@host_bp.route("/clear/<string:kind>", methods=["POST"])
def clear(kind: str):
    return jsonify({"kind": kind, "deleted": clear_events(kind)})


@host_bp.route("/questions/<string:question_id>/answer", methods=["POST"])
def answer(question_id: str):
    payload = _payload()
    return jsonify(answer_question(question_id, payload.get("answered", True)))


@host_bp.route("/questions/<string:question_id>", methods=["DELETE"])
def remove_question(question_id: str):
    delete_question(question_id)
    return jsonify({"deleted": question_id})


@host_bp.route("/settings/<string:name>", methods=["PATCH", "PUT"])
def patch_settings(name: str):
    payload = _payload()
    expected_version = _expected_version(payload)
    patch = {key: value for key, value in payload.items() if key != "expected_version"}
    return jsonify(update_settings(name, patch, expected_version).to_dict())


@host_bp.route("/timer/start", methods=["POST"])
def timer_start():
    payload = _payload()
    row = start_timer(payload.get("minutes"), payload.get("seconds"), _expected_version(payload))
    return jsonify(timer_state(row))


@host_bp.route("/timer/pause", methods=["POST"])
def timer_pause():
    return jsonify(timer_state(pause_timer(_expected_version(_payload()))))


@host_bp.route("/timer/reset", methods=["POST"])
def timer_reset():
    payload = _payload()
    row = reset_timer(payload.get("minutes", 5), payload.get("seconds", 0), _expected_version(payload))
    return jsonify(timer_state(row))


@host_bp.route("/resumes", methods=["GET"])
def resumes():
    return jsonify({"resumes": list_resumes()})


@host_bp.route("/resumes", methods=["POST"])
def create_resume():
    uploaded = request.files.get("file")
    if uploaded is None:
        raise ValidationError("A resume file is required.")
    name = request.form.get("name", "").strip()
    resume = upload_resume(name, uploaded.read(), uploaded.mimetype)
    return jsonify(resume_dict(resume)), 201


@host_bp.route("/resumes/<string:resume_id>", methods=["DELETE"])
def remove_resume(resume_id: str):
    delete_resume(resume_id)
    return jsonify({"deleted": resume_id})


@host_bp.route("/resumes/<string:resume_id>/select", methods=["POST"])
def choose_resume(resume_id: str):
    select_resume(resume_id, _expected_version(_payload()))
    return _target_response()


@host_bp.route("/resumes/<string:resume_id>/analyze", methods=["POST"])
def analyze(resume_id: str):
    return jsonify(analyze_resume(resume_id))


@host_bp.route("/leads", methods=["GET"])
def leads():
    return jsonify({"leads": list_leads()})


@host_bp.route("/leads.csv", methods=["GET"])
def leads_export():
    return Response(
        leads_csv(),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=leads.csv"},
    )


@host_bp.route("/slots", methods=["GET"])
def slots():
    return jsonify({"slots": list_slots()})


@host_bp.route("/slots", methods=["POST"])
def create_slot():
    payload = _payload()
    slot = add_time_slot(payload.get("date"), payload.get("start_time"), payload.get("end_time"))
    return jsonify(slot.to_dict()), 201


@host_bp.route("/slots/<string:slot_id>", methods=["DELETE"])
def remove_slot(slot_id: str):
    delete_time_slot(slot_id)
    return jsonify({"deleted": slot_id})


@host_bp.route("/moderation-log", methods=["GET"])
def moderation_log():
    limit = request.args.get("limit", 100, type=int)
    return jsonify({"entries": list_moderation_log(limit)})
