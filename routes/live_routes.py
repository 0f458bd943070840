# FILE: routes/live_routes.py
from flask import Blueprint, Response, jsonify, request, send_file, stream_with_context

from services.live_service import load_view, presence, stream_display
from services.live_view import LiveView
from services.storage_service import local_path
from services.target_service import get_current_target


live_bp = Blueprint("live", __name__)


def _pinned_target():
    # ?target=Name pins a display to one target instead of following the register.
    return (request.args.get("target") or "").strip() or None


@live_bp.route("/api/live/snapshot", methods=["GET"])
def snapshot():
    target = _pinned_target()
    view = load_view(LiveView(target=target, follow_target=target is None))
    return jsonify(view.snapshot())


@live_bp.route("/api/live/stream", methods=["GET"])
def stream():
    target = _pinned_target()
    events = stream_display(follow_target=target is None, target=target)
    response = Response(stream_with_context(events), mimetype="text/event-stream")
    response.headers["Cache-Control"] = "no-cache, no-transform"
    response.headers["X-Accel-Buffering"] = "no"
    return response


@live_bp.route("/api/live/participants", methods=["GET"])
def participants():
    target = _pinned_target() or get_current_target()
    return jsonify({"target": target, "count": presence.count(target) if target else 0})


@live_bp.route("/storage/<string:bucket>/<path:key>", methods=["GET"])
def storage_file(bucket: str, key: str):
    path = local_path(bucket, key)
    if not path.is_file():
        return jsonify({"error": "File not found.", "kind": "NotFound"}), 404
    return send_file(path)
