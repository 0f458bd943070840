"""
Route tests through the Flask test client.
"""
import io

from models import ModerationLog, Question, Rating
from services.live_service import open_view


RATING = {"overall": 4, "presentation": 4, "layout": 5, "content": 3, "feedback": "Clean layout"}
LEAD = {
    "first_name": "Jordan",
    "last_name": "Rivera",
    "email": "jordan.rivera@example.com",
    "job_title": "Product Designer",
}


def test_rating_is_stored(client, target):
    """A complete rating is tagged with the current target."""
    response = client.post("/api/ratings", json=RATING)

    assert response.status_code == 201
    rating = Rating.query.filter_by(id=response.get_json()["id"]).one()
    assert rating.target_person == target
    assert rating.reaction is None


def test_rating_with_zero_subscore_is_rejected(client, target):
    """Any sub-score of 0 means the form is incomplete; nothing is written."""
    response = client.post("/api/ratings", json={**RATING, "presentation": 0})

    assert response.status_code == 400
    assert response.get_json()["error"] == "Please rate all categories before submitting!"
    assert Rating.query.count() == 0


def test_rating_without_target_is_rejected(client):
    """Target-scoped events need an active target."""
    response = client.post("/api/ratings", json=RATING)

    assert response.status_code == 400
    assert response.get_json()["kind"] == "ValidationError"


def test_reactions(client):
    """Reactions are global and limited to the configured emoji."""
    assert client.post("/api/reactions", json={"reaction": "🔥"}).status_code == 201
    assert client.post("/api/reactions", json={"reaction": "🦄"}).status_code == 400

    reaction = Rating.query.one()
    assert reaction.target_person == "GLOBAL_REACTIONS"
    assert reaction.overall is None


def test_blocked_chat_message_is_logged(client, target):
    """Mostly profane messages are refused and recorded."""
    response = client.post("/api/chat", json={"message": "damn crap", "first_name": "Jordan"})

    assert response.status_code == 422
    assert ModerationLog.query.count() == 1


def test_chat_message_is_masked(client, target):
    """Partially profane messages are stored masked."""
    response = client.post("/api/chat", json={"message": "This layout is damn good"})
    assert response.status_code == 201


def test_duplicate_lead_is_a_conflict(client):
    """The same email cannot register twice."""
    assert client.post("/api/leads", json=LEAD).status_code == 201

    response = client.post("/api/leads", json=LEAD)
    assert response.status_code == 409
    assert response.get_json()["error"] == "This email has already been used to join the session."


def test_upvote_toggle(client, target):
    """Upvoting twice from one session removes the vote."""
    question_id = client.post("/api/questions", json={"question": "What tools did you use for layout?"}).get_json()["id"]

    first = client.post(f"/api/questions/{question_id}/upvote").get_json()
    second = client.post(f"/api/questions/{question_id}/upvote").get_json()

    assert first == {"question_id": question_id, "upvoted": True, "upvotes": 1}
    assert second == {"question_id": question_id, "upvoted": False, "upvotes": 0}


def test_question_rate_limit(client, target):
    """Three questions per five minutes per session."""
    for number in range(3):
        response = client.post("/api/questions", json={"question": f"What tools did you use for layout {number}?"})
        assert response.status_code == 201

    response = client.post("/api/questions", json={"question": "What tools did you use for spacing?"})
    assert response.status_code == 429


def test_answered_question_leaves_the_board(client, target):
    """Answering keeps the row but hides it from viewers."""
    question_id = client.post("/api/questions", json={"question": "What tools did you use for layout?"}).get_json()["id"]

    response = client.post(f"/api/host/questions/{question_id}/answer", json={"answered": True})
    assert response.get_json()["is_answered"] is True
    assert client.get("/api/questions").get_json()["questions"] == []
    assert Question.query.count() == 1

    assert client.delete(f"/api/host/questions/{question_id}").status_code == 200
    assert Question.query.count() == 0


def test_clear_ratings_reaches_live_views(app, client, target):
    """Clearing deletes the target's ratings and every view drops them."""
    view = open_view()
    try:
        client.post("/api/ratings", json=RATING)
        client.post("/api/ratings", json={**RATING, "overall": 2})
        client.post("/api/reactions", json={"reaction": "👍"})
        assert view.snapshot()["stats"]["vote_count"] == 2

        response = client.post("/api/host/clear/ratings")
        assert response.get_json() == {"kind": "ratings", "deleted": 2}
        assert view.snapshot()["stats"]["vote_count"] == 0
        assert Rating.query.count() == 1
    finally:
        view.detach()


def test_unknown_clear_kind(client, target):
    """Only known kinds can be cleared."""
    assert client.post("/api/host/clear/everything").status_code == 400


def test_stale_target_version_is_a_conflict(client, target):
    """A write against an old version is refused."""
    current = client.get("/api/target").get_json()
    assert current["target"] == target

    stale = client.put("/api/host/target", json={"target": "Rivera", "expected_version": current["version"] - 1})
    assert stale.status_code == 409

    fresh = client.put("/api/host/target", json={"target": "Rivera", "expected_version": current["version"]})
    assert fresh.get_json() == {"target": "Rivera", "version": current["version"] + 1}


def test_display_settings_and_snapshot(client, target):
    """Settings patches show up in the live snapshot."""
    client.post("/api/ratings", json=RATING)
    response = client.patch("/api/host/settings/display", json={"results_hidden": True, "orientation": "portrait"})
    assert response.status_code == 200

    snapshot = client.get("/api/live/snapshot").get_json()
    assert snapshot["target"] == target
    assert snapshot["results_hidden"] is True
    assert snapshot["orientation"] == "portrait"
    assert snapshot["stats"]["vote_count"] == 1
    assert snapshot["stats"]["average"] == 4


def test_invalid_settings(client):
    """Unknown settings and values are refused."""
    assert client.patch("/api/host/settings/colours", json={"x": 1}).status_code == 404
    assert client.patch("/api/host/settings/display", json={"volume": 3}).status_code == 400
    assert client.patch("/api/host/settings/display", json={"orientation": "diagonal"}).status_code == 400


def test_timer_routes(client):
    """Start runs the timer, pause keeps the remaining time, reset restores the default."""
    started = client.post("/api/host/timer/start", json={"minutes": 2, "seconds": 30}).get_json()
    assert started["is_running"] is True
    assert 148 <= started["remaining_seconds"] <= 150

    paused = client.post("/api/host/timer/pause").get_json()
    assert paused["is_running"] is False
    assert 148 <= paused["remaining_seconds"] <= 150

    reset = client.post("/api/host/timer/reset").get_json()
    assert reset["remaining_seconds"] == 300
    assert client.get("/api/timer").get_json()["remaining_seconds"] == 300


def test_leads_csv_export(client):
    """Registered leads are exported as CSV."""
    client.post("/api/leads", json=LEAD)

    response = client.get("/api/host/leads.csv")
    body = response.get_data(as_text=True)
    assert response.mimetype == "text/csv"
    assert body.splitlines()[0] == "first_name,last_name,email,job_title,created_at"
    assert "jordan.rivera@example.com" in body


def test_resume_upload_analyze_and_select(client):
    """A PDF resume is stored, scored and can become the target."""
    pdf = b"%PDF-1.4\nBT (Jordan Rivera) Tj (Python Docker) Tj (Skills) Tj ET"
    response = client.post(
        "/api/host/resumes",
        data={"name": "Jordan Rivera", "file": (io.BytesIO(pdf), "resume.pdf", "application/pdf")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 201
    resume = response.get_json()
    assert client.get(resume["url"]).data == pdf

    analysis = client.post(f"/api/host/resumes/{resume['id']}/analyze").get_json()
    assert analysis["skillsFound"] == ["Python", "Docker"]
    assert analysis["metadata"]["hasSkillsSection"] is True
    assert analysis["score"] == 10 + 15

    selected = client.post(f"/api/host/resumes/{resume['id']}/select").get_json()
    assert selected["target"] == "Jordan Rivera"


def test_unsupported_upload_type(client):
    """Only PDF, JPEG and PNG are accepted."""
    response = client.post(
        "/api/host/resumes",
        data={"name": "Jordan Rivera", "file": (io.BytesIO(b"hello"), "resume.txt", "text/plain")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400


def test_rejected_ratings_do_not_use_up_the_limit(client, target):
    """Only stored ratings count toward the twenty-per-five-minutes limit."""
    for _ in range(20):
        assert client.post("/api/ratings", json={**RATING, "presentation": 0}).status_code == 400

    assert client.post("/api/ratings", json=RATING).status_code == 201


def test_rate_limited_response(client, target):
    """Going over the limit returns the usual JSON error body."""
    for number in range(3):
        client.post("/api/questions", json={"question": f"What tools did you use for layout {number}?"})

    body = client.post("/api/questions", json={"question": "What tools did you use for spacing?"}).get_json()
    assert body["kind"] == "RateLimited"
    assert body["error"].startswith("Rate limit exceeded. Maximum 3 per 5 minute")


def test_signup_required_before_taking_part(client, target):
    """With signup required, ratings, chat and questions wait for registration."""
    assert client.patch("/api/host/settings/signup", json={"signup_required": True}).status_code == 200

    refused = client.post("/api/ratings", json=RATING)
    assert refused.status_code == 400
    assert refused.get_json()["details"] == {"signup_required": True}
    assert client.post("/api/chat", json={"message": "Looks clean"}).status_code == 400
    assert client.post("/api/questions", json={"question": "What tools did you use for layout?"}).status_code == 400
    assert client.post("/api/reactions", json={"reaction": "🔥"}).status_code == 201

    assert client.post("/api/leads", json=LEAD).status_code == 201
    assert client.get("/api/session").get_json()["registered"] is True
    assert client.post("/api/ratings", json=RATING).status_code == 201
    assert client.post("/api/chat", json={"message": "Looks clean"}).status_code == 201


def test_analysis_refused_while_ats_is_off(client):
    """Turning the ATS setting off stops resume analysis."""
    pdf = b"%PDF-1.4\nBT (Jordan Rivera) Tj (Skills) Tj ET"
    resume = client.post(
        "/api/host/resumes",
        data={"name": "Jordan Rivera", "file": (io.BytesIO(pdf), "resume.pdf", "application/pdf")},
        content_type="multipart/form-data",
    ).get_json()
    client.patch("/api/host/settings/ats", json={"ats_enabled": False})

    response = client.post(f"/api/host/resumes/{resume['id']}/analyze")
    assert response.status_code == 400
    assert response.get_json()["error"] == "Resume analysis features have been turned off."
