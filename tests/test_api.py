import pytest
from fastapi.testclient import TestClient

from interview_engine.config.settings import get_settings
from main import app

HEADERS = {"X-Candidate-Id": "cand-1"}

TEMPLATE = {
    "name": "Quick screen",
    "role": "backend",
    "time_limit_minutes": 20,
    "questions": [
        {
            "id": "q1",
            "type": "mcq",
            "difficulty": "easy",
            "content": "2 + 2 = ?",
            "payload": {
                "kind": "selector",
                "options": [{"id": "a", "text": "4"}, {"id": "b", "text": "5"}],
                "correct_ids": ["a"],
            },
        },
        {
            "id": "q2",
            "type": "behavioral",
            "content": "Tell us about a hard bug",
            "order_index": 1,
            "max_score": 10,
            "payload": {"kind": "rubric", "criteria": []},
        },
    ],
}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "")
    monkeypatch.setenv("NOTIFICATIONS_ENABLED", "false")
    get_settings.cache_clear()
    with TestClient(app) as client:
        yield client
    get_settings.cache_clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# =============================================================================
# PANEL
# =============================================================================

def _create_panel(client):
    response = client.post(
        "/api/panel/sessions",
        json={"track": "Data Engineering", "experience_years": "3-5", "target_role": "Data Engineer"},
        headers=HEADERS,
    )
    assert response.status_code == 200
    return response.json()["session"]["id"]


def test_panel_flow(client):
    session_id = _create_panel(client)

    question = client.get(f"/api/panel/sessions/{session_id}/question", headers=HEADERS).json()
    assert question["session"]["phase"] == "warmup"
    assert question["current_question"]["asked_by"] == "Panelist A"
    assert len(question["panel"]) == 3

    answered = client.post(
        f"/api/panel/sessions/{session_id}/answer",
        json={"question_id": question["current_question"]["id"], "answer": "I built pipelines"},
        headers=HEADERS,
    ).json()
    assert answered["evaluation"]["score"] == 5
    assert answered["session"]["question_index"] == 1

    skipped = client.post(f"/api/panel/sessions/{session_id}/skip", headers=HEADERS).json()
    assert skipped["session"]["phase"] == "core"

    report = client.get(f"/api/panel/sessions/{session_id}/report", headers=HEADERS)
    assert report.status_code == 400

    abandoned = client.post(f"/api/panel/sessions/{session_id}/abandon", headers=HEADERS).json()
    assert abandoned["session"]["status"] == "abandoned"
    assert abandoned["final_report"]["is_partial"]
    assert abandoned["final_report"]["overall_score"] == 25
    assert abandoned["final_report"]["questions_skipped"] == 1

    report = client.get(f"/api/panel/sessions/{session_id}/report", headers=HEADERS)
    assert report.status_code == 200

    again = client.post(f"/api/panel/sessions/{session_id}/abandon", headers=HEADERS)
    assert again.status_code == 400

    listed = client.get("/api/panel/sessions", headers=HEADERS).json()
    assert [s["id"] for s in listed] == [session_id]
    assert listed[0]["overall_score"] == 25


def test_panel_errors(client):
    session_id = _create_panel(client)

    assert client.get(f"/api/panel/sessions/{session_id}/question").status_code == 422
    assert client.get(
        f"/api/panel/sessions/{session_id}/question", headers={"X-Candidate-Id": "other"}
    ).status_code == 403
    assert client.get("/api/panel/sessions/missing/question", headers=HEADERS).status_code == 404

    follow_up = client.post(
        f"/api/panel/sessions/{session_id}/answer",
        json={"question_id": "nope", "answer": "x"},
        headers=HEADERS,
    )
    assert follow_up.status_code == 400


# =============================================================================
# LINEAR
# =============================================================================

def test_linear_flow(client):
    created = client.post("/api/interviews/templates", json=TEMPLATE)
    assert created.status_code == 200
    template_id = created.json()["id"]
    assert created.json()["question_count"] == 2

    templates = client.get("/api/interviews/templates").json()
    assert [t["id"] for t in templates] == [template_id]

    session = client.post("/api/interviews/start", json={"template_id": template_id}, headers=HEADERS).json()
    assert session["status"] == "in_progress"
    session_id = session["id"]

    served = client.get(f"/api/interviews/{session_id}/next", headers=HEADERS).json()
    assert served["question"]["id"] == "q1"
    assert served["question"]["payload"]["correct_ids"] == []
    assert served["total"] == 2

    submitted = client.post(
        f"/api/interviews/{session_id}/answer",
        json={"question_id": "q1", "selected_option_ids": ["a"]},
        headers=HEADERS,
    )
    assert submitted.status_code == 200
    assert submitted.json()["next_available"]

    duplicate = client.post(
        f"/api/interviews/{session_id}/answer",
        json={"question_id": "q1", "selected_option_ids": ["a"]},
        headers=HEADERS,
    )
    assert duplicate.status_code == 400

    flagged = client.post(
        f"/api/interviews/{session_id}/integrity",
        json={"event_type": "tab_switch"},
        headers=HEADERS,
    ).json()
    assert flagged["tab_switch_count"] == 1

    completed = client.post(f"/api/interviews/{session_id}/complete", headers=HEADERS).json()
    assert completed["status"] == "completed"

    result = client.get(f"/api/interviews/{session_id}/result", headers=HEADERS)
    assert result.status_code == 200
    assert len(result.json()["answers"]) == 1

    after = client.get(f"/api/interviews/{session_id}/next", headers=HEADERS)
    assert after.status_code == 400

    sessions = client.get("/api/interviews/sessions", headers=HEADERS).json()
    assert [s["id"] for s in sessions] == [session_id]


def test_linear_errors(client):
    assert client.post(
        "/api/interviews/start", json={"template_id": "missing"}, headers=HEADERS
    ).status_code == 404
    assert client.post("/api/interviews/templates", json={**TEMPLATE, "questions": []}).status_code == 400
    assert client.post(
        "/api/interviews/integrity-missing/integrity",
        json={"event_type": "not_a_kind"},
        headers=HEADERS,
    ).status_code == 422
