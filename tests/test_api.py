"""Tests for the coaching HTTP endpoints."""

from fastapi.testclient import TestClient

from coaching_ledger.api.app import create_app
from coaching_ledger.containers import AppContainer
from tests.conftest import FakeClock

SESSION_BODY = {
    "student_id": "student-1",
    "mentor_id": "mentor-1",
    "original_image_url": "https://img.example/original.png",
    "initial_question": "Is the perspective on the table correct?",
}
FEEDBACK_BODY = {
    "feedback_image_url": "https://img.example/feedback.png",
    "comment": "Lower the horizon line a little.",
}


def _client(container: AppContainer, credits: int = 50) -> TestClient:
    if credits:
        container.ledger_service.grant_credits("student-1", credits)
    return TestClient(create_app(container))


def test_health(container: AppContainer) -> None:
    response = _client(container).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_full_session_flow(container: AppContainer, clock: FakeClock) -> None:
    client = _client(container)

    created = client.post("/sessions", json=SESSION_BODY)
    assert created.status_code == 201
    session_id = created.json()["session"]["id"]
    assert created.json()["session"]["status"] == "PENDING"

    clock.advance(hours=1)
    answered = client.post(f"/sessions/{session_id}/feedback", json=FEEDBACK_BODY)
    assert answered.json()["session"]["status"] == "ANSWERED"
    feedback = answered.json()["session"]["feedback"]
    assert feedback["comment"] == FEEDBACK_BODY["comment"]

    clock.advance(hours=1)
    asked = client.post(
        f"/sessions/{session_id}/follow-up",
        json={"question": "Should the shadow be cooler?"},
    )
    assert asked.json()["session"]["status"] == "FOLLOWUP_PENDING"

    clock.advance(hours=1)
    replied = client.post(
        f"/sessions/{session_id}/follow-up/reply",
        json={"answer": "Yes, shift it toward blue."},
    )
    assert replied.json()["session"]["status"] == "COMPLETED"
    assert replied.json()["session"]["follow_up"]["answer"] == (
        "Yes, shift it toward blue."
    )

    credits = client.get("/users/student-1/credits")
    assert credits.json() == {"user_id": "student-1", "balance": 40}


def test_default_cost_comes_from_settings(container: AppContainer) -> None:
    client = _client(container)

    client.post("/sessions", json=SESSION_BODY)

    balance = client.get("/users/student-1/credits").json()["balance"]
    assert balance == 50 - container.settings.default_session_cost


def test_lapsed_session_is_refunded_on_read(
    container: AppContainer, clock: FakeClock
) -> None:
    client = _client(container)
    clock.advance(minutes=1)
    created = client.post("/sessions", json={**SESSION_BODY, "cost": 20})
    session_id = created.json()["session"]["id"]
    clock.advance(hours=25)

    response = client.get(f"/sessions/{session_id}")
    transactions = client.get("/users/student-1/transactions").json()["transactions"]

    assert response.json()["session"]["status"] == "REFUNDED"
    assert [txn["type"] for txn in transactions] == ["REFUND", "USE", "EARN"]
    assert [txn["amount"] for txn in transactions] == [20, -20, 50]


def test_user_sessions_lists_both_roles(container: AppContainer) -> None:
    client = _client(container)
    client.post("/sessions", json=SESSION_BODY)

    student = client.get("/users/student-1/sessions").json()["sessions"]
    mentor = client.get("/users/mentor-1/sessions").json()["sessions"]

    assert len(student) == 1
    assert mentor[0]["id"] == student[0]["id"]


def test_insufficient_credits_maps_to_402(container: AppContainer) -> None:
    client = _client(container, credits=5)

    response = client.post("/sessions", json=SESSION_BODY)

    assert response.status_code == 402
    assert response.json()["error"] == "InsufficientCredits"


def test_unknown_session_maps_to_404(container: AppContainer) -> None:
    client = _client(container)

    response = client.get("/sessions/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    assert response.json()["error"] == "SessionNotFound"


def test_guard_failure_maps_to_409(container: AppContainer) -> None:
    client = _client(container)
    session_id = client.post("/sessions", json=SESSION_BODY).json()["session"]["id"]
    client.post(f"/sessions/{session_id}/feedback", json=FEEDBACK_BODY)

    response = client.post(f"/sessions/{session_id}/feedback", json=FEEDBACK_BODY)

    assert response.status_code == 409
    assert response.json()["error"] == "PreconditionFailed"
    assert "PENDING" in response.json()["detail"]


def test_text_limits_are_validated(container: AppContainer) -> None:
    client = _client(container)

    short_question = client.post(
        "/sessions", json={**SESSION_BODY, "initial_question": "Help?"}
    )
    session_id = client.post("/sessions", json=SESSION_BODY).json()["session"]["id"]
    client.post(f"/sessions/{session_id}/feedback", json=FEEDBACK_BODY)
    long_follow_up = client.post(
        f"/sessions/{session_id}/follow-up", json={"question": "x" * 301}
    )

    assert short_question.status_code == 422
    assert long_follow_up.status_code == 422
