from datetime import date, timedelta

import pytest
from fastapi import status

from onboarding_hub.core.security import create_access_token
from onboarding_hub.models.user import EmployeeOnboardingStatus, User

from conftest import BUDDY_ID, EMPLOYEE_ID, HR_ID


def _payload(**overrides):
    payload = {
        "employee_id": EMPLOYEE_ID,
        "expected_completion_date": (date.today() + timedelta(days=30)).isoformat(),
        "assigned_buddy_id": BUDDY_ID,
        "steps": [
            {"step_id": "A", "title": "Read handbook", "category": "documentation", "estimated_duration_hours": 1},
            {"step_id": "B", "title": "Team lunch", "category": "meeting", "estimated_duration_hours": 2,
             "dependencies": ["A"]},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def onboarding(client, users, auth_headers):
    response = client.post("/api/onboarding", json=_payload(), headers=auth_headers(users["hr"]))
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()["data"]


def _transition(client, headers, record_id, step_id, new_status, note=None):
    body = {"status": new_status}
    if note is not None:
        body["note"] = note
    return client.post(f"/api/onboarding/{record_id}/steps/{step_id}/transition", json=body, headers=headers)


def test_create_onboarding(onboarding):
    assert onboarding["employee_id"] == EMPLOYEE_ID
    assert onboarding["assigned_hr_id"] == HR_ID
    assert onboarding["status"] == "not-started"
    assert onboarding["next_pending_step_id"] == "A"
    assert onboarding["days_until_expected_completion"] == 30
    assert onboarding["steps"][0]["assigned_to_role"] == "Employee"


def test_duplicate_create_returns_conflict(client, users, auth_headers, onboarding):
    response = client.post("/api/onboarding", json=_payload(), headers=auth_headers(users["admin"]))
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["errors"][0]["code"] == "DUPLICATE_ONBOARDING"


def test_create_requires_authentication(client, users):
    response = client.post("/api/onboarding", json=_payload())
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["success"] is False


def test_expired_token_rejected(client, users):
    token = create_access_token({"sub": str(HR_ID)}, expires_delta=timedelta(minutes=-5))
    response = client.get("/api/onboarding", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["errors"][0]["msg"] == "TOKEN_EXPIRED"


def test_employee_cannot_create(client, users, auth_headers):
    response = client.post("/api/onboarding", json=_payload(), headers=auth_headers(users["employee"]))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["errors"][0]["code"] == "PERMISSION_DENIED"


def test_invalid_body_returns_field_errors(client, users, auth_headers):
    response = client.post(
        "/api/onboarding",
        json=_payload(steps=[{"title": "", "category": "party", "estimated_duration_hours": 0}]),
        headers=auth_headers(users["hr"]),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    fields = {e["field"] for e in response.json()["errors"]}
    assert {"title", "category", "estimated_duration_hours"} <= fields


def test_full_workflow_completes_employee(client, users, auth_headers, onboarding, db_session):
    record_id = onboarding["id"]
    employee = auth_headers(users["employee"])

    response = _transition(client, employee, record_id, "B", "in-progress")
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["errors"][0]["code"] == "DEPENDENCY_NOT_SATISFIED"

    assert _transition(client, employee, record_id, "A", "in-progress").status_code == 200
    response = _transition(client, employee, record_id, "A", "completed", note="Read it all")
    data = response.json()["data"]
    assert data["overall_progress"] == 50
    assert data["status"] == "in-progress"
    assert data["next_pending_step_id"] == "B"

    _transition(client, employee, record_id, "B", "in-progress")
    data = _transition(client, employee, record_id, "B", "completed").json()["data"]
    assert data["overall_progress"] == 100
    assert data["status"] == "completed"
    assert data["actual_completion_date"] is not None
    assert data["completion_notified"] is True

    db_session.expire_all()
    assert db_session.get(User, EMPLOYEE_ID).onboarding_status == EmployeeOnboardingStatus.completed


def test_illegal_transition(client, users, auth_headers, onboarding):
    response = _transition(client, auth_headers(users["hr"]), onboarding["id"], "A", "completed")
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["errors"][0]["code"] == "ILLEGAL_TRANSITION"


def test_unassigned_hr_cannot_read_or_mutate(client, users, auth_headers, onboarding):
    headers = auth_headers(users["other_hr"])
    assert client.get(f"/api/onboarding/{onboarding['id']}", headers=headers).status_code == 403
    assert _transition(client, headers, onboarding["id"], "A", "in-progress").status_code == 403


def test_get_by_employee(client, users, auth_headers, onboarding):
    response = client.get(f"/api/onboarding/employee/{EMPLOYEE_ID}", headers=auth_headers(users["buddy"]))
    assert response.status_code == 200
    assert response.json()["data"]["id"] == onboarding["id"]

    response = client.get("/api/onboarding/employee/999", headers=auth_headers(users["admin"]))
    assert response.status_code == 404
    assert response.json()["errors"][0]["code"] == "NOT_FOUND"


def test_block_and_unblock(client, users, auth_headers, onboarding):
    hr = auth_headers(users["hr"])
    response = _transition(client, hr, onboarding["id"], "A", "blocked")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    data = _transition(client, hr, onboarding["id"], "A", "blocked", note="Waiting on laptop").json()["data"]
    assert data["blocked_step_ids"] == ["A"]
    assert data["steps"][0]["blocked_reason"] == "Waiting on laptop"

    data = _transition(client, hr, onboarding["id"], "A", "pending").json()["data"]
    assert data["blocked_step_ids"] == []


def test_list_and_stats(client, users, auth_headers, onboarding):
    response = client.get("/api/onboarding?limit=5", headers=auth_headers(users["hr"]))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["pagination"] == {"current": 1, "pages": 1, "total": 1, "limit": 5}
    assert data["onboardings"][0]["id"] == onboarding["id"]

    data = client.get("/api/onboarding", headers=auth_headers(users["other_hr"])).json()["data"]
    assert data["pagination"]["total"] == 0

    assert client.get("/api/onboarding", headers=auth_headers(users["employee"])).status_code == 403

    stats = client.get("/api/onboarding/stats/overview", headers=auth_headers(users["admin"])).json()["data"]
    assert stats["overview"]["total"] == 1
    assert stats["overview"]["not_started"] == 1
    assert stats["recent"][0]["employee_id"] == EMPLOYEE_ID


def test_default_template(client, users, auth_headers):
    response = client.get("/api/onboarding/template/default", headers=auth_headers(users["hr"]))
    assert response.status_code == 200
    steps = response.json()["data"]["steps"]
    assert [s["step_id"] for s in steps][:2] == ["welcome_orientation", "hr_documentation"]


def test_step_update_and_feedback(client, users, auth_headers, onboarding):
    record_id = onboarding["id"]
    employee = auth_headers(users["employee"])

    response = client.patch(
        f"/api/onboarding/{record_id}/steps/A",
        json={"notes": "Chapter 3 is confusing", "feedback": {"rating": 3}},
        headers=employee,
    )
    assert response.status_code == 200
    step = response.json()["data"]["steps"][0]
    assert step["notes"] == "Chapter 3 is confusing"
    assert step["feedback"]["rating"] == 3

    response = client.post(
        f"/api/onboarding/{record_id}/feedback",
        json={"type": "buddy", "rating": 4, "comment": "Asks great questions"},
        headers=auth_headers(users["buddy"]),
    )
    assert response.status_code == 200
    assert response.json()["data"]["feedback"][0]["from_id"] == BUDDY_ID


def test_hold_meetings_checklist_documents(client, users, auth_headers, onboarding):
    record_id = onboarding["id"]
    hr = auth_headers(users["hr"])

    data = client.post(f"/api/onboarding/{record_id}/hold", json={"on_hold": True, "reason": "Visa"},
                       headers=hr).json()["data"]
    assert data["status"] == "on-hold"
    response = client.post(f"/api/onboarding/{record_id}/hold", json={"on_hold": True}, headers=hr)
    assert response.status_code == 409

    meeting = {
        "title": "30 day check-in",
        "scheduled_at": "2030-01-15T10:00:00Z",
        "duration_minutes": 30,
        "attendees": [EMPLOYEE_ID, HR_ID],
    }
    data = client.post(f"/api/onboarding/{record_id}/meetings", json=meeting, headers=hr).json()["data"]
    assert data["meetings"][0]["status"] == "scheduled"

    client.post(f"/api/onboarding/{record_id}/checklist", json={"item": "Issue badge"}, headers=hr)
    data = client.post(f"/api/onboarding/{record_id}/checklist/0/complete", headers=hr).json()["data"]
    assert data["checklist"][0]["completed_by"] == HR_ID

    data = client.post(f"/api/onboarding/{record_id}/documents", json={"document_id": 9}, headers=hr).json()["data"]
    assert data["documents"] == [9]

    response = client.post(f"/api/onboarding/{record_id}/documents", json={"document_id": 10},
                           headers=auth_headers(users["employee"]))
    assert response.status_code == 403


def test_add_step(client, users, auth_headers, onboarding):
    response = client.post(
        f"/api/onboarding/{onboarding['id']}/steps",
        json={"title": "Security training", "category": "compliance", "estimated_duration_hours": 1,
              "dependencies": ["B"]},
        headers=auth_headers(users["hr"]),
    )
    assert response.status_code == 200
    steps = response.json()["data"]["steps"]
    assert len(steps) == 3
    assert steps[2]["step_id"].startswith("step_")
    assert steps[2]["dependencies"] == ["B"]


def test_redeliver_is_admin_only(client, users, auth_headers):
    assert client.post("/api/onboarding/completions/redeliver",
                       headers=auth_headers(users["hr"])).status_code == 403
    response = client.post("/api/onboarding/completions/redeliver", headers=auth_headers(users["admin"]))
    assert response.status_code == 200
    assert response.json()["data"] == {"delivered": 0}


def test_inactive_user_rejected(client, users, auth_headers, db_session):
    headers = auth_headers(users["hr"])
    users["hr"].is_active = False
    db_session.commit()

    response = client.get("/api/onboarding", headers=headers)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["errors"][0]["code"] == "AUTH_FAILED"


def test_role_guard_uses_error_envelope(client, users, auth_headers):
    response = client.get("/api/onboarding/stats/overview", headers=auth_headers(users["employee"]))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["errors"][0]["code"] == "PERMISSION_DENIED"


@pytest.mark.parametrize("step_id", ["A", "does-not-exist"])
def test_outsider_gets_same_answer_for_any_step(client, users, auth_headers, onboarding, step_id):
    response = _transition(client, auth_headers(users["stranger"]), onboarding["id"], step_id, "in-progress")
    assert response.status_code == status.HTTP_403_FORBIDDEN
    response = client.patch(
        f"/api/onboarding/{onboarding['id']}/steps/{step_id}",
        json={"notes": "hello"},
        headers=auth_headers(users["other_hr"]),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
