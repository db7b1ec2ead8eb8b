import pytest
from fastapi.testclient import TestClient

from .conftest import OWNER_ID


def _as(user_id: str) -> dict:
    return {"X-User-Id": user_id}


def _create_meeting(client: TestClient, **overrides) -> dict:
    payload = {
        "title": "Linear algebra study group",
        "description": "Problem sets before the midterm",
        "max_participants": 3,
        "display_name": "Owner",
    }
    payload.update(overrides)
    response = client.post("/api/meetings/", json=payload, headers=_as(OWNER_ID))
    assert response.status_code == 201, response.text
    return response.json()


def _join_and_approve(client: TestClient, meeting_id: str, user_id: str) -> None:
    response = client.post(
        f"/api/meetings/{meeting_id}/join",
        json={"display_name": user_id.title()},
        headers=_as(user_id),
    )
    assert response.status_code == 200, response.text
    response = client.post(
        f"/api/meetings/{meeting_id}/requests/{user_id}",
        json={"action": "approve"},
        headers=_as(OWNER_ID),
    )
    assert response.status_code == 200, response.text


def test_create_and_fetch_meeting(client: TestClient):
    created = _create_meeting(client)

    response = client.get(f"/api/meetings/{created['id']}", headers=_as("stu-1"))

    assert response.status_code == 200
    data = response.json()
    assert data["ownerId"] == OWNER_ID
    assert data["recruitmentStatus"] == "open"
    assert [p["status"] for p in data["participants"]] == ["owner"]


def test_missing_actor_header_is_unauthorized(client: TestClient):
    response = client.post("/api/meetings/", json={"title": "t", "description": "d"})

    assert response.status_code == 401


def test_unknown_meeting_maps_to_404(client: TestClient):
    response = client.get("/api/meetings/MTG-NOPE", headers=_as("stu-1"))

    assert response.status_code == 404
    assert response.json()["error"] == "meeting_not_found"


def test_blank_title_maps_to_422(client: TestClient):
    response = client.post(
        "/api/meetings/",
        json={"title": " ", "description": "d"},
        headers=_as(OWNER_ID),
    )

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_join_workflow_and_capacity(client: TestClient):
    meeting_id = _create_meeting(client)["id"]
    _join_and_approve(client, meeting_id, "stu-1")
    _join_and_approve(client, meeting_id, "stu-2")

    response = client.post(
        f"/api/meetings/{meeting_id}/join", json={}, headers=_as("stu-3")
    )

    assert response.status_code == 409
    assert response.json()["error"] == "meeting_full"


def test_non_owner_cannot_decide(client: TestClient):
    meeting_id = _create_meeting(client)["id"]
    client.post(f"/api/meetings/{meeting_id}/join", json={}, headers=_as("stu-1"))

    response = client.post(
        f"/api/meetings/{meeting_id}/requests/stu-1",
        json={"action": "approve"},
        headers=_as("stu-1"),
    )

    assert response.status_code == 403
    assert response.json()["error"] == "not_authorized"


def test_cancel_and_recruitment_status(client: TestClient):
    meeting_id = _create_meeting(client)["id"]
    client.post(f"/api/meetings/{meeting_id}/join", json={}, headers=_as("stu-1"))

    response = client.delete(f"/api/meetings/{meeting_id}/join", headers=_as("stu-1"))
    assert response.status_code == 200
    assert [p["userId"] for p in response.json()["participants"]] == [OWNER_ID]

    response = client.put(
        f"/api/meetings/{meeting_id}/recruitment",
        json={"status": "closed"},
        headers=_as(OWNER_ID),
    )
    assert response.json()["recruitmentStatus"] == "closed"

    response = client.post(
        f"/api/meetings/{meeting_id}/join", json={}, headers=_as("stu-1")
    )
    assert response.status_code == 409
    assert response.json()["error"] == "meeting_closed"


def test_availability_endpoints(client: TestClient):
    meeting_id = _create_meeting(client)["id"]
    _join_and_approve(client, meeting_id, "stu-1")

    response = client.put(
        f"/api/meetings/{meeting_id}/availability",
        json={"slot_ids": ["0-9-0", "0-9-30"]},
        headers=_as("stu-1"),
    )
    assert response.status_code == 200
    assert response.json()["availability"]["stu-1"] == ["0-9-0", "0-9-30"]

    client.put(
        f"/api/meetings/{meeting_id}/availability",
        json={"slot_ids": ["0-9-0"]},
        headers=_as(OWNER_ID),
    )

    slot = client.get(f"/api/meetings/{meeting_id}/availability/0-9-0").json()
    assert slot == {
        "slotId": "0-9-0",
        "count": 2,
        "densityClass": "full",
        "totalParticipants": 2,
    }

    overview = client.get(f"/api/meetings/{meeting_id}/availability").json()
    assert overview["participationRate"] == 100
    assert len(overview["slots"]) == 145

    suggestions = client.get(
        f"/api/meetings/{meeting_id}/suggestions", params={"min_rate": 60}
    ).json()
    assert [s["slotId"] for s in suggestions] == ["0-9-0"]


def test_invalid_slot_and_pending_submitter(client: TestClient):
    meeting_id = _create_meeting(client)["id"]
    client.post(f"/api/meetings/{meeting_id}/join", json={}, headers=_as("stu-1"))

    response = client.put(
        f"/api/meetings/{meeting_id}/availability",
        json={"slot_ids": ["0-9-0"]},
        headers=_as("stu-1"),
    )
    assert response.status_code == 403

    response = client.put(
        f"/api/meetings/{meeting_id}/availability",
        json={"slot_ids": ["6-9-0"]},
        headers=_as(OWNER_ID),
    )
    assert response.status_code == 422
    assert response.json()["error"] == "invalid_slot"

    response = client.get(f"/api/meetings/{meeting_id}/availability/0-25-0")
    assert response.status_code == 422


@pytest.mark.parametrize("slot_ids", [5, "0-9-0", {"0-9-0": True}])
def test_availability_body_must_be_a_list(client: TestClient, slot_ids):
    meeting_id = _create_meeting(client)["id"]

    response = client.put(
        f"/api/meetings/{meeting_id}/availability",
        json={"slot_ids": slot_ids},
        headers=_as(OWNER_ID),
    )
    assert response.status_code == 422
    assert "slot_ids must be a list of slot ids" in response.json()["detail"][0]

    overview = client.get(f"/api/meetings/{meeting_id}/availability").json()
    assert overview["participationRate"] == 0


def test_announcements(client: TestClient):
    meeting_id = _create_meeting(client)["id"]

    response = client.post(
        f"/api/meetings/{meeting_id}/announcements",
        json={"title": "", "content": "x"},
        headers=_as(OWNER_ID),
    )
    assert response.status_code == 422

    response = client.post(
        f"/api/meetings/{meeting_id}/announcements",
        json={"title": "Room", "content": "B204", "priority": "high"},
        headers=_as(OWNER_ID),
    )
    assert response.status_code == 201
    announcement = response.json()["announcements"][0]
    assert announcement["priority"] == "high"

    response = client.delete(
        f"/api/meetings/{meeting_id}/announcements/{announcement['id']}",
        headers=_as("stu-1"),
    )
    assert response.status_code == 403

    response = client.delete(
        f"/api/meetings/{meeting_id}/announcements/{announcement['id']}",
        headers=_as(OWNER_ID),
    )
    assert response.status_code == 200
    assert response.json()["announcements"] == []


def test_attendance_flow(client: TestClient, clock):
    meeting_id = _create_meeting(client)["id"]
    _join_and_approve(client, meeting_id, "stu-1")

    started = client.post(
        f"/api/meetings/{meeting_id}/attendance/start", headers=_as(OWNER_ID)
    ).json()
    code = started["code"]
    assert started["status"]["isActive"] is True

    participant_view = client.get(
        f"/api/meetings/{meeting_id}/attendance", headers=_as("stu-1")
    ).json()
    assert participant_view["code"] is None
    meeting_view = client.get(f"/api/meetings/{meeting_id}", headers=_as("stu-1")).json()
    assert meeting_view["attendanceSession"]["code"] is None

    response = client.post(
        f"/api/meetings/{meeting_id}/attendance/check-in",
        json={"code": "WRONG1"},
        headers=_as("stu-1"),
    )
    assert response.status_code == 422
    assert response.json()["error"] == "invalid_code"

    clock.advance(seconds=179)
    response = client.post(
        f"/api/meetings/{meeting_id}/attendance/check-in",
        json={"code": code},
        headers=_as("stu-1"),
    )
    assert response.status_code == 200
    assert response.json()["attendees"] == ["stu-1"]

    clock.advance(seconds=2)
    response = client.post(
        f"/api/meetings/{meeting_id}/attendance/check-in",
        json={"code": code},
        headers=_as("stu-1"),
    )
    assert response.status_code == 410
    assert response.json()["error"] == "session_expired"

    response = client.post(
        f"/api/meetings/{meeting_id}/attendance/end", headers=_as(OWNER_ID)
    )
    assert response.status_code == 200
    assert response.json()["isActive"] is False

    history = client.get(f"/api/meetings/{meeting_id}/attendance/history").json()
    assert len(history) == 1
    assert history[0]["attendanceRate"] == 50

    stats = client.get(f"/api/meetings/{meeting_id}/attendance/statistics").json()
    assert stats["totalSessions"] == 1

    members = client.get(f"/api/meetings/{meeting_id}/attendance/members").json()
    assert members[0]["userId"] == "stu-1"
    assert members[0]["attendanceRate"] == 100


def test_second_start_conflicts(client: TestClient):
    meeting_id = _create_meeting(client)["id"]
    client.post(f"/api/meetings/{meeting_id}/attendance/start", headers=_as(OWNER_ID))

    response = client.post(
        f"/api/meetings/{meeting_id}/attendance/start", headers=_as(OWNER_ID)
    )

    assert response.status_code == 409
    assert response.json()["error"] == "session_already_active"


def test_health_check(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
