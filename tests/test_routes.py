"""
API tests for the court session routes.

The application is exercised through ``TestClient`` without running its
lifespan, with the service dependencies overridden to use the in-memory
database.
"""

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from courtroom.app.api.deps import get_chat_service, get_roster_service, get_session_service
from courtroom.main import create_application

API = "/api/v1"
COMMUNITY = "64f1c0ffee0000000000c0de"


@pytest.fixture
def client(session_service, roster_service, chat_service):
    app = create_application()
    app.dependency_overrides[get_session_service] = lambda: session_service
    app.dependency_overrides[get_roster_service] = lambda: roster_service
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    return TestClient(app)


def create_session(client, *case_ids, **fields) -> str:
    payload = {
        "communityID": COMMUNITY,
        "title": "Morning traffic court",
        "scheduledStart": "2026-03-02T09:00:00Z",
        "scheduledEnd": "2026-03-02T12:00:00Z",
        "docket": [{"courtCaseID": case_id} for case_id in case_ids],
    }
    payload.update(fields)
    response = client.post(f"{API}/sessions", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["id"]


class TestSessionRoutes:
    def test_create_and_get(self, client, add_case):
        case_id = add_case("Jordan Blake", "user-1")

        response = client.post(f"{API}/sessions", json={
            "communityID": COMMUNITY,
            "title": "Morning traffic court",
            "docket": [{"courtCaseID": case_id}],
        })

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Court session created successfully"
        assert ObjectId.is_valid(body["id"])

        session = client.get(f"{API}/sessions/{body['id']}").json()
        assert session["id"] == body["id"]
        assert session["communityID"] == COMMUNITY
        assert session["status"] == "scheduled"
        assert session["participants"] == []
        assert session["__v"] == 0
        assert session["docket"] == [{
            "courtCaseID": case_id,
            "civilianName": "Jordan Blake",
            "userID": "user-1",
            "status": "pending",
        }]

    def test_create_without_community_is_bad_request(self, client):
        response = client.post(f"{API}/sessions", json={"title": "No community"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "6001"
        assert "X-Correlation-ID" in response.headers

    def test_unparseable_datetime_is_bad_request(self, client):
        response = client.post(f"{API}/sessions", json={
            "communityID": COMMUNITY,
            "scheduledStart": "next tuesday",
        })

        assert response.status_code == 400

    def test_malformed_session_id(self, client):
        response = client.get(f"{API}/sessions/not-an-id")

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "6002"

    def test_unknown_session(self, client):
        response = client.get(f"{API}/sessions/{ObjectId()}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "4001"

    def test_correlation_id_is_echoed(self, client):
        response = client.get(
            f"{API}/sessions/{ObjectId()}",
            headers={"X-Correlation-ID": "req-123"}
        )

        assert response.headers["X-Correlation-ID"] == "req-123"
        assert response.json()["error"]["correlation_id"] == "req-123"

    def test_list_with_paging_metadata(self, client):
        for index in range(3):
            create_session(client, title=f"Session {index}")

        response = client.get(
            f"{API}/communities/{COMMUNITY}/sessions",
            params={"status": "scheduled,in_progress", "page": 0, "limit": 2}
        )

        assert response.status_code == 200
        body = response.json()
        assert [s["title"] for s in body["data"]] == ["Session 2", "Session 1"]
        assert body["totalCount"] == 3
        assert body["totalPages"] == 2
        assert body["hasNext"] is True
        assert body["hasPrev"] is False

    def test_list_unknown_status(self, client):
        response = client.get(f"{API}/communities/{COMMUNITY}/sessions", params={"status": "paused"})

        assert response.status_code == 400

    def test_lifecycle(self, client, add_case, stored_case):
        heard, unheard = add_case(), add_case()
        session_id = create_session(client, heard, unheard)

        response = client.post(f"{API}/sessions/{session_id}/start")
        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"

        response = client.post(f"{API}/sessions/{session_id}/docket/{heard}/activate")
        assert response.status_code == 200

        response = client.post(
            f"{API}/sessions/{session_id}/docket/{unheard}/activate",
            params={"skip": "true"}
        )
        assert response.status_code == 200

        response = client.post(f"{API}/sessions/{session_id}/docket/{heard}/complete")
        statuses = {e["courtCaseID"]: e["status"] for e in response.json()["docket"]}
        assert statuses == {heard: "completed", unheard: "active"}

        response = client.post(f"{API}/sessions/{session_id}/end")
        assert response.status_code == 200
        assert response.json() == {
            "message": "Court session ended",
            "unresolvedCount": 1,
            "status": "cancelled",
        }
        assert stored_case(unheard)["courtSessionID"] == ""

    def test_edit_started_session_rejected(self, client):
        session_id = create_session(client)
        client.post(f"{API}/sessions/{session_id}/start")

        response = client.put(f"{API}/sessions/{session_id}", json={"title": "Renamed"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "4004"

    def test_edit_and_delete(self, client):
        session_id = create_session(client)

        response = client.put(f"{API}/sessions/{session_id}", json={"title": "Renamed"})
        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"

        response = client.delete(f"{API}/sessions/{session_id}")
        assert response.status_code == 200
        assert client.get(f"{API}/sessions/{session_id}").status_code == 404

    def test_activate_case_not_on_docket(self, client):
        session_id = create_session(client)

        response = client.post(f"{API}/sessions/{session_id}/docket/{ObjectId()}/activate")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "4007"


class TestParticipantRoutes:
    def test_join_and_leave(self, client):
        session_id = create_session(client)

        for role in ("spectator", "defendant"):
            response = client.post(
                f"{API}/sessions/{session_id}/participants",
                json={"userID": "user-7", "userName": "Sam Doe", "role": role}
            )
            assert response.status_code == 200

        participants = client.get(f"{API}/sessions/{session_id}").json()["participants"]
        assert [(p["userID"], p["role"]) for p in participants] == [("user-7", "defendant")]

        response = client.delete(f"{API}/sessions/{session_id}/participants/user-7")
        assert response.status_code == 200
        response = client.delete(f"{API}/sessions/{session_id}/participants/user-7")
        assert response.status_code == 200

        assert client.get(f"{API}/sessions/{session_id}").json()["participants"] == []

    def test_join_requires_user(self, client):
        session_id = create_session(client)

        response = client.post(f"{API}/sessions/{session_id}/participants", json={"userID": "  "})

        assert response.status_code == 400


class TestChatRoutes:
    def test_post_and_list(self, client):
        session_id = create_session(client)

        for text in ("Court is now in session.", "First case, please."):
            response = client.post(
                f"{API}/sessions/{session_id}/chat",
                json={"userID": "judge-1", "userName": "Judge Rivera", "role": "judge", "message": text}
            )
            assert response.status_code == 201
            assert response.json()["chatMessage"]["message"] == text

        body = client.get(f"{API}/sessions/{session_id}/chat").json()
        assert [m["message"] for m in body["data"]] == [
            "Court is now in session.",
            "First case, please.",
        ]
        assert body["totalCount"] == 2
        assert body["limit"] == 50

    def test_post_empty_message(self, client):
        session_id = create_session(client)

        response = client.post(
            f"{API}/sessions/{session_id}/chat",
            json={"userID": "judge-1", "message": "  "}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "5001"

    def test_post_to_unknown_session(self, client):
        response = client.post(
            f"{API}/sessions/{ObjectId()}/chat",
            json={"userID": "judge-1", "message": "hello"}
        )

        assert response.status_code == 404


class TestHealthRoute:
    def test_health_reports_error_counts(self, client):
        client.get(f"{API}/sessions/{ObjectId()}")
        client.get(f"{API}/sessions/not-an-id")

        response = client.get("/health")

        # No MongoDB connection is opened without the lifespan
        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "degraded"
        assert body["errors"]["total_errors"] == 2
        assert body["errors"]["error_counts_by_code"] == {"4001": 1, "6002": 1}
