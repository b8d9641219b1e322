"""
Integration tests for the agenda workflow.

Runs the FastAPI app with the real dependency chain (webhook client,
repository, agenda service) against a scripted upstream served through
httpx.MockTransport.
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from visit_agenda.api.dependencies import get_http_client
from visit_agenda.api.main import app
from visit_agenda.config import Settings, get_settings

REFERENCE_NOW = "2025-01-10T09:00:00+01:00"

EXTRACTION = {
    "participants": ["Jean Dupond", "Marie M."],
    "start": "demain 14h",
    "duration_minutes": 30,
    "location": "Domicile",
    "title": "Pansement",
}

DIRECTORY = [
    {"id": 1, "name": "Jean Dupont", "email": "jean@example.com", "phone": False},
    {"id": 2, "name": "Marie Martin", "email": False, "phone": False},
    {"id": 3, "name": "Marie Morin", "email": False, "phone": False},
]


class ScriptedUpstream:
    """
    Webhook server double.

    Each route answers from its own list in order; the last answer repeats.
    """

    def __init__(self, routes: dict):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = "/" + request.url.path.rsplit("/", 1)[-1]
        answers = self.routes.get(path)
        if not answers:
            return httpx.Response(404)
        seen = sum(1 for r in self.requests if r.url.path == request.url.path)
        status_code, body = answers[min(seen, len(answers)) - 1]
        return httpx.Response(status_code, json=body)

    def bodies(self, path: str) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith(path)]


@pytest.fixture
def flow_settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def upstream(flow_settings) -> ScriptedUpstream:
    s = flow_settings
    return ScriptedUpstream({
        s.extraction_path: [(200, {"output": json.dumps(EXTRACTION)})],
        s.directory_path: [(200, DIRECTORY)],
        s.availability_path: [(200, {"available": False}), (200, {"available": True})],
        s.create_event_path: [(200, {"id": 101})],
        s.find_event_path: [(200, [{"found": True, "event": {"id": 101}}])],
        s.delete_event_path: [(200, {"success": True})],
        s.create_contact_path: [(200, {"id": 40})],
    })


@pytest.fixture
def client(upstream, flow_settings):
    async def http_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(upstream)) as http:
            yield http

    app.dependency_overrides[get_http_client] = http_client
    app.dependency_overrides[get_settings] = lambda: flow_settings
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.mark.integration
class TestCreateFlow:
    """Dictation to created event, through a conflict and a disambiguation."""

    def test_prepare_disambiguate_conflict_accept(self, client, upstream, flow_settings):
        # 1. Prepare
        response = client.post("/agenda/prepare", json={
            "text": "RDV demain 14h avec Jean Dupond et Marie M.",
            "reference_now": REFERENCE_NOW,
        })
        assert response.status_code == 200
        draft = response.json()

        assert draft["needs_disambiguation"] is True
        jean, marie = draft["participants"]
        assert jean["resolved_id"] == 1
        assert marie["status"] == "ambiguous"
        assert {c["id"] for c in marie["candidates"]} == {2, 3}
        assert upstream.bodies(flow_settings.extraction_path)[0]["current_day"] == "Friday"

        # 2. Confirm with a selection; 14:00 is busy
        response = client.post("/agenda/confirm", json={
            "event": draft["event"],
            "participants": draft["participants"],
            "warnings": draft["warnings"],
            "selections": {"Marie M.": 2},
        })
        assert response.status_code == 200
        result = response.json()

        assert result["status"] == "conflict"
        assert result["suggestion"] == {
            "start": "2025-01-11T14:30:00+01:00",
            "stop": "2025-01-11T15:00:00+01:00",
        }
        assert result["draft"]["participant_ids"] == [1, 2]
        assert upstream.bodies(flow_settings.create_event_path) == []

        # 3. Accept the suggestion
        reviewed = result["draft"]
        reviewed["event"]["start"] = result["suggestion"]["start"]
        reviewed["event"]["stop"] = result["suggestion"]["stop"]
        response = client.post("/agenda/confirm", json={
            "event": reviewed["event"],
            "participants": reviewed["participants"],
            "warnings": reviewed["warnings"],
        })
        assert response.status_code == 200
        created = response.json()

        assert created["status"] == "created"
        assert created["summary"]["event_id"] == 101
        assert created["summary"]["participants"] == "Jean Dupont, Marie Martin"

        (body,) = upstream.bodies(flow_settings.create_event_path)
        assert body["name"] == "Pansement"
        assert body["start"] == "2025-01-11 14:30:00"
        assert body["stop"] == "2025-01-11 15:00:00"
        assert body["partner_ids"] == [1, 2]
        assert body["location"] == "Domicile"

    def test_directory_down_keeps_draft(self, client, upstream, flow_settings):
        upstream.routes[flow_settings.directory_path] = [(400, {"error": "bad"})]

        response = client.post("/agenda/prepare", json={
            "text": "RDV demain 14h avec Jean Dupond",
            "reference_now": REFERENCE_NOW,
        })

        assert response.status_code == 200
        draft = response.json()
        assert draft["warnings"][0] == "Annuaire des participants indisponible"
        assert draft["participant_ids"] == []
        assert draft["event"]["start"] == "2025-01-11T14:00:00+01:00"


@pytest.mark.integration
class TestChangeFlow:
    """Cancel and contact creation against the webhooks."""

    def test_cancel_by_original_start(self, client, upstream, flow_settings):
        response = client.post("/agenda/cancel", json={
            "original_start": "2025-01-11T14:30:00",
            "participant_ids": [1, 2],
        })

        assert response.status_code == 200
        assert response.json()["event_id"] == 101
        assert upstream.bodies(flow_settings.find_event_path) == [
            {"original_start": "2025-01-11 14:30:00", "participant_ids": [1, 2]},
        ]
        assert upstream.bodies(flow_settings.delete_event_path) == [{"event_id": 101}]

    def test_cancel_rejected_upstream(self, client, upstream, flow_settings):
        upstream.routes[flow_settings.delete_event_path] = [(404, {"error": "gone"})]

        response = client.post("/agenda/cancel", json={"event_id": 101})

        assert response.status_code == 502
        failure = response.json()["failure"]
        assert failure["status_code"] == 404
        assert "gone" in failure["body"]

    def test_create_contact(self, client, upstream, flow_settings):
        response = client.post("/agenda/contacts", json={"name": "Sophie Bernard"})

        assert response.status_code == 201
        assert response.json()["id"] == 40
        assert upstream.bodies(flow_settings.create_contact_path)[0]["name"] == "Sophie Bernard"
