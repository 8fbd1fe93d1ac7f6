from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient

# Router under test
from forensic_report.api import routes as routes_module
from forensic_report.generation_logic.static_content import WORKFLOW_SECTIONS
from forensic_report.generation_logic.workflow import SessionStore
from forensic_report.models.report_models import WeatherData, WeatherResult
from forensic_report.services.llm import LLMError

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def fastapi_app():
    """Return a FastAPI app with the router under test."""
    app = FastAPI()
    app.include_router(routes_module.router)
    return app


@pytest.fixture()
def client(fastapi_app):
    return TestClient(fastapi_app)


@pytest.fixture()
def mock_llm(monkeypatch):
    mock = AsyncMock(return_value="Generated text.")
    monkeypatch.setattr("forensic_report.services.section_generator.call_llm", mock)
    return mock


@pytest.fixture()
def mock_weather(monkeypatch):
    mock = AsyncMock(return_value=WeatherResult(success=True, data=WeatherData(note="Weather data not found for a future date: 2099-01-01")))
    monkeypatch.setattr("forensic_report.services.section_generator.fetch_weather", mock)
    return mock


@pytest.fixture()
def store(monkeypatch, make_generator):
    generate = make_generator()
    store = SessionStore(generate=generate)
    monkeypatch.setattr(routes_module, "session_store", store)
    store.generate = generate
    return store


# ---------------------------------------------------------------------------
# /api/generate-report
# ---------------------------------------------------------------------------


def test_preflight_returns_cors_headers(client):
    resp = client.options("/api/generate-report")

    assert resp.status_code == status.HTTP_200_OK
    assert resp.text == ""
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert resp.headers["access-control-allow-headers"] == "Content-Type"


def test_generate_report_success(client, mock_llm, mock_weather):
    body = {"section": "meteorologist", "context": {"dateOfLoss": "2099-01-01", "address": "123 Main St"}}

    resp = client.post("/api/generate-report", json=body)

    assert resp.status_code == status.HTTP_200_OK
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.json() == {
        "section": "Generated text.",
        "sectionName": "meteorologist",
        "weatherData": {"note": "Weather data not found for a future date: 2099-01-01"},
    }
    assert "Weather Data Note: Weather data not found for a future date: 2099-01-01" in mock_llm.call_args.args[0]


def test_generate_report_malformed_body(client, mock_llm, mock_weather):
    resp = client.post("/api/generate-report", content=b"{not json", headers={"Content-Type": "application/json"})

    assert resp.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.json()["error"] == "Failed to generate report section"
    assert resp.json()["details"]
    mock_llm.assert_not_called()


def test_generate_report_generation_failure(client, mock_llm, mock_weather):
    mock_llm.side_effect = LLMError("OpenAI API error: bad gateway")

    resp = client.post("/api/generate-report", json={"section": "introduction", "context": {}})

    assert resp.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert resp.json() == {"error": "Failed to generate report section", "details": "OpenAI API error: bad gateway"}
    assert resp.headers["access-control-allow-origin"] == "*"


def test_list_sections(client):
    resp = client.get("/api/sections")

    assert resp.status_code == status.HTTP_200_OK
    data = resp.json()
    assert [item["id"] for item in data] == [spec.id.value for spec in WORKFLOW_SECTIONS]
    assert data[0] == {"id": "openingletter", "title": "Opening Letter", "requiresWeather": False}
    assert data[6] == {"id": "meteorologist", "title": "Meteorologist Report", "requiresWeather": True}


# ---------------------------------------------------------------------------
# /api/sessions
# ---------------------------------------------------------------------------


def test_session_lifecycle(client, store, fact_sheet_data):
    resp = client.post("/api/sessions", json={"context": fact_sheet_data})
    assert resp.status_code == status.HTTP_201_CREATED
    view = resp.json()
    session_id = view["sessionId"]
    assert view["state"] == "reviewing"
    assert view["draft"] == "openingletter text"

    resp = client.post(f"/api/sessions/{session_id}/regenerate", json={"customInstructions": "warmer tone"})
    assert resp.json()["draft"] == "openingletter text (warmer tone)"

    resp = client.get(f"/api/sessions/{session_id}/document")
    assert resp.status_code == status.HTTP_409_CONFLICT

    for _ in WORKFLOW_SECTIONS:
        resp = client.post(f"/api/sessions/{session_id}/accept")
        assert resp.status_code == status.HTTP_200_OK
    assert resp.json()["state"] == "complete"

    resp = client.get(f"/api/sessions/{session_id}/document")
    assert resp.status_code == status.HTTP_200_OK
    document = resp.json()["document"]
    assert document.startswith("## Opening Letter\n\nopeningletter text (warmer tone)")
    assert "## Limitations\n\nlimitations text" in document

    resp = client.post(f"/api/sessions/{session_id}/accept")
    assert resp.status_code == status.HTTP_409_CONFLICT


def test_session_accept_failure_keeps_cursor(client, store):
    store.generate.failing.add("introduction")
    session_id = client.post("/api/sessions", json={"context": {}}).json()["sessionId"]

    resp = client.post(f"/api/sessions/{session_id}/accept")

    assert resp.status_code == status.HTTP_200_OK
    view = resp.json()
    assert view["cursor"] == 0
    assert view["accepted"] == {"openingletter": "openingletter text"}
    assert "introduction" in view["lastError"]


def test_session_failed_start_can_be_retried(client, store):
    store.generate.failing.add("openingletter")
    view = client.post("/api/sessions", json={"context": {}}).json()
    assert view["state"] == "idle"
    assert view["lastError"]

    store.generate.failing.clear()
    resp = client.post(f"/api/sessions/{view['sessionId']}/start")
    assert resp.json()["state"] == "reviewing"


def test_unknown_session(client, store):
    assert client.get("/api/sessions/missing").status_code == status.HTTP_404_NOT_FOUND
    assert client.post("/api/sessions/missing/accept").status_code == status.HTTP_404_NOT_FOUND


def test_discard_session(client, store):
    session_id = client.post("/api/sessions", json={"context": {}}).json()["sessionId"]

    assert client.delete(f"/api/sessions/{session_id}").status_code == status.HTTP_204_NO_CONTENT
    assert client.get(f"/api/sessions/{session_id}").status_code == status.HTTP_404_NOT_FOUND


def test_busy_session_is_rejected(client, store, monkeypatch):
    session_id = client.post("/api/sessions", json={"context": {}}).json()["sessionId"]
    workflow = store.get(session_id)
    monkeypatch.setattr(workflow, "_busy", True)

    resp = client.post(f"/api/sessions/{session_id}/accept")

    assert resp.status_code == status.HTTP_409_CONFLICT
    assert "in progress" in resp.json()["detail"]
