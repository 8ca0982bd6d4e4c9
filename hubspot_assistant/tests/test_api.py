"""Tests for the HTTP routes."""

import json

import pytest
from fastapi.testclient import TestClient

from hubspot_assistant.config import Settings
from hubspot_assistant.errors import ConfigurationError, DispatchFailed, ModelUnavailable
from hubspot_assistant.main import create_app
from hubspot_assistant.services.pipeline import INVALID_REQUEST_MESSAGE


@pytest.fixture
def client_for(make_pipeline):
    def _client(*replies):
        pipeline = make_pipeline(*replies)
        return TestClient(create_app(pipeline=pipeline)), pipeline
    return _client


def test_chat_prose(client_for):
    """Test a prose reply is returned with no command or result."""
    client, _ = client_for("Bonjour !")
    with client:
        response = client.post("/api/chat", json={"userText": "Salut"})
    assert response.status_code == 200
    assert response.json() == {"replyText": "Bonjour !", "command": None, "result": None}


def test_chat_accepts_legacy_field(client_for):
    """Test the front-end's userQuery field is accepted."""
    client, _ = client_for("Bonjour !")
    response = client.post("/api/chat", json={"userQuery": "Salut"})
    assert response.status_code == 200
    assert response.json()["replyText"] == "Bonjour !"


@pytest.mark.parametrize("body", [{}, {"userText": ""}, {"userText": None}])
def test_chat_rejects_empty_text(client_for, body):
    """Test missing or empty text gives 400 without calling the model."""
    client, pipeline = client_for("unused")
    response = client.post("/api/chat", json=body)
    assert response.status_code == 400
    assert "userText" in response.json()["error"]
    assert pipeline.llm.calls == []


def test_chat_rejects_non_string_text(client_for):
    """Test a numeric userText gives 400 with an error message."""
    client, pipeline = client_for("unused")
    response = client.post("/api/chat", json={"userText": 42})
    assert response.status_code == 400
    assert response.json() == {"error": INVALID_REQUEST_MESSAGE}
    assert pipeline.llm.calls == []


def test_chat_rejects_malformed_json(client_for):
    """Test a body that is not JSON gives 400 with an error message."""
    client, pipeline = client_for("unused")
    response = client.post(
        "/api/chat", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert response.json() == {"error": INVALID_REQUEST_MESSAGE}
    assert pipeline.llm.calls == []


def test_chat_command_response_shape(client_for, executor):
    """Test a dispatched command is serialised with camelCase keys."""
    reply = json.dumps({
        "action": "create_company",
        "data": {"command": {"name": "hubspot.createCompany", "args": {"properties": {"name": "Acme"}}}},
    })
    client, _ = client_for(reply)
    body = client.post("/api/chat", json={"userText": "Crée Acme"}).json()
    assert body["replyText"].startswith("Entreprise créée avec succès: Acme")
    assert body["command"]["action"] == "create_company"
    assert body["command"]["commandName"] == "hubspot.createCompany"
    assert body["result"] == {"succeeded": True, "payload": {"id": "101"}, "errorMessage": None}


def test_chat_model_unavailable(client_for):
    """Test an unreachable model gives 503 with the error message."""
    client, _ = client_for(ModelUnavailable("Le service d'IA est indisponible."))
    response = client.post("/api/chat", json={"userText": "Salut"})
    assert response.status_code == 503
    assert response.json() == {"error": "Le service d'IA est indisponible."}


def test_hubspot_route_success(client_for, executor):
    """Test a direct command is run and confirmed."""
    client, _ = client_for()
    command = {"action": "search_companies", "filters": {"term": "Acme"}}
    response = client.post("/api/chat/hubspot", json={"command": command})
    body = response.json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["message"].startswith("Résultats de recherche pour: Acme")
    assert executor.sent[0][0] == "hubspot.searchCompanies"


def test_hubspot_route_failure(client_for, executor):
    """Test an executor failure is reported in the body."""
    executor.error = DispatchFailed("timeout")
    client, _ = client_for()
    command = {"action": "create_company", "properties": {"name": "Acme"}}
    body = client.post("/api/chat/hubspot", json={"command": command}).json()
    assert body["success"] is False
    assert body["error"] == "timeout"


def test_hubspot_route_rejects_invalid_command(client_for, executor):
    """Test a command missing required fields gives 400."""
    client, _ = client_for()
    response = client.post("/api/chat/hubspot", json={"command": {"action": "create_company"}})
    assert response.status_code == 400
    assert executor.sent == []


def test_hubspot_route_rejects_missing_command(client_for, executor):
    """Test a body without a command gives 400 with an error message."""
    client, _ = client_for()
    response = client.post("/api/chat/hubspot", json={})
    assert response.status_code == 400
    assert "error" in response.json()
    assert executor.sent == []


def test_health_and_ready(client_for, executor):
    """Test probes report health and the executor connection."""
    client, _ = client_for()
    with client:
        assert client.get("/health").json()["status"] == "healthy"
        ready = client.get("/ready").json()
        assert ready["mcp_connected"] is True
    assert executor.connected is False


def test_missing_configuration_is_fatal():
    """Test app creation fails when required settings are absent."""
    with pytest.raises(ConfigurationError) as exc:
        create_app(settings=Settings(openai_api_key="sk-test"))
    assert "SMITHERY_API_KEY" in exc.value.message
