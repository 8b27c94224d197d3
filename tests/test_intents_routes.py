"""Tests for the intent analysis routes."""

import pytest
from fastapi.testclient import TestClient

from leadwire.api.factory import create_app

from helpers import auth_headers


@pytest.fixture
def client(auth_env, pipeline_fixture):
    return TestClient(create_app(role="public"))


def test_analyze_requires_auth(client):
    response = client.post("/intents/analyze", json={"text": "Oi"})
    assert response.status_code == 401


def test_analyze(client):
    response = client.post(
        "/intents/analyze",
        json={"text": "Preciso de 5 rolamentos 6204, qual o valor?"},
        headers=auth_headers(),
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["intent"] == "QUOTE_REQUEST"
    assert data["source"] == "rule-based"
    assert 0.0 <= data["confidence"] <= 1.0


def test_analyze_has_no_side_effects(client, pipeline_fixture):
    client.post(
        "/intents/analyze",
        json={"text": "Isso é um absurdo, quero falar com o gerente!"},
        headers=auth_headers(),
    )
    assert pipeline_fixture.notification_store.rows == []
    assert pipeline_fixture.lead_store.leads == []
    assert pipeline_fixture.audit_store.events == []


def test_analyze_missing_text(client):
    response = client.post("/intents/analyze", json={}, headers=auth_headers())
    assert response.status_code == 422


def test_analyze_conversation_uses_incoming_messages(client):
    response = client.post(
        "/intents/analyze-conversation",
        json={
            "messages": [
                {"direction": "outgoing", "text": "Posso ajudar?"},
                {"direction": "incoming", "text": "Produto com defeito, que absurdo"},
            ]
        },
        headers=auth_headers(),
    )
    assert response.status_code == 200
    assert response.json()["data"]["intent"] == "COMPLAINT"


def test_analyze_conversation_rejects_unknown_direction(client):
    response = client.post(
        "/intents/analyze-conversation",
        json={"messages": [{"direction": "sideways", "text": "Oi"}]},
        headers=auth_headers(),
    )
    assert response.status_code == 422
