"""Tests for the HTTP chat API."""

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.core.services.chat_agent import ChatAgent
from src.core.services.embedding import EmbeddingService

from tests.fakes import FakeEmbeddingProvider


@pytest.fixture
def client(make_agent):
    agent = make_agent([FakeEmbeddingProvider({"machine learning": [1.0, 0.0]})], top_k=1)
    with TestClient(create_app(agent)) as test_client:
        yield test_client


@pytest.fixture
def unready_client(file_store, tmp_path):
    agent = ChatAgent(
        store=file_store,
        embedding_service=EmbeddingService([]),
        readiness_file=tmp_path / "missing-marker.json",
    )
    with TestClient(create_app(agent)) as test_client:
        yield test_client


def test_health_reports_agent_state(client, unready_client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["agentReady"] is True
    assert "timestamp" in body

    assert unready_client.get("/health").json()["agentReady"] is False


def test_chat_returns_answer_with_camel_case_metadata(client):
    response = client.post("/chat", json={"message": "What is ML?"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    data = body["data"]
    assert data["conversationId"]
    assert data["sources"][0]["title"] == "A"
    assert data["sources"][0]["url"] == "https://example.com/a"

    metadata = data["metadata"]
    assert metadata["searchResults"] == 1
    assert metadata["retrievalMode"] == "vector"
    assert metadata["generationMode"] == "mock"
    assert metadata["degraded"] is True
    assert metadata["turns"] == 1


def test_conversation_continues_and_history_is_served(client):
    first = client.post("/chat", json={"message": "What is ML?", "conversationId": "conv-1"}).json()
    client.post("/chat", json={"message": "and python?", "conversationId": "conv-1"})

    assert first["data"]["conversationId"] == "conv-1"

    history = client.get("/conversations/conv-1").json()
    assert history["conversationId"] == "conv-1"
    assert [t["query"] for t in history["history"]] == ["What is ML?", "and python?"]
    assert "contextUsed" in history["history"][0]

    assert client.get("/conversations/unknown").json()["history"] == []


@pytest.mark.parametrize("payload", [
    {},
    {"message": ""},
    {"message": "   "},
    {"message": 123},
])
def test_invalid_messages_are_rejected(client, payload):
    response = client.post("/chat", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


def test_chat_is_unavailable_until_agent_ready(unready_client):
    response = unready_client.post("/chat", json={"message": "What is ML?"})

    assert response.status_code == 503
    assert response.json() == {
        "error": "Chat agent not ready",
        "message": "Please wait for agent initialization to complete",
    }


def test_unknown_route_returns_json_404(client):
    response = client.get("/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Not found", "message": "The requested endpoint does not exist"}


def test_bearer_token_is_enforced_when_configured(client, monkeypatch):
    monkeypatch.setattr("src.config.settings.settings.BEARER_TOKEN", "secret")

    assert client.post("/chat", json={"message": "What is ML?"}).status_code == 401
    authorized = client.post(
        "/chat",
        json={"message": "What is ML?"},
        headers={"Authorization": "Bearer secret"},
    )
    assert authorized.status_code == 200
    assert client.get("/health").status_code == 200


def test_chat_failure_returns_route_specific_500(make_agent, monkeypatch):
    agent = make_agent([])

    async def broken_chat(message, conversation_id=None):
        raise RuntimeError("generator crashed")

    with TestClient(create_app(agent)) as test_client:
        monkeypatch.setattr(agent, "chat", broken_chat)
        response = test_client.post("/chat", json={"message": "What is ML?"})

    assert response.status_code == 500
    assert response.json() == {
        "error": "Internal server error",
        "message": "Failed to process chat request",
    }
