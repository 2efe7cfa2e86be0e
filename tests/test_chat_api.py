import httpx
import requests
from fastapi.testclient import TestClient

from harmony_relay.models.chat import Message

from helpers import FakeResponse, FakeSession, ndjson, parse_sse


def chat_body(**extra):
    body = {"provider": "ollama", "model": "llama3", "sessionId": "s1", "message": "hi"}
    body.update(extra)
    return body


def test_stream_success_frames(make_app, store):
    with TestClient(make_app()) as client:
        r = client.post("/api/chat", json=chat_body())
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    assert r.headers["cache-control"] == "no-cache, no-transform"
    assert r.text.endswith("\n\n")
    assert parse_sse(r.text) == [
        {"delta": "he"},
        {"delta": "llo"},
        {"done": True, "content": "hello", "tokens": 2},
    ]
    assert store.read("s1") == [Message(role="user", content="hi"), Message(role="assistant", content="hello")]


def test_stream_backend_failure_sends_single_error_frame(make_app, store):
    app = make_app(lambda request: httpx.Response(500, json={"error": "model 'llama3' not found"}))
    with TestClient(app) as client:
        r = client.post("/api/chat", json=chat_body())
    assert r.status_code == 200
    assert parse_sse(r.text) == [{"error": "model 'llama3' not found"}]
    assert store.read("s1") == []


def test_stream_mid_stream_error(make_app, store):
    body = ndjson({"message": {"content": "he"}}, {"error": "oops"})
    with TestClient(make_app(lambda request: httpx.Response(200, content=body))) as client:
        r = client.post("/api/chat", json=chat_body())
    assert parse_sse(r.text) == [{"delta": "he"}, {"error": "oops"}]
    assert store.read("s1") == []


def test_stream_bad_requests_are_json_400(make_app, store):
    with TestClient(make_app()) as client:
        r1 = client.post("/api/chat", json=chat_body(provider="openai"))
        r2 = client.post("/api/chat", json=chat_body(message="   "))
        r3 = client.post("/api/chat", json=chat_body(sessionId=None))
        r4 = client.post("/api/chat", content=b"{not json", headers={"content-type": "application/json"})
    assert (r1.status_code, r1.json()) == (400, {"error": "Unsupported provider: openai"})
    assert (r2.status_code, r2.json()) == (400, {"error": "Missing message content"})
    assert (r3.status_code, r3.json()) == (400, {"error": "Missing sessionId"})
    assert (r4.status_code, r4.json()) == (400, {"error": "Invalid JSON payload"})
    assert store.stats() == {"sessions": 0, "messages": 0}


def test_complete_once(make_app):
    session = FakeSession(post=FakeResponse(200, {"message": {"role": "assistant", "content": "Summary."}, "done": True}))
    with TestClient(make_app(session=session)) as client:
        r = client.post("/api/chat/complete", json={
            "provider": "ollama",
            "model": "llama3",
            "messages": [{"role": "user", "content": "summarize"}, {"role": "system", "content": "be terse"}],
        })
    assert r.status_code == 200
    assert r.json() == {"message": {"role": "assistant", "content": "Summary."}}
    method, url, payload = session.calls[0]
    assert (method, url) == ("POST", "http://ollama.test/api/chat")
    assert payload["stream"] is False
    assert [m["role"] for m in payload["messages"]] == ["system", "user"]


def test_complete_once_errors(make_app):
    refused = FakeSession(post=requests.exceptions.ConnectionError("refused"))
    rejected = FakeSession(post=FakeResponse(404, {"error": "model 'x' not found"}))
    with TestClient(make_app(session=refused)) as client:
        r = client.post("/api/chat/complete", json={"provider": "ollama", "model": "x",
                                                    "messages": [{"role": "user", "content": "q"}]})
        assert r.status_code == 502
        assert r.json()["error"].startswith("Failed to contact Ollama")
        r = client.post("/api/chat/complete", json={"provider": "ollama", "model": "x", "messages": []})
        assert (r.status_code, r.json()) == (400, {"error": "Missing messages"})
    with TestClient(make_app(session=rejected)) as client:
        r = client.post("/api/chat/complete", json={"provider": "ollama", "model": "x",
                                                    "messages": [{"role": "user", "content": "q"}]})
    assert (r.status_code, r.json()) == (404, {"error": "model 'x' not found"})


def test_providers_listed(make_app):
    tags = {"models": [{"name": "llama3:latest", "model": "llama3:latest", "modified_at": "2024-01-01"}]}
    with TestClient(make_app(session=FakeSession(get=FakeResponse(200, tags)))) as client:
        r = client.get("/api/chat/providers")
    assert r.status_code == 200
    providers = r.json()["providers"]
    assert providers[0] == {
        "id": "ollama",
        "label": "Ollama (local)",
        "available": True,
        "models": [{"id": "llama3:latest", "label": "llama3:latest"}],
    }
    assert providers[1]["id"] == "openai"
    assert providers[1]["available"] is False
    assert providers[1]["error"] == "Provider coming soon"


def test_providers_when_ollama_is_down(make_app):
    session = FakeSession(get=requests.exceptions.ConnectionError("refused"))
    with TestClient(make_app(session=session)) as client:
        r = client.get("/api/chat/providers")
    ollama = r.json()["providers"][0]
    assert ollama["available"] is False
    assert ollama["models"] == []
    assert "Failed to reach Ollama" in ollama["error"]


def test_health_store_reflects_conversations(make_app):
    with TestClient(make_app()) as client:
        client.post("/api/chat", json=chat_body())
        r = client.get("/health/store")
        msgs = client.get("/health/store/messages", params={"sid": "s1"}).json()
        ping = client.get("/health/ping").json()
    assert r.json() == {"ok": True, "sessions": 1, "messages": 2}
    assert msgs == [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]
    assert ping == {"ok": True}


def test_health_routes_lists_registered_paths(make_app):
    with TestClient(make_app()) as client:
        routes = client.get("/health/routes").json()["routes"]
    paths = {r["path"] for r in routes}
    assert {"/api/chat", "/api/chat/complete", "/api/agents/{agent_id}", "/health/store/messages"} <= paths
