import json

import httpx
import pytest
from fastapi.testclient import TestClient

from chat_relay.main import create_app


def test_chat_returns_first_choice(settings, stub_upstream) -> None:
    seen = stub_upstream(
        lambda request: httpx.Response(200, json={"choices": [{"message": {"content": "4"}}]})
    )
    client = TestClient(create_app(settings))

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "2+2?"}]})

    assert response.status_code == 200
    assert response.json() == {"reply": "4"}

    assert len(seen) == 1
    upstream = seen[0]
    assert str(upstream.url) == "https://upstream.test/v1/chat/completions"
    assert upstream.headers["authorization"] == "Bearer test-key"
    body = json.loads(upstream.content)
    assert body["model"] == "gpt-3.5-turbo"
    assert body["messages"] == [{"role": "user", "content": "2+2?"}]


def test_chat_forwards_full_history_in_order(settings, stub_upstream) -> None:
    seen = stub_upstream(
        lambda request: httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})
    )
    client = TestClient(create_app(settings))
    messages = [
        {"role": "system", "content": ""},
        {"role": "assistant", "content": "Hello, I'm ChatGPT! Ask me anything!"},
        {"role": "user", "content": "hi"},
    ]

    response = client.post("/api/chat", json={"messages": messages})

    assert response.status_code == 200
    assert json.loads(seen[0].content)["messages"] == messages


def test_chat_upstream_error_status_is_500(settings, stub_upstream) -> None:
    stub_upstream(lambda request: httpx.Response(401, json={"error": {"message": "bad key"}}))
    client = TestClient(create_app(settings))

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 500
    assert response.json() == {"error": "Error communicating with OpenAI"}
    assert "bad key" not in response.text


def test_chat_network_error_is_500(settings, stub_upstream) -> None:
    def _down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    stub_upstream(_down)
    client = TestClient(create_app(settings))

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 500
    assert response.json() == {"error": "Error communicating with OpenAI"}


def test_chat_without_choices_is_500(settings, stub_upstream) -> None:
    stub_upstream(lambda request: httpx.Response(200, json={"choices": []}))
    client = TestClient(create_app(settings))

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 500


def test_chat_missing_messages_is_400(settings, stub_upstream) -> None:
    seen = stub_upstream(lambda request: httpx.Response(200, json={}))
    client = TestClient(create_app(settings))

    missing = client.post("/api/chat", json={})
    wrong_type = client.post("/api/chat", json={"messages": "hello"})
    bad_role = client.post("/api/chat", json={"messages": [{"role": "robot", "content": "x"}]})

    for response in (missing, wrong_type, bad_role):
        assert response.status_code == 400
        assert "messages" in response.json()["error"]
    assert seen == []


def test_health_does_not_expose_credential(settings) -> None:
    client = TestClient(create_app(settings))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "model": "gpt-3.5-turbo"}
    assert "test-key" not in response.text
    assert response.headers["x-request-id"]


def test_unknown_route_uses_error_body(settings) -> None:
    client = TestClient(create_app(settings))

    response = client.get("/api/nope")

    assert response.status_code == 404
    assert "error" in response.json()


@pytest.mark.parametrize(
    "body",
    [
        {"choices": {"x": 1}},
        {"choices": [{"message": "hi"}]},
        {"choices": ["hi"]},
        {"choices": "hi"},
    ],
)
def test_chat_malformed_upstream_body_is_json_500(settings, stub_upstream, body) -> None:
    stub_upstream(lambda request: httpx.Response(200, json=body))
    client = TestClient(create_app(settings), raise_server_exceptions=False)

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 500
    assert response.json() == {"error": "Error communicating with OpenAI"}


def test_chat_unexpected_error_still_returns_json(settings, monkeypatch) -> None:
    async def _explode(*_args, **_kwargs):
        raise RuntimeError("bug")

    monkeypatch.setattr("chat_relay.llm.create_chat_completion", _explode)
    client = TestClient(create_app(settings), raise_server_exceptions=False)

    response = client.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})

    assert response.status_code == 500
    assert response.json() == {"error": "Error communicating with OpenAI"}
    assert "bug" not in response.text
