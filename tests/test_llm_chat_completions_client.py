from __future__ import annotations

import asyncio

import httpx
import pytest

from chronicle.modules.llm_boundary import client

BASE_URL = "https://gateway.example/v1"


class _FakeResponse:
    def __init__(self, *, status_code: int, payload: dict | None = None):
        self.status_code = status_code
        self._payload = payload or {}
        self.request = httpx.Request("POST", f"{BASE_URL}/chat/completions")

    def json(self) -> dict:
        return self._payload


class _FakeAsyncClient:
    scenarios: list[object] = []
    requests: list[dict] = []

    def __init__(self, *, timeout):
        self.timeout = timeout

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def post(self, url: str, *, headers: dict, json: dict):
        _FakeAsyncClient.requests.append({"url": url, "headers": headers, "json": json})
        if not _FakeAsyncClient.scenarios:
            raise RuntimeError("no fake scenario configured")
        outcome = _FakeAsyncClient.scenarios.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _make_payload(content: str) -> dict:
    return {"choices": [{"message": {"content": content}}]}


def _call(**overrides) -> str:
    kwargs = {
        "api_key": "k",
        "base_url": BASE_URL + "/",
        "model": "google/gemini-2.5-flash-lite",
        "messages": [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}],
        "timeout_s": 5.0,
    }
    kwargs.update(overrides)
    return asyncio.run(client.call_chat_completions(**kwargs))


def test_posts_payload_to_chat_completions_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeAsyncClient.scenarios = [_FakeResponse(status_code=200, payload=_make_payload('{"updates":[]}'))]
    _FakeAsyncClient.requests = []
    monkeypatch.setattr(client.httpx, "AsyncClient", _FakeAsyncClient)

    content = _call(temperature=0.3, max_tokens=1024)

    assert content == '{"updates":[]}'
    req = _FakeAsyncClient.requests[0]
    assert req["url"] == "https://gateway.example/v1/chat/completions"
    assert req["headers"]["Authorization"] == "Bearer k"
    assert set(req["json"].keys()) == {"model", "messages", "temperature", "max_tokens"}
    assert req["json"]["temperature"] == 0.3
    assert req["json"]["max_tokens"] == 1024
    assert [m["role"] for m in req["json"]["messages"]] == ["system", "user"]


def test_drops_messages_with_unknown_roles(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeAsyncClient.scenarios = [_FakeResponse(status_code=200, payload=_make_payload("ok"))]
    _FakeAsyncClient.requests = []
    monkeypatch.setattr(client.httpx, "AsyncClient", _FakeAsyncClient)

    _call(messages=[{"role": "tool", "content": "x"}, "junk", {"role": "USER", "content": "hello"}])

    req = _FakeAsyncClient.requests[0]
    assert req["json"]["messages"] == [{"role": "user", "content": "hello"}]
    assert "max_tokens" not in req["json"]


def test_retries_on_non_200_then_succeeds(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeAsyncClient.scenarios = [
        _FakeResponse(status_code=500, payload={"error": "boom"}),
        _FakeResponse(status_code=200, payload=_make_payload("fine")),
    ]
    _FakeAsyncClient.requests = []
    monkeypatch.setattr(client.httpx, "AsyncClient", _FakeAsyncClient)

    assert _call() == "fine"
    assert len(_FakeAsyncClient.requests) == 2


def test_retries_on_empty_content_and_raises_when_exhausted(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeAsyncClient.scenarios = [
        _FakeResponse(status_code=200, payload=_make_payload("   ")),
        _FakeResponse(status_code=200, payload={"choices": []}),
    ]
    _FakeAsyncClient.requests = []
    monkeypatch.setattr(client.httpx, "AsyncClient", _FakeAsyncClient)

    with pytest.raises(client.LLMCallError):
        _call(max_attempts=2)
    assert len(_FakeAsyncClient.requests) == 2


def test_rate_limit_is_not_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeAsyncClient.scenarios = [_FakeResponse(status_code=429)]
    _FakeAsyncClient.requests = []
    monkeypatch.setattr(client.httpx, "AsyncClient", _FakeAsyncClient)

    with pytest.raises(client.RateLimitedError):
        _call()
    assert len(_FakeAsyncClient.requests) == 1


def test_transport_error_is_wrapped(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeAsyncClient.scenarios = [httpx.ConnectError("down")]
    _FakeAsyncClient.requests = []
    monkeypatch.setattr(client.httpx, "AsyncClient", _FakeAsyncClient)

    with pytest.raises(client.LLMCallError) as exc:
        _call(max_attempts=1)
    assert "down" in str(exc.value)


def test_empty_content_is_returned_when_allowed(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeAsyncClient.scenarios = [_FakeResponse(status_code=200, payload={"choices": [{"message": {"content": None}}]})]
    _FakeAsyncClient.requests = []
    monkeypatch.setattr(client.httpx, "AsyncClient", _FakeAsyncClient)

    assert _call(allow_empty=True) == ""
    assert len(_FakeAsyncClient.requests) == 1
