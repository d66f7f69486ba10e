from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from chatrelay.api.v1.chat import _forward
from chatrelay.config import Settings, get_settings
from chatrelay.core.stream import OutputStream, StreamState
from chatrelay.main import create_app
from chatrelay.providers.mock import MockProvider
from chatrelay.providers.registry import ProviderRegistry, build_registry
from chatrelay.providers.relay import StreamingRelay, get_relay
from chatrelay.schemas.chat import ChatRequest
from helpers import FakeUpstream, delta_event, sse_event


class _RecordingProvider:
    """Captures the ChatRequest the edge adapter builds."""

    id = "recording"
    name = "Recording"

    def __init__(self) -> None:
        self.requests = []

    async def stream_chat(self, request: ChatRequest) -> OutputStream:
        self.requests.append(request)

        async def body():
            yield b"ok"

        async def release():
            return None

        return OutputStream(body(), release)


def _client(relay: StreamingRelay) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_relay] = lambda: relay
    return TestClient(app)


@pytest.fixture
def upstream():
    return FakeUpstream([
        'event: data\ndata: {"choices":[{"delta":{"content":"Hel',
        'lo"}}]}\n\nevent: data\ndata: [DONE]\n\n',
    ])


def test_post_streams_decoded_text(settings, upstream):
    client = _client(StreamingRelay(build_registry(settings, transport=upstream.transport)))

    response = client.post("/api/v1/chat/stream", json={"inputCode": "Say hello", "model": "gpt-4o-mini"})

    assert response.status_code == 200
    assert response.content == b"Hello"
    assert response.headers["content-type"].startswith("text/plain")
    assert response.headers["cache-control"] == "no-cache"
    assert upstream.calls == 1


def test_get_streams_decoded_text(settings, upstream):
    client = _client(StreamingRelay(build_registry(settings, transport=upstream.transport)))

    response = client.get(
        "/api/v1/chat/stream",
        params={"inputCode": "Say hello", "model": "gpt-4o-mini", "apiKey": "sk-caller", "provider": "openai"},
    )

    assert response.status_code == 200
    assert response.text == "Hello"
    assert upstream.requests[0].headers["authorization"] == "Bearer sk-caller"


def test_unknown_provider_is_server_error_without_upstream_call(settings, upstream):
    client = _client(StreamingRelay(build_registry(settings, transport=upstream.transport)))

    response = client.post(
        "/api/v1/chat/stream",
        json={"inputCode": "hi", "model": "m", "provider": "unknown-vendor"},
    )

    assert response.status_code == 500
    assert upstream.calls == 0


def test_upstream_error_becomes_server_error(settings):
    failing = FakeUpstream(["rate limited"], status_code=500)
    client = _client(StreamingRelay(build_registry(settings, transport=failing.transport)))

    response = client.post("/api/v1/chat/stream", json={"inputCode": "hi", "model": "m"})

    assert response.status_code == 500
    assert "rate limited" in response.json()["detail"]


def test_missing_model_is_rejected():
    client = _client(StreamingRelay(ProviderRegistry()))
    response = client.post("/api/v1/chat/stream", json={"inputCode": "hi"})
    assert response.status_code == 422


def test_body_fields_map_onto_chat_request():
    recorder = _RecordingProvider()
    registry = ProviderRegistry()
    registry.register("recording", recorder)
    client = _client(StreamingRelay(registry))

    response = client.post(
        "/api/v1/chat/stream",
        json={
            "inputCode": "",
            "model": "gpt-4o",
            "apiKey": "sk-user",
            "provider": "recording",
            "max_tokens": 64,
        },
    )

    assert response.status_code == 200
    assert response.content == b"ok"
    sent = recorder.requests[0]
    assert sent.prompt == ""
    assert sent.model == "gpt-4o"
    assert sent.credential == "sk-user"
    assert sent.provider_id == "recording"
    assert dict(sent.extra_parameters) == {"max_tokens": 64}


def test_missing_or_empty_provider_uses_configured_default():
    recorder = _RecordingProvider()
    registry = ProviderRegistry()
    registry.register("recording", recorder)
    client = _client(StreamingRelay(registry))
    client.app.dependency_overrides[get_settings] = lambda: Settings(default_provider="recording", _env_file=None)

    assert client.post("/api/v1/chat/stream", json={"model": "m"}).status_code == 200
    assert client.post("/api/v1/chat/stream", json={"model": "m", "provider": ""}).status_code == 200
    assert client.get("/api/v1/chat/stream", params={"model": "m", "provider": ""}).status_code == 200

    assert [r.provider_id for r in recorder.requests] == ["recording"] * 3


@pytest.mark.asyncio
async def test_client_disconnect_closes_upstream(make_provider):
    upstream = FakeUpstream([delta_event(str(i)) for i in range(50)] + [sse_event("[DONE]")])
    request = ChatRequest(prompt="hi", model="m")
    stream = await make_provider(upstream).stream_chat(request)
    body = _forward(stream, request)

    assert await body.__anext__() == b"0"
    # ASGI servers close the body iterator when the client goes away
    await body.aclose()

    assert stream.state is StreamState.CLOSED
    assert upstream.pulled == 1
    assert upstream.responses[0].is_closed


def test_providers_endpoint_lists_registry():
    registry = ProviderRegistry()
    registry.register("mock", MockProvider(delay=0))
    client = _client(StreamingRelay(registry))

    response = client.get("/api/v1/providers")

    assert response.status_code == 200
    assert response.json() == {"providers": [{"id": "mock", "name": "Mock"}]}


def test_health_and_root():
    client = _client(StreamingRelay(ProviderRegistry()))
    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.get("/").json()["service"] == "chatrelay"
