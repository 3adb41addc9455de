import json

import httpx
import pytest

from conftest import gemini_reply, make_gateway, request_prompt
from kitakita.services.agents.errors import (
    GatewayError,
    GatewayNotConfiguredError,
    MalformedResponseError,
    RetryExhaustedError,
)
from kitakita.services.agents.llm import build_payload, extract_text


def test_build_payload_defaults_and_overrides():
    payload = build_payload("hello", {"temperature": 0.2})
    assert payload["contents"] == [{"parts": [{"text": "hello"}]}]
    assert payload["generationConfig"] == {
        "temperature": 0.2,
        "topK": 40,
        "topP": 0.95,
        "maxOutputTokens": 2048,
    }
    assert len(payload["safetySettings"]) == 4


def test_extract_text_requires_candidate():
    assert extract_text({"candidates": [{"content": {"parts": [{"text": "hi"}]}}]}) == "hi"
    with pytest.raises(MalformedResponseError):
        extract_text({"candidates": []})
    with pytest.raises(MalformedResponseError):
        extract_text({})


async def test_generate_posts_to_generate_content():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return gemini_reply('{"ok": true}')

    gateway = make_gateway(handler)
    assert await gateway.generate("What is my savings rate?") == '{"ok": true}'

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1beta/models/gemini-test:generateContent"
    assert request.url.params["key"] == "test-key"
    assert request_prompt(request) == "What is my savings rate?"
    assert json.loads(request.content)["generationConfig"]["maxOutputTokens"] == 2048


async def test_rate_limited_calls_are_retried():
    responses = [httpx.Response(429), httpx.Response(429), gemini_reply("done")]

    def handler(request):
        return responses.pop(0)

    gateway = make_gateway(handler, max_retries=3)
    assert await gateway.generate("hi") == "done"
    assert responses == []


async def test_rate_limit_exhaustion_raises():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(429)

    gateway = make_gateway(handler, max_retries=2)
    with pytest.raises(RetryExhaustedError) as exc_info:
        await gateway.generate("hi")
    assert len(attempts) == 3
    assert exc_info.value.attempts == 3


async def test_server_error_is_not_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(500, json={"error": {"message": "internal"}})

    gateway = make_gateway(handler, max_retries=3)
    with pytest.raises(GatewayError) as exc_info:
        await gateway.generate("hi")
    assert exc_info.value.status_code == 500
    assert "internal" in str(exc_info.value)
    assert len(attempts) == 1


async def test_transport_error_becomes_gateway_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError):
        await make_gateway(handler).generate("hi")


async def test_response_without_candidates_is_malformed():
    gateway = make_gateway(lambda request: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(MalformedResponseError):
        await gateway.generate("hi")


async def test_non_json_body_is_malformed():
    gateway = make_gateway(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(MalformedResponseError):
        await gateway.generate("hi")


async def test_missing_api_key(unconfigured_gateway):
    assert not unconfigured_gateway.is_configured
    with pytest.raises(GatewayNotConfiguredError):
        await unconfigured_gateway.generate("hi")
