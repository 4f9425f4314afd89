import json

import httpx
import pytest

from incident_ai.core.config import ModelConfig
from incident_ai.core.errors import (
    AuthError,
    InvalidModelOutput,
    MissingCredential,
    ModelTimeout,
    NetworkError,
    RateLimitError,
)
from incident_ai.services.model_client import NIMClient

pytestmark = pytest.mark.anyio


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _client(model_config, handler):
    return NIMClient(model_config, transport=httpx.MockTransport(handler))


async def test_analyze_posts_chat_completion(model_config):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion('{"iocs": []}'))

    text = await _client(model_config, handler).analyze("PROMPT")

    assert text == '{"iocs": []}'
    assert seen["url"] == "https://nim.test/v1/chat/completions"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"]["model"] == "test-model"
    assert seen["body"]["messages"][0]["role"] == "system"
    assert seen["body"]["messages"][1] == {"role": "user", "content": "PROMPT"}
    assert seen["body"]["stream"] is False


async def test_missing_credential_skips_network():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=_completion("{}"))

    config = ModelConfig(api_key="", base_url="https://nim.test", model="m")
    with pytest.raises(MissingCredential):
        await _client(config, handler).analyze("PROMPT")
    assert calls == []


@pytest.mark.parametrize(
    "status, error",
    [(401, AuthError), (403, AuthError), (429, RateLimitError), (500, NetworkError), (502, NetworkError)],
)
async def test_error_statuses_mapped(model_config, status, error):
    client = _client(model_config, lambda request: httpx.Response(status, text="nope"))
    with pytest.raises(error):
        await client.analyze("PROMPT")


async def test_transport_failures_mapped(model_config):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(NetworkError):
        await _client(model_config, refuse).analyze("PROMPT")
    with pytest.raises(ModelTimeout):
        await _client(model_config, slow).analyze("PROMPT")


@pytest.mark.parametrize("body", [{"choices": []}, {"error": "x"}, _completion(""), _completion(None)])
async def test_missing_completion_content(model_config, body):
    client = _client(model_config, lambda request: httpx.Response(200, json=body))
    with pytest.raises(InvalidModelOutput):
        await client.analyze("PROMPT")


async def test_non_json_body(model_config):
    client = _client(model_config, lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(InvalidModelOutput):
        await client.analyze("PROMPT")


async def test_check_ready(model_config):
    assert await _client(model_config, lambda request: httpx.Response(200, json={"data": []})).check_ready()
    assert not await _client(model_config, lambda request: httpx.Response(401)).check_ready()

    def refuse(request):
        raise httpx.ConnectError("down", request=request)

    assert not await _client(model_config, refuse).check_ready()
