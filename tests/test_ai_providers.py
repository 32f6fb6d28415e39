import json
from unittest.mock import Mock, patch

import httpx
import pytest
import requests
from openai import AsyncOpenAI

from immersive_planner.services import ai_providers
from immersive_planner.services.ai_providers import (
    SYSTEM_PROMPT,
    AIConfig,
    AnthropicProvider,
    DeepSeekProvider,
    GoogleAIProvider,
    LMStudioProvider,
    OllamaProvider,
    OpenAIProvider,
    check_lmstudio_health,
    create_provider,
)
from immersive_planner.services.ai_tools import AIToolServer
from immersive_planner.utils.ai_client import AIClientError, AIQuotaError


def _config(**overrides):
    values = {"provider": "openai", "api_key": "test-key", "max_retries": 0}
    values.update(overrides)
    return AIConfig(**values)


def _recording_transport(reply, status_code=200):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(status_code, json=reply)

    return httpx.MockTransport(handler), seen


def _chat_completion(content):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4o-mini",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


@pytest.mark.parametrize(
    "name, cls",
    [
        ("openai", OpenAIProvider),
        ("anthropic", AnthropicProvider),
        ("google", GoogleAIProvider),
        ("deepseek", DeepSeekProvider),
        ("ollama", OllamaProvider),
        ("LMStudio", LMStudioProvider),
    ],
)
def test_create_provider_by_name(name, cls):
    assert isinstance(create_provider(_config(provider=name)), cls)


def test_create_provider_rejects_unknown():
    with pytest.raises(ValueError):
        create_provider(_config(provider="watson"))


def test_hosted_providers_need_api_key():
    with pytest.raises(ValueError):
        create_provider(_config(provider="anthropic", api_key=""))


def test_model_defaults_per_provider():
    assert create_provider(_config(provider="deepseek")).model == "deepseek-chat"
    assert create_provider(_config(provider="ollama", model="qwen2.5")).model == "qwen2.5"


@pytest.mark.anyio
async def test_openai_completion():
    transport, seen = _recording_transport(_chat_completion("שלום"))
    client = AsyncOpenAI(api_key="test-key", max_retries=0, http_client=httpx.AsyncClient(transport=transport))
    provider = OpenAIProvider(_config(), client=client)

    assert await provider.generate_completion("hello") == "שלום"

    body = json.loads(seen[0].content)
    assert body["model"] == "gpt-4o-mini"
    assert body["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert body["messages"][1] == {"role": "user", "content": "hello"}
    assert body["max_tokens"] == 500


@pytest.mark.anyio
async def test_openai_rate_limit_maps_to_quota_error():
    transport, _ = _recording_transport({"error": {"message": "quota", "type": "insufficient_quota"}}, 429)
    client = AsyncOpenAI(api_key="test-key", max_retries=0, http_client=httpx.AsyncClient(transport=transport))
    provider = OpenAIProvider(_config(), client=client)

    with pytest.raises(AIQuotaError):
        await provider.generate_completion("hello")


@pytest.mark.anyio
async def test_anthropic_completion():
    transport, seen = _recording_transport({"content": [{"type": "text", "text": "תשובה"}]})
    provider = AnthropicProvider(_config(provider="anthropic"), transport=transport)

    assert await provider.generate_completion("hello") == "תשובה"

    request = seen[0]
    assert request.headers["x-api-key"] == "test-key"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.content)
    assert body["system"] == SYSTEM_PROMPT
    assert body["messages"] == [{"role": "user", "content": "hello"}]


@pytest.mark.anyio
async def test_anthropic_quota():
    transport, _ = _recording_transport({"error": {"message": "rate_limit_error"}}, 429)
    provider = AnthropicProvider(_config(provider="anthropic"), transport=transport)

    with pytest.raises(AIQuotaError):
        await provider.generate_completion("hello")


@pytest.mark.anyio
async def test_google_completion():
    transport, seen = _recording_transport({"candidates": [{"content": {"parts": [{"text": "הצעה"}]}}]})
    provider = GoogleAIProvider(_config(provider="google"), transport=transport)

    assert await provider.generate_completion("hello") == "הצעה"

    request = seen[0]
    assert request.url.path == "/v1beta/models/gemini-2.0-flash:generateContent"
    assert request.url.params["key"] == "test-key"
    body = json.loads(request.content)
    assert body["contents"][0]["parts"][0]["text"] == "hello"
    assert body["generationConfig"]["maxOutputTokens"] == 500


@pytest.mark.anyio
async def test_google_blocked_response_is_an_error():
    transport, _ = _recording_transport({"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}})
    provider = GoogleAIProvider(_config(provider="google"), transport=transport)

    with pytest.raises(AIClientError, match="Invalid response format"):
        await provider.generate_completion("hello")


@pytest.mark.anyio
async def test_ollama_completion():
    transport, seen = _recording_transport({"message": {"role": "assistant", "content": "local"}})
    provider = OllamaProvider(_config(provider="ollama", api_key=""), transport=transport)

    assert await provider.generate_completion("hello") == "local"

    assert str(seen[0].url) == "http://localhost:11434/api/chat"
    assert json.loads(seen[0].content)["stream"] is False


@pytest.mark.anyio
async def test_lmstudio_completion():
    transport, seen = _recording_transport(_chat_completion("lm"))
    provider = LMStudioProvider(
        _config(provider="lmstudio", api_key="", base_url="http://127.0.0.1:4321/v1/"), transport=transport
    )

    assert await provider.generate_completion("hello") == "lm"
    assert str(seen[0].url) == "http://127.0.0.1:4321/v1/chat/completions"


def test_lmstudio_health_check_passes():
    response = Mock()
    response.raise_for_status.return_value = None
    with patch.object(ai_providers.requests, "post", return_value=response) as post:
        check_lmstudio_health(_config(provider="lmstudio", api_key=""))

    url = post.call_args.args[0]
    assert url == "http://localhost:1234/v1/chat/completions"
    assert post.call_args.kwargs["json"]["max_tokens"] == 1


def test_lmstudio_health_check_fails_when_unreachable():
    with patch.object(ai_providers.requests, "post", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(AIClientError, match="not reachable"):
            check_lmstudio_health(_config(provider="lmstudio", api_key=""))


@pytest.mark.anyio
@pytest.mark.parametrize(
    "provider_name, cls, body",
    [
        ("anthropic", AnthropicProvider, []),
        ("anthropic", AnthropicProvider, {"content": ["text"]}),
        ("anthropic", AnthropicProvider, {"content": [{"type": "text", "text": 7}]}),
        ("ollama", OllamaProvider, []),
        ("ollama", OllamaProvider, {"message": "hi"}),
        ("ollama", OllamaProvider, {"message": {"content": ["hi"]}}),
        ("google", GoogleAIProvider, []),
        ("lmstudio", LMStudioProvider, {"choices": [{"message": {"content": 3}}]}),
    ],
)
async def test_malformed_bodies_raise_client_error(provider_name, cls, body):
    transport, _ = _recording_transport(body)
    provider = cls(_config(provider=provider_name), transport=transport)

    with pytest.raises(AIClientError, match="Invalid response format"):
        await provider.generate_completion("hello")


@pytest.mark.anyio
async def test_tool_server_reports_malformed_body_as_error():
    transport, _ = _recording_transport([])
    server = AIToolServer(AnthropicProvider(_config(provider="anthropic"), transport=transport))

    result = await server.invoke_tool(
        "ai-server", "generate_suggestion", {"context": "c", "currentValue": "", "type": "content"}
    )

    assert result == {"error": "Invalid response format from Anthropic API"}
