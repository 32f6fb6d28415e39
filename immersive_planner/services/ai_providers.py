# services/ai_providers.py
"""
Completion providers behind one interface: `await provider.generate_completion(prompt) -> str`.

The provider is chosen once at startup from AI_PROVIDER:
    openai | anthropic | google | deepseek | ollama | lmstudio

OpenAI and DeepSeek (OpenAI-compatible) go through the openai SDK; the other
providers are plain REST calls over httpx.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
import openai
import requests
from openai import AsyncOpenAI
from pydantic_settings import BaseSettings

from immersive_planner.utils.ai_client import AIClientError, AIConnectionError, AIQuotaError, post_json

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SYSTEM_PROMPT = "You are a helpful assistant with expertise in education and lesson planning. Respond in Hebrew."


# -------------------------
# Configuration Management
# -------------------------
class AIConfig(BaseSettings):
    """AI Configuration with environment variable support"""

    provider: str = "openai"
    model: Optional[str] = None  # provider default when unset
    api_key: str = ""
    base_url: str = ""
    timeout: float = 180.0
    max_tokens: int = 500
    temperature: float = 0.7
    max_retries: int = 1

    class Config:
        env_prefix = "AI_"
        case_sensitive = False


def _messages(prompt: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


class AIProvider:
    name = "AI"
    default_model = ""

    def __init__(self, config: AIConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.model = config.model or self.default_model
        self.transport = transport

    async def generate_completion(self, prompt: str) -> str:
        raise NotImplementedError

    async def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        logger.debug("%s request to %s (model=%s)", self.name, url, self.model)
        return await post_json(
            url,
            payload,
            provider=self.name,
            headers=headers,
            timeout=self.config.timeout,
            max_retries=self.config.max_retries,
            transport=self.transport,
        )

    def _require_text(self, text: Optional[str], data: Any) -> str:
        if not text or not isinstance(text, str):
            logger.error("%s invalid response format: %s", self.name, str(data)[:500])
            raise AIClientError(f"Invalid response format from {self.name} API")
        return text


# -------------------------
# OpenAI SDK based
# -------------------------
class OpenAIProvider(AIProvider):
    name = "OpenAI"
    default_model = "gpt-4o-mini"
    default_base_url: Optional[str] = None

    def __init__(self, config: AIConfig, client: Optional[AsyncOpenAI] = None):
        super().__init__(config)
        if not config.api_key and client is None:
            raise ValueError(f"{self.name} API key is required")
        self.client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url or self.default_base_url,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )

    async def generate_completion(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=_messages(prompt),
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except openai.RateLimitError as e:
            raise AIQuotaError(f"{self.name} API error: {e}") from e
        except openai.APIConnectionError as e:
            raise AIConnectionError(f"{self.name} is unreachable: {e}") from e
        except openai.OpenAIError as e:
            logger.error("%s completion error: %s", self.name, e)
            raise AIClientError(f"{self.name} API error: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        return self._require_text(content, response)


class DeepSeekProvider(OpenAIProvider):
    name = "DeepSeek"
    default_model = "deepseek-chat"
    default_base_url = "https://api.deepseek.com/v1"


# -------------------------
# REST over httpx
# -------------------------
class AnthropicProvider(AIProvider):
    name = "Anthropic"
    default_model = "claude-3-5-haiku-latest"
    url = "https://api.anthropic.com/v1/messages"

    def __init__(self, config: AIConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config, transport)
        if not config.api_key:
            raise ValueError("Anthropic API key is required")

    async def generate_completion(self, prompt: str) -> str:
        data = await self._post(
            self.config.base_url or self.url,
            {
                "model": self.model,
                "max_tokens": self.config.max_tokens,
                "system": SYSTEM_PROMPT,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={"x-api-key": self.config.api_key, "anthropic-version": "2023-06-01"},
        )
        try:
            blocks = data.get("content") or []
            text = "".join(b["text"] for b in blocks if b.get("type") == "text")
        except (AttributeError, KeyError, IndexError, TypeError):
            text = None
        return self._require_text(text, data)


class GoogleAIProvider(AIProvider):
    name = "Google AI"
    default_model = "gemini-2.0-flash"
    base = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(self, config: AIConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config, transport)
        if not config.api_key:
            raise ValueError("Google AI API key is required")

    async def generate_completion(self, prompt: str) -> str:
        base = (self.config.base_url or self.base).rstrip("/")
        url = f"{base}/{self.model}:generateContent?key={self.config.api_key}"
        data = await self._post(
            url,
            {
                "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": self.config.temperature,
                    "maxOutputTokens": self.config.max_tokens,
                },
                "safetySettings": [
                    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
                    for category in (
                        "HARM_CATEGORY_HARASSMENT",
                        "HARM_CATEGORY_HATE_SPEECH",
                        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
                        "HARM_CATEGORY_DANGEROUS_CONTENT",
                    )
                ],
            },
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        return self._require_text(text, data)


class OllamaProvider(AIProvider):
    name = "Ollama"
    default_model = "llama3.1"
    default_base_url = "http://localhost:11434"

    async def generate_completion(self, prompt: str) -> str:
        base = (self.config.base_url or self.default_base_url).rstrip("/")
        data = await self._post(
            f"{base}/api/chat",
            {
                "model": self.model,
                "messages": _messages(prompt),
                "stream": False,
                "options": {"temperature": self.config.temperature, "num_predict": self.config.max_tokens},
            },
        )
        try:
            text = data["message"]["content"]
        except (KeyError, IndexError, TypeError):
            text = None
        return self._require_text(text, data)


class LMStudioProvider(AIProvider):
    name = "LM Studio"
    default_model = "local-model"
    default_base_url = "http://localhost:1234/v1"

    @property
    def chat_url(self) -> str:
        return f"{(self.config.base_url or self.default_base_url).rstrip('/')}/chat/completions"

    async def generate_completion(self, prompt: str) -> str:
        data = await self._post(
            self.chat_url,
            {
                "model": self.model,
                "messages": _messages(prompt),
                "temperature": self.config.temperature,
                "max_tokens": self.config.max_tokens,
                "stream": False,
            },
        )
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            text = None
        return self._require_text(text, data)


PROVIDERS = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GoogleAIProvider,
    "deepseek": DeepSeekProvider,
    "ollama": OllamaProvider,
    "lmstudio": LMStudioProvider,
}


def create_provider(config: AIConfig) -> AIProvider:
    """Build the provider named by config.provider."""
    provider = str(config.provider).strip().lower()
    if provider not in PROVIDERS:
        raise ValueError(f"Unsupported AI_PROVIDER: {config.provider}")
    logger.info("Using AI provider %s", provider)
    return PROVIDERS[provider](config)


def check_lmstudio_health(config: AIConfig) -> None:
    """
    One fixed-payload POST to the LM Studio chat endpoint.

    Raises AIClientError when the server is unreachable or answers with an error,
    so the application refuses to start against a dead local model.
    """
    url = LMStudioProvider(config).chat_url
    payload = {
        "model": config.model or LMStudioProvider.default_model,
        "messages": [{"role": "user", "content": "ping"}],
        "max_tokens": 1,
        "stream": False,
    }
    try:
        response = requests.post(url, json=payload, timeout=10)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"LM Studio health check failed: {e}")
        raise AIClientError(f"LM Studio is not reachable at {url}: {e}") from e
    logger.info("LM Studio health check passed (%s)", url)
