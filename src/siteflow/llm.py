"""Text-generation collaborator: OpenAI-compatible chat completions over httpx."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from siteflow.config import Settings
from siteflow.errors import GenerationError
from siteflow.prompts import GenerationRequest

logger = logging.getLogger(__name__)

# provider → (base URL, default model)
PROVIDER_DEFAULTS: dict[str, tuple[str | None, str]] = {
    "openai": ("https://api.openai.com/v1", "gpt-4o-mini"),
    "groq": ("https://api.groq.com/openai/v1", "llama-3.3-70b-versatile"),
    "together": ("https://api.together.xyz/v1", "meta-llama/Llama-3-70b-chat-hf"),
    "deepseek": ("https://api.deepseek.com/v1", "deepseek-chat"),
    "custom": (None, "gpt-3.5-turbo"),
}


class TextGenerator(Protocol):
    """Anything that turns a generation request into free-form text."""

    async def complete(self, request: GenerationRequest) -> str: ...


class ChatCompletionsClient:
    """Calls ``POST {base_url}/chat/completions``.

    A new ``httpx.AsyncClient`` is opened per call; ``transport`` lets tests
    substitute an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> ChatCompletionsClient:
        default_url, default_model = PROVIDER_DEFAULTS[settings.ai_provider]
        base_url = settings.ai_base_url or default_url
        if not settings.ai_api_key or not base_url:
            raise GenerationError(f"provider '{settings.ai_provider}' is not fully configured")
        return cls(
            api_key=settings.ai_api_key,
            base_url=base_url,
            model=settings.ai_model or default_model,
            temperature=settings.ai_temperature,
            max_tokens=settings.ai_max_tokens,
            timeout=settings.ai_timeout,
            transport=transport,
        )

    def _payload(self, request: GenerationRequest) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": request.instruction},
                {"role": "user", "content": request.context},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    async def complete(self, request: GenerationRequest) -> str:
        """Return the first choice's message content.

        Raises:
            GenerationError: transport failure, non-2xx status, or a response
                body without ``choices[0].message.content``.
        """
        headers = {"Authorization": f"Bearer {self.api_key}"}
        logger.info("Requesting site flow from %s (model %s)", self.base_url, self.model)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=headers,
                    json=self._payload(request),
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            raise GenerationError(f"chat completion failed with status {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(f"chat completion request failed: {exc}") from exc
        except ValueError as exc:
            raise GenerationError("chat completion returned invalid JSON") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationError("chat completion response has no message content") from exc
        if not isinstance(content, str):
            raise GenerationError("chat completion message content is not text")
        return content
