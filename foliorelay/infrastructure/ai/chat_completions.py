"""Completion providers that speak the OpenAI chat-completions wire format.

OpenAI itself and OpenRouter accept the same `messages` body and return the
same `choices[0].message.content` shape; only the endpoint, headers and
default model differ.
"""

import logging
from typing import Any, Dict, Optional

from foliorelay.domain.errors import InvalidResponse
from foliorelay.domain.interfaces.completion_provider import CompletionProvider
from foliorelay.domain.models.ai import CompletionRequest, CompletionResponse
from foliorelay.domain.models.common import ProviderName, TokenUsage
from foliorelay.domain.models.transport import TransportRequest, TransportResponse

logger = logging.getLogger(__name__)


class ChatCompletionsProvider(CompletionProvider):
    """Base adapter for OpenAI-compatible chat completion endpoints."""

    name = ProviderName("chat-completions")
    endpoint = ""
    DEFAULT_MODEL = ""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = 30.0,
    ):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.timeout_s = timeout_s
        logger.info(f"{self.__class__.__name__} initialized for model: {self.model} (configured={self.configured})")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_request(self, request: CompletionRequest) -> TransportRequest:
        body = {
            "model": self.model,
            "messages": request.as_messages(),
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        return TransportRequest(
            method="POST",
            url=self.endpoint,
            headers=self._headers(),
            json_body=body,
            timeout_s=self.timeout_s,
        )

    def parse_response(self, response: TransportResponse) -> CompletionResponse:
        """Parses `choices[0].message.content` plus usage, if reported."""
        body: Any = response.body
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.debug(f"Raw {self.name} response body: {body!r}")
            raise InvalidResponse(f"Invalid response format from {self.name}: {e}", status_code=response.status_code) from e
        if not isinstance(content, str) or not content.strip():
            raise InvalidResponse(f"Invalid response format from {self.name}: no answer text",
                                  status_code=response.status_code)

        token_usage = None
        usage = body.get("usage") if isinstance(body, dict) else None
        if isinstance(usage, dict):
            token_usage = TokenUsage(
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            )

        return CompletionResponse(
            content=content,
            provider=self.name,
            model_name=body.get("model", self.model),
            token_usage=token_usage,
        )


class OpenAIProvider(ChatCompletionsProvider):
    """OpenAI chat completions."""

    name = ProviderName("openai")
    endpoint = "https://api.openai.com/v1/chat/completions"
    DEFAULT_MODEL = "gpt-3.5-turbo"


class OpenRouterProvider(ChatCompletionsProvider):
    """OpenRouter, which fronts many hosted models behind one OpenAI-style API."""

    name = ProviderName("openrouter")
    endpoint = "https://openrouter.ai/api/v1/chat/completions"
    DEFAULT_MODEL = "anthropic/claude-3-haiku"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = 30.0,
        referer: str = "https://github.com/foliorelay",
        title: str = "foliorelay",
    ):
        self.referer = referer
        self.title = title
        super().__init__(api_key=api_key, model=model, timeout_s=timeout_s)

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        # OpenRouter attributes traffic with these two headers
        headers["HTTP-Referer"] = self.referer
        headers["X-Title"] = self.title
        return headers
