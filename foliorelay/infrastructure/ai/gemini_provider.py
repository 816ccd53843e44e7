"""Completion provider for the Google Gemini generateContent API."""

import logging
from typing import Any, Optional

from foliorelay.domain.errors import InvalidResponse
from foliorelay.domain.interfaces.completion_provider import CompletionProvider
from foliorelay.domain.models.ai import CompletionRequest, CompletionResponse
from foliorelay.domain.models.common import ProviderName, TokenUsage
from foliorelay.domain.models.transport import TransportRequest, TransportResponse

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiProvider(CompletionProvider):
    """Gemini adapter. The API key travels as a query parameter."""

    name = ProviderName("gemini")
    DEFAULT_MODEL = "gemini-pro"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = 30.0,
    ):
        self.api_key = api_key
        self.model = model or self.DEFAULT_MODEL
        self.timeout_s = timeout_s
        logger.info(f"GeminiProvider initialized for model: {self.model} (configured={self.configured})")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def build_request(self, request: CompletionRequest) -> TransportRequest:
        # Gemini has no system role here; the system prompt is prepended to the text
        text = request.prompt
        if request.system_prompt:
            text = f"{request.system_prompt}\n\n{request.prompt}"
        body = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "maxOutputTokens": request.max_tokens,
                "temperature": request.temperature,
            },
        }
        return TransportRequest(
            method="POST",
            url=f"{GEMINI_BASE_URL}/{self.model}:generateContent",
            headers={"Content-Type": "application/json"},
            params={"key": self.api_key},
            json_body=body,
            timeout_s=self.timeout_s,
        )

    def parse_response(self, response: TransportResponse) -> CompletionResponse:
        body: Any = response.body
        try:
            content = body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            logger.debug(f"Raw gemini response body: {body!r}")
            raise InvalidResponse(f"Invalid response format from gemini: {e}", status_code=response.status_code) from e
        if not isinstance(content, str) or not content.strip():
            raise InvalidResponse("Invalid response format from gemini: no answer text", status_code=response.status_code)

        token_usage = None
        usage = body.get("usageMetadata") if isinstance(body, dict) else None
        if isinstance(usage, dict):
            token_usage = TokenUsage(
                prompt_tokens=usage.get("promptTokenCount", 0),
                completion_tokens=usage.get("candidatesTokenCount", 0),
                total_tokens=usage.get("totalTokenCount", 0),
            )
        return CompletionResponse(content=content, provider=self.name, model_name=self.model, token_usage=token_usage)
