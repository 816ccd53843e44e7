"""Last-resort responder used when every real provider has failed.

Answers locally and deterministically, so a dispatch always completes
with a visible, degraded answer instead of an exception.
"""

import logging
from typing import Optional

from foliorelay.domain.models.ai import CompletionRequest, CompletionResponse
from foliorelay.domain.models.common import STATIC_FALLBACK_PROVIDER

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_MESSAGE = (
    "All AI services are currently unavailable. Please try again later."
)


class StaticFallbackProvider:
    """Deterministic local responder. Never fails and is never tracked by the registry."""

    name = STATIC_FALLBACK_PROVIDER

    def __init__(self, message: Optional[str] = None):
        self.message = message or DEFAULT_FALLBACK_MESSAGE

    def respond(self, request: CompletionRequest) -> CompletionResponse:
        logger.debug(f"Static fallback answering prompt of {len(request.prompt)} chars")
        return CompletionResponse(
            content=self.message,
            provider=self.name,
            model_name="static",
        )
