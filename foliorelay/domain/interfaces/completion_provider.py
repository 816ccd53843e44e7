"""Interface for AI completion providers.

A provider only knows its own wire format: how to turn a CompletionRequest
into a TransportRequest and how to read the reply. Retries, failure
tracking and fallback belong to the dispatcher.
"""

import abc
from typing import Optional

from foliorelay.domain.models.ai import CompletionRequest, CompletionResponse
from foliorelay.domain.models.common import ProviderName
from foliorelay.domain.models.transport import TransportRequest, TransportResponse


class CompletionProvider(abc.ABC):
    """Abstract Base Class for one backend completion service."""

    name: ProviderName
    model: Optional[str] = None

    @property
    @abc.abstractmethod
    def configured(self) -> bool:
        """Whether the credentials this provider needs are present."""
        pass

    @abc.abstractmethod
    def build_request(self, request: CompletionRequest) -> TransportRequest:
        """Translates a logical request into this provider's HTTP request."""
        pass

    @abc.abstractmethod
    def parse_response(self, response: TransportResponse) -> CompletionResponse:
        """Extracts the completion from a successful response.

        Raises:
            InvalidResponse: If the body does not have the expected structure.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, configured={self.configured})"
