"""Domain models related to AI completion requests.

Includes the logical request handed to the dispatcher, the structured
response a provider produces, and the dispatch result the consumer receives.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, TypedDict

from .common import ProviderName, TokenUsage


class ChatMessage(TypedDict):
    """Represents a message structure expected by OpenAI-compatible APIs."""
    role: str
    content: str


@dataclass(frozen=True)
class CompletionRequest:
    """A logical "complete this prompt" request, independent of any provider."""
    prompt: str
    system_prompt: Optional[str] = None
    max_tokens: int = 1000
    temperature: float = 0.7

    def as_messages(self) -> list:
        messages = []
        if self.system_prompt:
            messages.append(ChatMessage(role="system", content=self.system_prompt))
        messages.append(ChatMessage(role="user", content=self.prompt))
        return messages


@dataclass
class CompletionResponse:
    """Structured response from a completion provider, including metadata."""
    content: str
    provider: Optional[ProviderName] = None
    model_name: Optional[str] = None
    token_usage: Optional[TokenUsage] = None


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    NETWORK_FAILURE = "network_failure"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"
    INVALID_RESPONSE = "invalid_response"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class AttemptRecord:
    """One call made to one provider while serving a dispatch."""
    provider: ProviderName
    attempt: int
    outcome: AttemptOutcome
    status_code: Optional[int] = None
    wait_ms: int = 0
    detail: Optional[str] = None


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one logical request. Immutable once returned."""
    success: bool
    provider_used: ProviderName
    payload: Optional[CompletionResponse] = None
    error_detail: Optional[str] = None
    degraded: bool = False
    attempts: Tuple[AttemptRecord, ...] = field(default_factory=tuple)
    latency_ms: Optional[float] = None

    @property
    def text(self) -> Optional[str]:
        """The completion text, or None when the dispatch failed outright."""
        return self.payload.content if self.payload is not None else None
