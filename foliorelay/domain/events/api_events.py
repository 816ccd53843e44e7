"""Domain Events related to dispatched calls and resilience.

Emitted when calls are deferred, retried, fail, succeed, or fall back to
another provider, and when batch waves complete.
"""

from dataclasses import dataclass, field
import time
from typing import Any, Callable, Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


EventSink = Callable[[DomainEvent], None]

# --- Provider Dispatch Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when a provider call is about to be made."""
    provider: str # e.g., 'openrouter', 'gemini'
    endpoint: str
    attempt_number: int = 1
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when a provider call succeeds."""
    provider: str
    endpoint: str
    latency_ms: float
    response_summary: Optional[Any] = None # e.g., token usage
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a provider fails definitively (after retries)."""
    provider: str
    endpoint: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallDeferred(DomainEvent):
    """Event triggered when a call is deferred by the client-side rate limiter."""
    provider: str
    endpoint: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed call."""
    provider: str
    endpoint: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class ProviderFallbackTriggered(DomainEvent):
    """Event triggered when dispatch moves on from one provider to the next."""
    reason: str # e.g., 'retries_exhausted', 'client_error'
    failed_provider: str
    fallback_provider: str # next candidate, or 'fallback-static'
    timestamp: float = field(default_factory=time.time)

@dataclass
class PrimaryProviderSwitched(DomainEvent):
    """Event triggered when a non-primary provider succeeds and becomes primary."""
    previous_primary: str
    new_primary: str
    timestamp: float = field(default_factory=time.time)

# --- Batch Events ---

@dataclass
class BatchWaveCompleted(DomainEvent):
    """Event triggered when every item of a wave has a final result."""
    wave_index: int
    wave_size: int
    processed: int
    total: int
    timestamp: float = field(default_factory=time.time)
