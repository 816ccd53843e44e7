"""Error taxonomy for remote calls made through the dispatch layer.

Every failure a provider call or a GitHub fetch can produce is expressed as
one of these exceptions. The dispatcher and the batch engine catch them and
turn them into typed results, so none of them reach the consumer.
"""

from typing import Optional


class DispatchError(Exception):
    """Base class for all dispatch-layer failures."""

    retryable: bool = False

    def __init__(self, message: str = "", status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message or self.__class__.__name__)


class NetworkFailure(DispatchError):
    """The transport could not complete the request (DNS, connect, reset, timeout)."""

    retryable = True


class RateLimited(DispatchError):
    """The remote service refused the call because a quota was exceeded (HTTP 429)."""

    retryable = True

    def __init__(self, message: str = "", retry_after_ms: Optional[int] = None, status_code: Optional[int] = 429):
        self.retry_after_ms = retry_after_ms
        super().__init__(message or "Rate limit exceeded", status_code=status_code)


class NotFound(DispatchError):
    """The resource does not exist or is not accessible (HTTP 404). Expected; never retried."""


class ClientError(DispatchError):
    """Any other 4xx response, e.g. bad credentials. Not retried."""


class ServerError(DispatchError):
    """A 5xx response from the remote service."""

    retryable = True


class InvalidResponse(DispatchError):
    """A 2xx response whose body could not be parsed into the expected shape."""


class TimeoutExceeded(DispatchError):
    """A caller-imposed deadline elapsed mid-operation."""


class AllProvidersExhausted(DispatchError):
    """Every configured provider failed for a logical request."""

    def __init__(self, failures: Optional[dict] = None):
        self.failures = dict(failures or {})
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.failures.items())
        message = "All configured providers failed"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
