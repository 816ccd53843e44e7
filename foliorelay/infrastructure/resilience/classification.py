"""Maps transport responses onto the error taxonomy.

Shared by the fallback dispatcher and the GitHub client so both agree on
what is retryable.
"""

from typing import Collection, Optional

from foliorelay.domain.errors import (
    ClientError,
    DispatchError,
    NotFound,
    RateLimited,
    ServerError,
)
from foliorelay.domain.models.transport import TransportResponse
from foliorelay.infrastructure.resilience.backoff import (
    DEFAULT_RETRY_AFTER_MS,
    parse_retry_after,
    reset_epoch_to_wait_ms,
)


def _describe(response: TransportResponse) -> str:
    body = response.body
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, dict):
            message = message.get("message")
        if message:
            return f"HTTP {response.status_code}: {message}"
    elif isinstance(body, str) and body.strip():
        return f"HTTP {response.status_code}: {body.strip()[:200]}"
    return f"HTTP {response.status_code}"


def classify_response(
    response: TransportResponse,
    not_found_statuses: Collection[int] = (404,),
    default_retry_after_ms: int = DEFAULT_RETRY_AFTER_MS,
) -> Optional[DispatchError]:
    """Returns the taxonomy error for a response, or None when it succeeded.

    A 403 whose `x-ratelimit-remaining` header is "0" is GitHub's primary
    rate-limit signal and is classified as RateLimited, with the wait taken
    from `x-ratelimit-reset`.
    """
    status = response.status_code
    if 200 <= status < 300:
        return None
    message = _describe(response)
    if status == 429:
        retry_after = response.header("retry-after")
        if retry_after is None and response.header("x-ratelimit-reset") is not None:
            hint = reset_epoch_to_wait_ms(response.header("x-ratelimit-reset"), default_retry_after_ms)
        else:
            hint = parse_retry_after(retry_after, default_retry_after_ms)
        return RateLimited(message, retry_after_ms=hint, status_code=status)
    if status == 403 and response.header("x-ratelimit-remaining") == "0":
        retry_after = response.header("retry-after")
        if retry_after is not None:
            hint = parse_retry_after(retry_after, default_retry_after_ms)
        else:
            hint = reset_epoch_to_wait_ms(response.header("x-ratelimit-reset"), default_retry_after_ms)
        return RateLimited(message, retry_after_ms=hint, status_code=status)
    if status in not_found_statuses:
        return NotFound(message, status_code=status)
    if 400 <= status < 500:
        return ClientError(message, status_code=status)
    if status >= 500:
        return ServerError(message, status_code=status)
    # 1xx/3xx that the transport did not resolve
    return ClientError(message, status_code=status)
