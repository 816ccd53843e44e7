"""Backoff policy shared by the fallback dispatcher and the batch engine.

Maps an attempt counter and an optional server-supplied wait hint to a
retry decision. The policy is pure: it never sleeps and never performs I/O.
"""

import logging
import time
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_WAIT_MS = 800
DEFAULT_CEILING_MS = 60_000
DEFAULT_RETRY_AFTER_MS = 60_000 # used when a 429 carries no usable hint


@dataclass(frozen=True)
class BackoffDecision:
    should_retry: bool
    wait_ms: int


@dataclass(frozen=True)
class BackoffPolicy:
    """Retry backoff configuration.

    Attributes:
        max_attempts: Attempts allowed before giving up. What counts as an
            attempt is up to the caller (calls made, or retries made).
        initial_wait_ms: Wait before the first retry when the server gave no hint.
        factor: Multiplier per further attempt; 1.0 keeps the wait fixed.
        ceiling_ms: Upper bound on any wait, server hints included.
    """
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    initial_wait_ms: int = DEFAULT_INITIAL_WAIT_MS
    factor: float = 1.0
    ceiling_ms: int = DEFAULT_CEILING_MS

    def __post_init__(self) -> None:
        if self.max_attempts < 0:
            raise ValueError("max_attempts must not be negative")
        if self.initial_wait_ms < 0 or self.ceiling_ms < 0:
            raise ValueError("wait durations must not be negative")
        if self.factor < 1.0:
            raise ValueError("factor must be >= 1.0")

    def default_wait_ms(self, attempt: int) -> int:
        return int(self.initial_wait_ms * self.factor ** max(attempt - 1, 0))

    def decide(self, attempt: int, server_hint_ms: Optional[int] = None) -> BackoffDecision:
        """Decides whether to retry and how long to wait first.

        Args:
            attempt: Attempts already made.
            server_hint_ms: Wait requested by the server (e.g. Retry-After), if any.

        Returns:
            A BackoffDecision whose wait never exceeds `ceiling_ms`.
        """
        should_retry = attempt < self.max_attempts
        wait = server_hint_ms if server_hint_ms is not None else self.default_wait_ms(attempt)
        wait_ms = max(0, min(int(wait), self.ceiling_ms))
        return BackoffDecision(should_retry=should_retry, wait_ms=wait_ms)


def parse_retry_after(value: Optional[str], default_ms: int = DEFAULT_RETRY_AFTER_MS) -> int:
    """Converts a Retry-After header into milliseconds.

    Accepts delta-seconds ("120") or an HTTP date. Absent or unparsable
    values yield `default_ms`.
    """
    if value is None or not str(value).strip():
        return default_ms
    value = str(value).strip()
    try:
        return max(0, int(float(value) * 1000))
    except (ValueError, OverflowError):
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        logger.debug(f"Unparsable Retry-After header: {value!r}")
        return default_ms
    if retry_at is None:
        return default_ms
    return max(0, int((retry_at.timestamp() - time.time()) * 1000))


def reset_epoch_to_wait_ms(value: Optional[str], default_ms: int = DEFAULT_RETRY_AFTER_MS) -> int:
    """Converts an `x-ratelimit-reset` epoch-seconds header into a wait in milliseconds."""
    if value is None:
        return default_ms
    try:
        reset_at = float(value)
    except (TypeError, ValueError):
        return default_ms
    return max(0, int((reset_at - time.time()) * 1000))
