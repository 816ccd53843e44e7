"""Service for dispatching a logical completion request across providers.

Tries providers in priority order (current primary first), retries
transient failures with the backoff policy, records definitive failures in
the provider registry and, when every real provider is exhausted, answers
from the static fallback responder. `dispatch` never raises.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional, Union

from foliorelay.domain.errors import (
    AllProvidersExhausted,
    DispatchError,
    InvalidResponse,
    NetworkFailure,
    RateLimited,
    ServerError,
    TimeoutExceeded,
)
from foliorelay.domain.events.api_events import (
    ApiCallDeferred,
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    DomainEvent,
    EventSink,
    PrimaryProviderSwitched,
    ProviderFallbackTriggered,
    RetryScheduled,
)
from foliorelay.domain.interfaces.completion_provider import CompletionProvider
from foliorelay.domain.interfaces.transport import Transport
from foliorelay.domain.models.ai import (
    AttemptOutcome,
    AttemptRecord,
    CompletionRequest,
    CompletionResponse,
    DispatchResult,
)
from foliorelay.domain.models.common import ALL_FAILED_PROVIDER, STATIC_FALLBACK_PROVIDER
from foliorelay.infrastructure.ai.static_fallback import StaticFallbackProvider
from foliorelay.infrastructure.resilience.backoff import BackoffPolicy
from foliorelay.infrastructure.resilience.classification import classify_response
from foliorelay.infrastructure.resilience.provider_registry import ProviderRegistry
from foliorelay.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ENDPOINT = "complete"


def _log_event(event: DomainEvent) -> None:
    logger.debug(f"EVENT: {event}")


def _outcome_for(error: DispatchError) -> AttemptOutcome:
    if isinstance(error, RateLimited):
        return AttemptOutcome.RATE_LIMITED
    if isinstance(error, ServerError):
        return AttemptOutcome.SERVER_ERROR
    if isinstance(error, NetworkFailure):
        return AttemptOutcome.NETWORK_FAILURE
    if isinstance(error, InvalidResponse):
        return AttemptOutcome.INVALID_RESPONSE
    if isinstance(error, TimeoutExceeded):
        return AttemptOutcome.TIMEOUT
    return AttemptOutcome.CLIENT_ERROR


class FallbackDispatcher:
    """Routes completion requests across the registry's providers with retries and fallback."""

    def __init__(
        self,
        registry: ProviderRegistry,
        transport: Transport,
        backoff_policy: Optional[BackoffPolicy] = None,
        static_fallback: Optional[StaticFallbackProvider] = None,
        use_static_fallback: bool = True,
        rate_limiter: Optional[RateLimiter] = None,
        event_sink: Optional[EventSink] = None,
        deadline_s: Optional[float] = None,
    ):
        """Initializes the FallbackDispatcher.

        Args:
            registry: Shared provider registry (order, primary flag, failure counts).
            transport: Port used for every provider call.
            backoff_policy: Retry policy; `max_attempts` counts calls per provider.
            static_fallback: Last-resort responder; a default one is created if omitted.
            use_static_fallback: When False, exhaustion yields an unsuccessful result
                tagged 'all_failed' instead of a degraded answer.
            rate_limiter: Optional client-side pacing, keyed by provider name.
            event_sink: Receives domain events; defaults to DEBUG logging.
            deadline_s: Default overall deadline per dispatch, in seconds.
        """
        self.registry = registry
        self.transport = transport
        self.backoff_policy = backoff_policy or BackoffPolicy()
        self.static_fallback = (static_fallback or StaticFallbackProvider()) if use_static_fallback else None
        self.rate_limiter = rate_limiter
        self.event_sink = event_sink or _log_event
        self.deadline_s = deadline_s

        logger.info(
            f"FallbackDispatcher initialized: max_attempts={self.backoff_policy.max_attempts}, "
            f"initial_wait={self.backoff_policy.initial_wait_ms}ms, factor={self.backoff_policy.factor}, "
            f"ceiling={self.backoff_policy.ceiling_ms}ms, static_fallback={self.static_fallback is not None}"
        )

    def _emit(self, event: DomainEvent) -> None:
        try:
            self.event_sink(event)
        except Exception as e:
            logger.error(f"Event sink failed for {type(event).__name__}: {e}", exc_info=True)

    async def complete(self, prompt: str, **kwargs) -> DispatchResult:
        """Convenience wrapper: dispatch a plain prompt."""
        return await self.dispatch(CompletionRequest(prompt=prompt, **kwargs))

    async def dispatch(self, request: CompletionRequest, deadline_s: Optional[float] = None) -> DispatchResult:
        """Dispatches one logical request and always returns a DispatchResult.

        Args:
            request: The logical request.
            deadline_s: Overall deadline for the real providers; overrides the default.

        Returns:
            The first successful provider's result, or the static fallback's
            degraded result when every configured provider failed.
        """
        start_time = time.perf_counter()
        attempts: List[AttemptRecord] = []
        failures: Dict[str, str] = {}
        deadline = deadline_s if deadline_s is not None else self.deadline_s

        try:
            if deadline is None:
                result = await self._try_providers(request, attempts, failures)
            else:
                result = await asyncio.wait_for(
                    self._try_providers(request, attempts, failures), timeout=deadline
                )
        except asyncio.TimeoutError:
            timeout_error = TimeoutExceeded(f"Dispatch deadline of {deadline}s exceeded")
            logger.warning(f"{timeout_error}; skipping remaining providers.")
            failures["deadline"] = str(timeout_error)
            result = None
        except Exception as e:
            logger.error(f"Unexpected error during dispatch: {e}", exc_info=True)
            failures["dispatcher"] = f"{type(e).__name__}: {e}"
            result = None

        latency_ms = (time.perf_counter() - start_time) * 1000
        if result is not None:
            provider_used, payload = result
            return DispatchResult(
                success=True,
                provider_used=provider_used,
                payload=payload,
                attempts=tuple(attempts),
                latency_ms=latency_ms,
            )

        exhausted = AllProvidersExhausted(failures)
        if self.static_fallback is None:
            logger.error(f"{exhausted}. No static fallback configured.")
            return DispatchResult(
                success=False,
                provider_used=ALL_FAILED_PROVIDER,
                error_detail=str(exhausted),
                attempts=tuple(attempts),
                latency_ms=latency_ms,
            )

        logger.warning(f"{exhausted}. Answering from static fallback.")
        payload = self.static_fallback.respond(request)
        return DispatchResult(
            success=True,
            provider_used=STATIC_FALLBACK_PROVIDER,
            payload=payload,
            error_detail=str(exhausted),
            degraded=True,
            attempts=tuple(attempts),
            latency_ms=(time.perf_counter() - start_time) * 1000,
        )

    async def _try_providers(
        self,
        request: CompletionRequest,
        attempts: List[AttemptRecord],
        failures: Dict[str, str],
    ) -> Optional[tuple]:
        """Walks the attempt order. Returns (provider_name, payload) or None if all failed."""
        primary_at_start = self.registry.current_primary()
        candidates = self.registry.attempt_order()
        if not candidates:
            logger.warning("No configured providers available for dispatch.")

        for index, provider in enumerate(candidates):
            outcome = await self._attempt_within_budget(provider, request, attempts)
            if isinstance(outcome, CompletionResponse):
                if provider.name != primary_at_start and self.registry.set_primary(provider.name):
                    self._emit(PrimaryProviderSwitched(previous_primary=primary_at_start, new_primary=provider.name))
                return provider.name, outcome

            self.registry.mark_failure(provider.name)
            failures[provider.name] = str(outcome)
            next_name = candidates[index + 1].name if index + 1 < len(candidates) else (
                STATIC_FALLBACK_PROVIDER if self.static_fallback else ALL_FAILED_PROVIDER
            )
            reason = "retries_exhausted" if outcome.retryable else type(outcome).__name__
            logger.warning(f"Provider '{provider.name}' failed ({reason}); moving on to '{next_name}'.")
            self._emit(ProviderFallbackTriggered(reason=reason, failed_provider=provider.name, fallback_provider=next_name))
        return None

    @property
    def provider_budget_s(self) -> Optional[float]:
        """Longest time one provider may take: max_attempts x ceiling. None when unbounded."""
        budget_ms = self.backoff_policy.max_attempts * self.backoff_policy.ceiling_ms
        return budget_ms / 1000 if budget_ms > 0 else None

    async def _attempt_within_budget(
        self,
        provider: CompletionProvider,
        request: CompletionRequest,
        attempts: List[AttemptRecord],
    ) -> Union[CompletionResponse, DispatchError]:
        """Runs _attempt_provider, cut off once the provider has used up its budget."""
        budget = self.provider_budget_s
        if budget is None:
            return await self._attempt_provider(provider, request, attempts)
        try:
            return await asyncio.wait_for(self._attempt_provider(provider, request, attempts), timeout=budget)
        except asyncio.TimeoutError:
            error = TimeoutExceeded(f"Provider '{provider.name}' exceeded its {budget:.2f}s budget")
            made = sum(1 for record in attempts if record.provider == provider.name)
            logger.error(f"{error} after {made} completed attempt(s).")
            attempts.append(AttemptRecord(provider.name, made + 1, AttemptOutcome.TIMEOUT, detail=str(error)))
            self._emit(ApiCallFailed(provider=provider.name, endpoint=ENDPOINT,
                                     error_type=type(error).__name__, error_message=str(error)))
            return error
        return None

    async def _attempt_provider(
        self,
        provider: CompletionProvider,
        request: CompletionRequest,
        attempts: List[AttemptRecord],
    ) -> Union[CompletionResponse, DispatchError]:
        """Calls one provider, retrying retryable failures. Returns the payload or the final error."""
        name = provider.name
        attempt = 0
        while True:
            attempt += 1
            if self.rate_limiter is not None:
                waited = await self.rate_limiter.wait_for_permission(name)
                if waited > 0:
                    self._emit(ApiCallDeferred(provider=name, endpoint=ENDPOINT, wait_time_seconds=waited))

            self._emit(ApiCallInitiated(provider=name, endpoint=ENDPOINT, attempt_number=attempt))
            start_time = time.perf_counter()
            status_code: Optional[int] = None
            try:
                response = await self.transport.send(provider.build_request(request))
                status_code = response.status_code
                error = classify_response(response)
                if error is None:
                    payload = provider.parse_response(response)
                    if payload.provider is None:
                        payload.provider = name
                    latency_ms = (time.perf_counter() - start_time) * 1000
                    attempts.append(AttemptRecord(name, attempt, AttemptOutcome.SUCCESS, status_code))
                    self._emit(ApiCallSucceeded(provider=name, endpoint=ENDPOINT, latency_ms=latency_ms,
                                                response_summary=payload.token_usage))
                    logger.debug(f"Provider '{name}' answered in {latency_ms:.2f}ms on attempt {attempt}")
                    return payload
            except DispatchError as e:
                error = e
            except Exception as e:
                # Adapters and transports should only raise DispatchErrors
                logger.error(f"Unexpected error calling {name}.{ENDPOINT} on attempt {attempt}: {e}", exc_info=True)
                error = NetworkFailure(f"Unexpected error: {type(e).__name__}: {e}")

            if not error.retryable:
                logger.error(f"Non-retryable error from {name}.{ENDPOINT} on attempt {attempt}: {error}")
                attempts.append(AttemptRecord(name, attempt, _outcome_for(error), status_code, detail=str(error)))
                self._emit(ApiCallFailed(provider=name, endpoint=ENDPOINT,
                                         error_type=type(error).__name__, error_message=str(error)))
                return error

            hint = error.retry_after_ms if isinstance(error, RateLimited) else None
            decision = self.backoff_policy.decide(attempt, hint)
            if not decision.should_retry:
                logger.error(f"Max attempts ({self.backoff_policy.max_attempts}) reached for {name}.{ENDPOINT}. Last error: {error}")
                attempts.append(AttemptRecord(name, attempt, _outcome_for(error), status_code, detail=str(error)))
                self._emit(ApiCallFailed(provider=name, endpoint=ENDPOINT,
                                         error_type=type(error).__name__, error_message=str(error)))
                return error

            attempts.append(AttemptRecord(name, attempt, _outcome_for(error), status_code,
                                          wait_ms=decision.wait_ms, detail=str(error)))
            logger.warning(
                f"Retryable error calling {name}.{ENDPOINT} on attempt {attempt}/{self.backoff_policy.max_attempts}: "
                f"{type(error).__name__}. Waiting {decision.wait_ms / 1000:.2f}s..."
            )
            self._emit(RetryScheduled(provider=name, endpoint=ENDPOINT, attempt_number=attempt,
                                      delay_seconds=decision.wait_ms / 1000))
            await asyncio.sleep(decision.wait_ms / 1000)
