"""Rate-limit-aware batch fetcher.

Runs a per-item fetch function over a work list in waves of bounded size.
Each wave is a strict barrier: wave N+1 starts only after every member of
wave N has a final result. Failed items are retried individually with the
backoff policy and degrade to an empty result once their retry cap is
reached, so one bad item never aborts the batch.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from foliorelay.domain.errors import NotFound, RateLimited, TimeoutExceeded
from foliorelay.domain.events.api_events import BatchWaveCompleted, DomainEvent, EventSink
from foliorelay.domain.models.batch import (
    BatchOptions,
    BatchProgress,
    BatchResult,
    FetchItem,
    ItemOutcome,
)
from foliorelay.domain.models.common import ItemKey
from foliorelay.infrastructure.resilience.backoff import BackoffPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")
FetchOne = Callable[[Any], Awaitable[T]]


def make_items(values: Iterable[Any], key: Callable[[Any], str] = str) -> List[FetchItem]:
    """Wraps plain values (e.g. repositories) into FetchItems keyed by `key(value)`."""
    return [FetchItem(key=ItemKey(key(value)), value=value) for value in values]


class BatchFetchEngine:
    """Executes fetch items in bounded concurrent waves with per-item retry."""

    def __init__(self, event_sink: Optional[EventSink] = None):
        self.event_sink = event_sink

    def _emit(self, event: DomainEvent) -> None:
        if self.event_sink is None:
            logger.debug(f"EVENT: {event}")
            return
        try:
            self.event_sink(event)
        except Exception as e:
            logger.error(f"Event sink failed for {type(event).__name__}: {e}", exc_info=True)

    async def fetch_all(
        self,
        items: Sequence[FetchItem],
        fetch_one: FetchOne,
        options: Optional[BatchOptions] = None,
    ) -> BatchResult:
        """Fetches every item, at most `options.batch_size` at a time.

        The caller's items are not modified; per-item state (retries, outcome)
        is reported on the copies in `BatchResult.items`.

        Args:
            items: Work list. Only the first `options.max_items` are processed.
            fetch_one: Coroutine function called with each item's value. It
                returns the item's result or raises NotFound, RateLimited or
                any other exception.
            options: Call-site tuning; defaults to BatchOptions().

        Returns:
            A BatchResult. On overall timeout it holds whatever finished before
            the deadline and `progress.timed_out` is True.
        """
        options = options or BatchOptions()
        all_items = list(items)
        work = [FetchItem(key=item.key, value=item.value) for item in all_items[: options.max_items]]
        if len(all_items) > len(work):
            logger.info(f"Batch truncated from {len(all_items)} to {len(work)} items (max_items={options.max_items})")

        progress = BatchProgress(total=len(work))
        results: Dict[ItemKey, Any] = {}
        policy = BackoffPolicy(
            max_attempts=options.max_attempts,
            initial_wait_ms=options.retry_wait_ms,
            ceiling_ms=options.ceiling_ms,
        )
        logger.info(
            f"Starting batch: total={progress.total}, batch_size={options.batch_size}, "
            f"inter_batch_delay={options.inter_batch_delay_ms}ms, timeout={options.timeout_s}s"
        )

        waves = self._run_waves(work, fetch_one, options, policy, results, progress)
        try:
            if options.timeout_s is None:
                await waves
            else:
                await asyncio.wait_for(waves, timeout=options.timeout_s)
        except asyncio.TimeoutError:
            progress.timed_out = True
            logger.warning(
                f"{TimeoutExceeded(f'Batch deadline of {options.timeout_s}s exceeded')}; "
                f"returning partial results ({progress.processed}/{progress.total})."
            )

        for item in work:
            if not item.done:
                item.outcome = ItemOutcome.CANCELLED

        logger.info(
            f"Batch finished: processed={progress.processed}/{progress.total}, "
            f"not_found={sum(1 for i in work if i.outcome is ItemOutcome.NOT_FOUND)}, "
            f"exhausted={sum(1 for i in work if i.outcome is ItemOutcome.EXHAUSTED)}"
        )
        return BatchResult(results=results, progress=progress, items=work)

    async def _run_waves(
        self,
        work: List[FetchItem],
        fetch_one: FetchOne,
        options: BatchOptions,
        policy: BackoffPolicy,
        results: Dict[ItemKey, Any],
        progress: BatchProgress,
    ) -> None:
        size = options.batch_size
        for wave_index, start in enumerate(range(0, len(work), size)):
            wave = work[start:start + size]
            logger.debug(f"Wave {wave_index + 1}: {[item.key for item in wave]}")
            await asyncio.gather(*(
                self._run_item(item, fetch_one, options, policy, results, progress)
                for item in wave
            ))
            self._emit(BatchWaveCompleted(
                wave_index=wave_index,
                wave_size=len(wave),
                processed=progress.processed,
                total=progress.total,
            ))
            if start + size < len(work) and options.inter_batch_delay_ms > 0:
                await asyncio.sleep(options.inter_batch_delay_ms / 1000)

    async def _run_item(
        self,
        item: FetchItem,
        fetch_one: FetchOne,
        options: BatchOptions,
        policy: BackoffPolicy,
        results: Dict[ItemKey, Any],
        progress: BatchProgress,
    ) -> None:
        while True:
            hint: Optional[int] = None
            try:
                if options.per_item_timeout_s is None:
                    value = await fetch_one(item.value)
                else:
                    value = await asyncio.wait_for(fetch_one(item.value), timeout=options.per_item_timeout_s)
            except NotFound as e:
                logger.debug(f"Item '{item.key}' not found: {e}")
                self._finish(item, ItemOutcome.NOT_FOUND, options.empty(), results, progress, options)
                return
            except RateLimited as e:
                hint = e.retry_after_ms
                error: Exception = e
            except asyncio.TimeoutError:
                error = TimeoutExceeded(f"Item timed out after {options.per_item_timeout_s}s")
            except Exception as e:
                error = e
            else:
                self._finish(item, ItemOutcome.FETCHED, value, results, progress, options)
                return

            item.last_error = f"{type(error).__name__}: {error}"
            decision = policy.decide(item.attempt, hint)
            if not decision.should_retry:
                logger.warning(
                    f"Item '{item.key}' gave up after {item.attempt} retries. Last error: {item.last_error}"
                )
                self._finish(item, ItemOutcome.EXHAUSTED, options.empty(), results, progress, options)
                return

            item.attempt += 1
            logger.warning(
                f"Item '{item.key}' failed ({type(error).__name__}); retry {item.attempt}/{policy.max_attempts} "
                f"in {decision.wait_ms / 1000:.2f}s"
            )
            await asyncio.sleep(decision.wait_ms / 1000)

    def _finish(
        self,
        item: FetchItem,
        outcome: ItemOutcome,
        value: Any,
        results: Dict[ItemKey, Any],
        progress: BatchProgress,
        options: BatchOptions,
    ) -> None:
        results[item.key] = value
        item.outcome = outcome
        progress.advance()
        if options.on_progress is not None:
            try:
                options.on_progress(progress.snapshot())
            except Exception as e:
                logger.error(f"Progress callback failed: {e}", exc_info=True)
