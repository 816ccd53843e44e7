import asyncio

import pytest

from foliorelay.domain.errors import NotFound, RateLimited, ServerError
from foliorelay.domain.events.api_events import BatchWaveCompleted
from foliorelay.domain.models.batch import BatchOptions, FetchItem, ItemOutcome
from foliorelay.infrastructure.resilience.batch_fetcher import BatchFetchEngine, make_items


def keys(n):
    return make_items(f"repo-{i}" for i in range(1, n + 1))


@pytest.mark.asyncio
async def test_work_list_is_truncated_to_max_items(no_sleep):
    engine = BatchFetchEngine()
    seen = []

    async def fetch(value):
        seen.append(value)
        return [value]

    result = await engine.fetch_all(keys(20), fetch, BatchOptions(max_items=10, inter_batch_delay_ms=0))

    assert result.progress.total == 10
    assert result.progress.processed == 10
    assert result.progress.complete
    assert seen == [f"repo-{i}" for i in range(1, 11)]
    assert result.ordered_values() == [[f"repo-{i}"] for i in range(1, 11)]


@pytest.mark.asyncio
async def test_empty_work_list_completes_immediately():
    result = await BatchFetchEngine().fetch_all([], lambda v: None, BatchOptions())

    assert result.progress.total == 0
    assert result.progress.complete
    assert result.results == {}


@pytest.mark.asyncio
async def test_next_wave_waits_for_rate_limited_item_retry():
    engine = BatchFetchEngine()
    log = []
    limited_once = set()

    async def fetch(value):
        log.append(f"start:{value}")
        if value == "repo-2" and value not in limited_once:
            limited_once.add(value)
            raise RateLimited("slow down", retry_after_ms=10)
        await asyncio.sleep(0)
        log.append(f"end:{value}")
        return value.upper()

    options = BatchOptions(batch_size=3, max_items=10, inter_batch_delay_ms=0)
    result = await engine.fetch_all(keys(6), fetch, options)

    assert len(result.results) == 6
    assert result.results["repo-2"] == "REPO-2"
    first_wave2_start = log.index("start:repo-4")
    assert log.index("end:repo-2") < first_wave2_start
    assert log.count("start:repo-2") == 2
    item2 = result.items[1]
    assert item2.outcome is ItemOutcome.FETCHED
    assert item2.attempt == 1


@pytest.mark.asyncio
async def test_rate_limit_hint_drives_retry_wait(no_sleep):
    calls = {"n": 0}

    async def fetch(value):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RateLimited(retry_after_ms=1500)
        return value

    await BatchFetchEngine().fetch_all([FetchItem(key="a")], fetch, BatchOptions(retry_wait_ms=100))

    assert no_sleep == [1.5]


@pytest.mark.asyncio
async def test_not_found_gives_empty_result_without_retry():
    calls = []

    async def fetch(value):
        calls.append(value)
        raise NotFound("HTTP 404")

    result = await BatchFetchEngine().fetch_all([FetchItem(key="gone")], fetch, BatchOptions(empty=dict))

    assert calls == ["gone"]
    assert result.results["gone"] == {}
    assert result.items[0].attempt == 0
    assert result.not_found_keys == ["gone"]
    assert result.progress.processed == 1


@pytest.mark.asyncio
async def test_item_gives_up_after_retry_cap(no_sleep):
    calls = []

    async def fetch(value):
        if value == "fine":
            return [value]
        calls.append(value)
        raise ServerError("HTTP 502", status_code=502)

    result = await BatchFetchEngine().fetch_all(
        [FetchItem(key="flaky"), FetchItem(key="fine")],
        fetch,
        BatchOptions(max_attempts=3, retry_wait_ms=5),
    )

    assert calls == ["flaky"] * 4
    assert result.results["flaky"] == []
    assert result.results["fine"] == ["fine"]
    assert result.failed_keys == ["flaky"]
    assert result.items[0].attempt == 3
    assert "ServerError" in result.items[0].last_error
    assert no_sleep == [0.005, 0.005, 0.005]


@pytest.mark.asyncio
async def test_progress_is_monotonic_and_reaches_total(no_sleep):
    snapshots = []

    async def fetch(value):
        return value

    options = BatchOptions(batch_size=2, inter_batch_delay_ms=0, on_progress=snapshots.append)
    await BatchFetchEngine().fetch_all(keys(5), fetch, options)

    processed = [s.processed for s in snapshots]
    assert processed == sorted(processed)
    assert processed[-1] == 5
    assert all(s.total == 5 for s in snapshots)


@pytest.mark.asyncio
async def test_failing_progress_callback_is_ignored():
    def broken(snapshot):
        raise RuntimeError("ui gone")

    async def fetch(value):
        return value

    result = await BatchFetchEngine().fetch_all(keys(2), fetch, BatchOptions(on_progress=broken))

    assert result.progress.complete


@pytest.mark.asyncio
async def test_inter_batch_delay_only_between_waves(no_sleep):
    async def fetch(value):
        return value

    await BatchFetchEngine().fetch_all(keys(7), fetch, BatchOptions(batch_size=3, inter_batch_delay_ms=50))

    assert no_sleep == [0.05, 0.05]


@pytest.mark.asyncio
async def test_wave_events_are_emitted():
    events = []

    async def fetch(value):
        return value

    engine = BatchFetchEngine(event_sink=events.append)
    await engine.fetch_all(keys(4), fetch, BatchOptions(batch_size=3, inter_batch_delay_ms=0))

    waves = [e for e in events if isinstance(e, BatchWaveCompleted)]
    assert [(w.wave_index, w.wave_size, w.processed) for w in waves] == [(0, 3, 3), (1, 1, 4)]


@pytest.mark.asyncio
async def test_overall_timeout_returns_partial_results():
    async def fetch(value):
        if value in ("repo-3", "repo-4"):
            await asyncio.sleep(5)
        return value

    options = BatchOptions(batch_size=2, inter_batch_delay_ms=0, timeout_s=0.2)
    result = await BatchFetchEngine().fetch_all(keys(4), fetch, options)

    assert result.progress.timed_out
    assert set(result.results) == {"repo-1", "repo-2"}
    assert result.progress.processed == 2
    outcomes = {item.key: item.outcome for item in result.items}
    assert outcomes["repo-3"] is ItemOutcome.CANCELLED
    assert outcomes["repo-4"] is ItemOutcome.CANCELLED


@pytest.mark.asyncio
async def test_per_item_timeout_counts_as_retryable_failure(no_sleep):
    async def fetch(value):
        await asyncio.Event().wait()

    options = BatchOptions(per_item_timeout_s=0.01, max_attempts=1, retry_wait_ms=0)
    result = await BatchFetchEngine().fetch_all([FetchItem(key="stuck")], fetch, options)

    assert result.items[0].outcome is ItemOutcome.EXHAUSTED
    assert "TimeoutExceeded" in result.items[0].last_error


def test_options_reject_invalid_batch_size():
    with pytest.raises(ValueError):
        BatchOptions(batch_size=0)


@pytest.mark.asyncio
async def test_reusing_a_work_list_starts_with_a_fresh_retry_budget(no_sleep):
    calls = []

    async def fetch(value):
        calls.append(value)
        raise ServerError("HTTP 503", status_code=503)

    items = [FetchItem(key="flaky")]
    options = BatchOptions(max_attempts=2, retry_wait_ms=0)
    engine = BatchFetchEngine()

    first = await engine.fetch_all(items, fetch, options)
    second = await engine.fetch_all(items, fetch, options)

    assert len(calls) == 6
    assert items[0].attempt == 0
    assert items[0].outcome is ItemOutcome.PENDING
    assert first.items[0].attempt == second.items[0].attempt == 2
    assert second.items[0] is not items[0]
