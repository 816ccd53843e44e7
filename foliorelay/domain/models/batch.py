"""Domain models for the batch fetch context.

A batch is a list of FetchItems executed in bounded waves. Progress is
exposed through BatchProgress, which consumers may sample at any time.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from .common import ItemKey

T = TypeVar("T")


class ItemOutcome(str, Enum):
    PENDING = "pending"
    FETCHED = "fetched"
    NOT_FOUND = "not_found"   # empty result, never retried
    EXHAUSTED = "exhausted"   # empty result after the retry cap
    CANCELLED = "cancelled"   # deadline reached before the item finished

    @property
    def is_final(self) -> bool:
        return self in (ItemOutcome.FETCHED, ItemOutcome.NOT_FOUND, ItemOutcome.EXHAUSTED)


@dataclass
class FetchItem:
    """One unit of work, e.g. one repository to fetch sub-resources for."""
    key: ItemKey
    value: Any = None
    attempt: int = 0  # retries performed so far
    outcome: ItemOutcome = ItemOutcome.PENDING
    last_error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.value is None:
            self.value = self.key

    @property
    def done(self) -> bool:
        return self.outcome.is_final


@dataclass
class BatchProgress:
    """Monotonic progress counter for one fetch_all invocation.

    Only the engine advances it; `processed` never decreases and never
    exceeds `total`.
    """
    total: int
    processed: int = 0
    timed_out: bool = False

    def advance(self) -> None:
        if self.processed >= self.total:
            raise ValueError(f"progress already complete ({self.processed}/{self.total})")
        self.processed += 1

    @property
    def complete(self) -> bool:
        return self.processed == self.total

    @property
    def fraction(self) -> float:
        return self.processed / self.total if self.total else 1.0

    def snapshot(self) -> "BatchProgress":
        return BatchProgress(total=self.total, processed=self.processed, timed_out=self.timed_out)


ProgressCallback = Callable[[BatchProgress], None]


@dataclass
class BatchOptions:
    """Tuning knobs for one fetch_all call site."""
    batch_size: int = 3
    max_items: int = 10
    inter_batch_delay_ms: int = 800
    per_item_timeout_s: Optional[float] = None
    timeout_s: Optional[float] = None
    max_attempts: int = 3
    retry_wait_ms: int = 800
    ceiling_ms: int = 60_000
    empty: Callable[[], Any] = list
    on_progress: Optional[ProgressCallback] = None

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_items < 0:
            raise ValueError("max_items must not be negative")
        if self.max_attempts < 0:
            raise ValueError("max_attempts must not be negative")


@dataclass
class BatchResult(Generic[T]):
    """Results of a fetch_all call: one entry per finished item."""
    results: Dict[ItemKey, T]
    progress: BatchProgress
    items: List[FetchItem] = field(default_factory=list)

    def keys_with(self, outcome: ItemOutcome) -> List[ItemKey]:
        return [item.key for item in self.items if item.outcome is outcome]

    @property
    def failed_keys(self) -> List[ItemKey]:
        return self.keys_with(ItemOutcome.EXHAUSTED)

    @property
    def not_found_keys(self) -> List[ItemKey]:
        return self.keys_with(ItemOutcome.NOT_FOUND)

    def ordered_values(self) -> List[T]:
        """Values in work-list order, skipping items that never finished."""
        return [self.results[item.key] for item in self.items if item.key in self.results]
