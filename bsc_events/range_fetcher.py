import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Optional, Sequence

from bsc_events.errors import FetchError, RetryExhaustedError, as_fetch_error
from bsc_events.logging import log
from bsc_events.metrics import (
    CURSOR_BLOCK,
    ITEMS_FETCHED,
    RANGE_FAILURES,
    RANGE_FETCHED,
    RANGE_RETRIES,
)
from bsc_events.range_planner import BlockRange, ChunkedRangePlanner

FetchFn = Callable[[int, int], Sequence[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry budget for one sub-range.

    max_attempts counts every call including the first one; None means
    retry forever. Delay grows exponentially from base_delay, capped at
    max_delay.
    """

    max_attempts: Optional[int] = 10
    base_delay: float = 0.5
    max_delay: float = 30.0
    multiplier: float = 2.0

    def __post_init__(self):
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError(f"max_attempts {self.max_attempts} < 1")

    def allows(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt < self.max_attempts

    def delay(self, attempt: int) -> float:
        if self.base_delay <= 0:
            return 0.0
        return min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)

    @classmethod
    def unbounded(cls) -> "RetryPolicy":
        return cls(max_attempts=None, base_delay=0.0)


@dataclass
class ProgressState:
    total_range: BlockRange
    processed: int = 0
    accumulated_count: int = 0
    last_error: Optional[str] = None
    current_range: Optional[BlockRange] = None
    attempt: int = 0
    skipped: list = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.total_range.width

    def snapshot(self) -> "ProgressState":
        return replace(self, skipped=list(self.skipped))


ProgressFn = Callable[[ProgressState], None]


class RangeFetcher:
    def __init__(
        self,
        chunk_size: int,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        skip_failed_ranges: bool = False,
        chain: str = "bsc",
        job: str = "default",
        sleep: Callable[[float], None] = time.sleep,
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size {chunk_size} < 1")

        self.chunk_size = chunk_size
        self.retry_policy = retry_policy or RetryPolicy()
        self.skip_failed_ranges = skip_failed_ranges
        self.chain = chain
        self.job = job
        self._sleep = sleep

    def fetch_all(
        self,
        head: int,
        tail: int,
        fetch_fn: FetchFn,
        on_progress: Optional[ProgressFn] = None,
    ) -> list:
        planner = ChunkedRangePlanner(head, tail, self.chunk_size)
        state = ProgressState(total_range=BlockRange(head, tail))
        items: list = []

        log.info(
            "fetch_all_start",
            extra={
                "chain": self.chain,
                "job": self.job,
                "head": head,
                "tail": tail,
                "chunk_size": self.chunk_size,
                "ranges": planner.expected_ranges(),
                "max_attempts": self.retry_policy.max_attempts,
            },
        )

        for block_range in planner:
            state.current_range = block_range
            try:
                result = self._fetch_range(block_range, fetch_fn, state, on_progress)
            except FetchError as e:
                RANGE_FAILURES.labels(chain=self.chain, job=self.job).inc()
                if not self.skip_failed_ranges:
                    log.error(
                        "range_fetch_failed",
                        extra={
                            "chain": self.chain,
                            "job": self.job,
                            "range_start": block_range.start_block,
                            "range_end": block_range.end_block,
                            "error": str(e),
                        },
                    )
                    raise

                log.warning(
                    "range_fetch_skipped",
                    extra={
                        "chain": self.chain,
                        "job": self.job,
                        "range_start": block_range.start_block,
                        "range_end": block_range.end_block,
                        "error": str(e),
                    },
                )
                state.skipped.append(block_range)
                state.last_error = f"{e} @ block: {block_range.start_block}"
                result = []

            items.extend(result)

            state.processed = block_range.end_block - head
            state.accumulated_count = len(items)
            state.attempt = 0

            RANGE_FETCHED.labels(chain=self.chain, job=self.job).inc()
            ITEMS_FETCHED.labels(chain=self.chain, job=self.job).inc(len(result))
            CURSOR_BLOCK.labels(chain=self.chain, job=self.job).set(block_range.end_block)

            log.debug(
                "range_fetch_done",
                extra={
                    "range_start": block_range.start_block,
                    "range_end": block_range.end_block,
                    "items": len(result),
                    "accumulated": state.accumulated_count,
                },
            )
            if on_progress:
                on_progress(state)

        log.info(
            "fetch_all_done",
            extra={
                "chain": self.chain,
                "job": self.job,
                "head": head,
                "tail": tail,
                "items": len(items),
                "skipped_ranges": len(state.skipped),
            },
        )
        return items

    def _fetch_range(
        self,
        block_range: BlockRange,
        fetch_fn: FetchFn,
        state: ProgressState,
        on_progress: Optional[ProgressFn],
    ) -> list:
        attempt = 0
        while True:
            attempt += 1
            state.attempt = attempt
            try:
                return list(fetch_fn(block_range.start_block, block_range.end_block))
            except Exception as e:
                error = as_fetch_error(e)
                if not error.transient:
                    if error is e:
                        raise
                    raise error from e

                state.last_error = f"{error} @ block: {block_range.start_block}"
                RANGE_RETRIES.labels(chain=self.chain, job=self.job).inc()
                if on_progress:
                    on_progress(state)

                if not self.retry_policy.allows(attempt):
                    raise RetryExhaustedError(
                        block_range.start_block, block_range.end_block, attempt
                    ) from e

                delay = self.retry_policy.delay(attempt)
                log.warning(
                    "range_fetch_retry",
                    extra={
                        "chain": self.chain,
                        "job": self.job,
                        "range_start": block_range.start_block,
                        "range_end": block_range.end_block,
                        "attempt": attempt,
                        "max_attempts": self.retry_policy.max_attempts,
                        "backoff_seconds": delay,
                        "error": str(error),
                    },
                )
                if delay:
                    self._sleep(delay)


def fetch_all(
    head: int,
    tail: int,
    chunk_size: int,
    fetch_fn: FetchFn,
    on_progress: Optional[ProgressFn] = None,
    **kwargs,
) -> list:
    """Fetch [head, tail] in chunk_size windows; see RangeFetcher."""
    return RangeFetcher(chunk_size, **kwargs).fetch_all(head, tail, fetch_fn, on_progress)
