from .errors import (
    FetchError,
    FetchErrorKind,
    TransientFetchError,
    FatalFetchError,
    RetryExhaustedError,
)
from .range_planner import BlockRange, ChunkedRangePlanner, plan_ranges
from .range_fetcher import RangeFetcher, RetryPolicy, ProgressState, fetch_all

__all__ = [
    "FetchError",
    "FetchErrorKind",
    "TransientFetchError",
    "FatalFetchError",
    "RetryExhaustedError",
    "BlockRange",
    "ChunkedRangePlanner",
    "plan_ranges",
    "RangeFetcher",
    "RetryPolicy",
    "ProgressState",
    "fetch_all",
]
