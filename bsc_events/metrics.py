from prometheus_client import Counter, Gauge, Histogram

# -----------------------------
# Range progress
# -----------------------------
RANGE_FETCHED = Counter(
    "range_fetched_total",
    "Sub-ranges fetched successfully",
    ["chain", "job"],
)
RANGE_RETRIES = Counter(
    "range_retries_total",
    "Transient failures retried on the same sub-range",
    ["chain", "job"],
)
RANGE_FAILURES = Counter(
    "range_failures_total",
    "Sub-ranges aborted or skipped on a fatal failure",
    ["chain", "job"],
)
ITEMS_FETCHED = Counter(
    "items_fetched_total",
    "Items (events, balance snapshots) accumulated",
    ["chain", "job"],
)
CURSOR_BLOCK = Gauge(
    "range_cursor_block",
    "Block number the range cursor has advanced to",
    ["chain", "job"],
)

# -----------------------------
# RPC
# -----------------------------
RPC_REQUESTS = Counter(
    "rpc_requests_total",
    "RPC requests by provider",
    ["chain", "rpc"],
)
RPC_ERRORS = Counter(
    "rpc_errors_total",
    "RPC errors by provider and error kind",
    ["chain", "rpc", "kind"],
)
RPC_LATENCY = Histogram(
    "rpc_latency_sec",
    "RPC call latency",
    ["chain", "rpc"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)
