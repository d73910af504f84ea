# -----------------------------
# import deps
# -----------------------------
import sys
import json
import argparse
from prometheus_client import start_http_server
from bsc_events.config import Settings, PANCAKESWAP_EFX_ADDRESS, DEFAULT_ABI_PATH, load_abi
from bsc_events.contract import ALL_EVENTS, event_fetcher, balance_fetcher
from bsc_events.errors import FetchError
from bsc_events.logging import log
from bsc_events.progress import ProgressBar
from bsc_events.range_fetcher import RangeFetcher
from bsc_events.rpc_provider import build_router
from bsc_events.web3_utils import to_json_safe, current_utctime


def build_parser():
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("head", type=int, help="first block of the range")
    common.add_argument("tail", type=int, help="last block of the range")
    common.add_argument("--address", default=PANCAKESWAP_EFX_ADDRESS, help="contract address")
    common.add_argument("--abi", default=str(DEFAULT_ABI_PATH), help="contract ABI json file")
    common.add_argument("--rpc-url", help="single RPC endpoint, overrides RPC_CONFIG_PATH providers")
    common.add_argument("--chunk-size", type=int, help="blocks per eth_getLogs / read window")
    common.add_argument("--skip-failed", action="store_true", help="log and skip sub-ranges that fail fatally")
    common.add_argument("--output", help="write results as a JSON array to this file")
    common.add_argument("--full", action="store_true", help="print every item as JSON")
    common.add_argument("--no-progress", action="store_true", help="disable the progress bar")

    parser = argparse.ArgumentParser(
        prog="contract_events",
        description="Fetch historical contract events or balances from BSC in block-range chunks",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    events = sub.add_parser("events", parents=[common], help="fetch contract events")
    events.add_argument(
        "--event",
        default=ALL_EVENTS,
        help="event name (Swap, Sync, Transfer, Approval, Mint, Burn) or allEvents",
    )

    balances = sub.add_parser("balances", parents=[common], help="sample a contract read over the range")
    balances.add_argument("--holder", required=True, help="address passed to the read method")
    balances.add_argument("--method", default="balanceOf", help="view function to call")

    return parser


def parse_args(argv=None, parser=None):
    parser = parser or build_parser()
    args = parser.parse_args(argv)

    if args.head < 0 or args.head > args.tail:
        parser.error(f"expected 0 <= head <= tail, got head={args.head} tail={args.tail}")
    if args.chunk_size is not None and args.chunk_size < 1:
        parser.error("--chunk-size must be >= 1")

    return args


def build_fetch_fn(args, router, abi):
    if args.command == "events":
        return event_fetcher(router, args.address, abi, args.event), "events"
    return balance_fetcher(router, args.address, abi, args.method, [args.holder]), "snapshots"


def run(args, settings: Settings, fetch_fn, label: str) -> list:
    fetcher = RangeFetcher(
        args.chunk_size or settings.chunk_size,
        retry_policy=settings.retry_policy(),
        skip_failed_ranges=args.skip_failed,
        chain=settings.chain,
        job=settings.job_name,
    )

    log.info(
        "job_start",
        extra={
            "chain": settings.chain,
            "job": settings.job_name,
            "command": args.command,
            "address": args.address,
            "head": args.head,
            "tail": args.tail,
            "chunk_size": fetcher.chunk_size,
            "started_at": current_utctime(),
        },
    )

    if args.no_progress:
        return fetcher.fetch_all(args.head, args.tail, fetch_fn)

    with ProgressBar(item_label=label) as bar:
        return fetcher.fetch_all(args.head, args.tail, fetch_fn, on_progress=bar)


def main(argv=None) -> int:
    parser = build_parser()
    args = parse_args(argv, parser)

    try:
        settings = Settings.from_env()
        abi = load_abi(args.abi)
        router = build_router(settings, rpc_url=args.rpc_url)
        fetch_fn, label = build_fetch_fn(args, router, abi)
    except (OSError, ValueError) as e:
        parser.error(str(e))

    if settings.metrics_port:
        start_http_server(settings.metrics_port)

    try:
        items = run(args, settings, fetch_fn, label)
    except FetchError as e:
        log.error(
            "job_failed",
            extra={"chain": settings.chain, "job": settings.job_name, "kind": e.kind.value, "error": str(e)},
        )
        print(f"An error occurred: {e}", file=sys.stderr)
        return 1

    safe_items = to_json_safe(items)

    if args.full:
        for item in safe_items:
            print(json.dumps(item, indent=2))

    if args.output:
        with open(args.output, "w") as f:
            json.dump(safe_items, f, indent=2)

    print(f"{len(items)} {label} in blocks {args.head}-{args.tail}")
    print("Completed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
