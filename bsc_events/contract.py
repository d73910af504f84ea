from dataclasses import dataclass
from typing import Any, Callable, Sequence

from web3 import Web3
from web3.exceptions import LogTopicError, MismatchedABI

from bsc_events.logging import log

ALL_EVENTS = "allEvents"


@dataclass(frozen=True)
class BalanceSnapshot:
    block_number: int
    value: Any


def event_names(abi: list) -> list[str]:
    return [e["name"] for e in abi if e.get("type") == "event" and "name" in e]


def function_names(abi: list) -> list[str]:
    return [f["name"] for f in abi if f.get("type") == "function" and "name" in f]


def decode_log(contract, names: Sequence[str], raw_log):
    """
    Decode a raw log against every event in the ABI.

    Logs the contract ABI does not describe are returned undecoded.
    """
    for name in names:
        try:
            return getattr(contract.events, name)().process_log(raw_log)
        except (MismatchedABI, LogTopicError):
            continue
    return raw_log


def event_fetcher(router, address: str, abi: list, event_name: str = ALL_EVENTS) -> Callable[[int, int], list]:
    """
    Fetch function over eth_getLogs for one contract event, or every
    event of the contract when event_name is "allEvents".
    """
    address = Web3.to_checksum_address(address)
    names = event_names(abi)

    if event_name != ALL_EVENTS and event_name not in names:
        raise ValueError(
            f"event {event_name!r} not in ABI, expected one of {[ALL_EVENTS] + names}"
        )

    def fetch(start_block: int, end_block: int) -> list:
        def _query(w3):
            contract = w3.eth.contract(address=address, abi=abi)
            if event_name == ALL_EVENTS:
                raw_logs = w3.eth.get_logs(
                    {"address": address, "fromBlock": start_block, "toBlock": end_block}
                )
                return [decode_log(contract, names, raw) for raw in raw_logs]

            event = getattr(contract.events, event_name)
            return list(event.get_logs(from_block=start_block, to_block=end_block))

        return router.call(_query)

    return fetch


def balance_fetcher(
    router,
    address: str,
    abi: list,
    method: str = "balanceOf",
    args: Sequence[Any] = (),
) -> Callable[[int, int], list]:
    """
    Fetch function reading `method(*args)` as of each sub-range's end block.
    Sampled over a block range this yields a balance history at chunk
    granularity.
    """
    address = Web3.to_checksum_address(address)

    if method not in function_names(abi):
        raise ValueError(f"function {method!r} not in ABI")

    args = tuple(
        Web3.to_checksum_address(a) if isinstance(a, str) and Web3.is_address(a) else a
        for a in args
    )

    def fetch(start_block: int, end_block: int) -> list:
        def _read(w3):
            contract = w3.eth.contract(address=address, abi=abi)
            fn = getattr(contract.functions, method)
            return fn(*args).call(block_identifier=end_block)

        value = router.call(_read)
        log.debug(
            "contract_read",
            extra={"method": method, "block": end_block, "value": str(value)},
        )
        return [BalanceSnapshot(block_number=end_block, value=value)]

    return fetch
