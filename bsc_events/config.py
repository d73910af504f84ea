import os
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from bsc_events.range_fetcher import RetryPolicy

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# PancakeSwap EFX/WBNB pair
PANCAKESWAP_EFX_ADDRESS = "0xAf1DB0c88a2Bd295F8EdCC8C73f9eB8BcEe6fA8a"
DEFAULT_ABI_PATH = PROJECT_ROOT / "abi" / "pancake_pair_abi.json"
DEFAULT_RPC_CONFIG_PATH = PROJECT_ROOT / "config" / "rpc_providers.json"

# most public BSC endpoints reject eth_getLogs spans above 5000 blocks
BLOCK_RANGE_LIMIT = 5000


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"env var {name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"env var {name} must be a number, got {value!r}")


@dataclass(frozen=True)
class Settings:
    chain: str = "bsc"
    job_name: str = "bsc_contract_events"
    rpc_config_path: Path = DEFAULT_RPC_CONFIG_PATH
    chunk_size: int = BLOCK_RANGE_LIMIT
    max_attempts: Optional[int] = 10
    retry_base_delay: float = 0.5
    retry_max_delay: float = 30.0
    rpc_timeout: int = 10
    penalize_seconds: int = 15
    metrics_port: Optional[int] = None

    @classmethod
    def from_env(cls) -> "Settings":
        chain = os.getenv("CHAIN", "bsc").lower() # bsc, eth, ... from rpc_providers.json
        max_attempts = _env_int("MAX_ATTEMPTS", 10) # 0 = retry forever
        metrics_port = _env_int("METRICS_PORT", 0)

        return cls(
            chain=chain,
            job_name=os.getenv("JOB_NAME", f"{chain}_contract_events"),
            rpc_config_path=Path(os.getenv("RPC_CONFIG_PATH", str(DEFAULT_RPC_CONFIG_PATH))),
            chunk_size=_env_int("CHUNK_SIZE", BLOCK_RANGE_LIMIT),
            max_attempts=max_attempts or None,
            retry_base_delay=_env_float("RETRY_BASE_DELAY", 0.5),
            retry_max_delay=_env_float("RETRY_MAX_DELAY", 30.0),
            rpc_timeout=_env_int("RPC_TIMEOUT", 10),
            penalize_seconds=_env_int("PENALIZE_SECONDS", 15),
            metrics_port=metrics_port or None,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )

    def load_rpc_configs(self) -> dict:
        with open(self.rpc_config_path) as f:
            return json.load(f)


def load_abi(path) -> list:
    with open(path, encoding="utf-8") as f:
        abi = json.load(f)
    # truffle / hardhat artifacts wrap the ABI
    if isinstance(abi, dict):
        abi = abi.get("abi", [])
    if not isinstance(abi, list):
        raise ValueError(f"ABI file {path} does not contain a list")
    return abi
