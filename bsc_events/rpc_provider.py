import time, random, os
from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware
from bsc_events.errors import TransientFetchError, as_fetch_error
from bsc_events.metrics import RPC_REQUESTS, RPC_ERRORS, RPC_LATENCY
from bsc_events.logging import log

# -----------------------------
# RPC Provider config
# -----------------------------
class RpcProvider:
    def __init__(self, name, base_url, weight, key_env=None):
        self.name = name
        self.base_url = base_url
        self.key_env = key_env
        self.base_weight = weight
        self.current_weight = weight
        self.cooldown_until = 0

    def available(self):
        return time.time() >= self.cooldown_until

    def penalize(self, seconds=15):
        before = self.current_weight
        self.current_weight = max(1, self.current_weight - 1)
        self.cooldown_until = time.time() + seconds

        log.warning(
            "rpc_penalized",
            extra={
                "rpc": self.name,
                "weight_before": before,
                "weight_after": self.current_weight,
                "cooldown_seconds": seconds,
            },
        )

    def reward(self):
        if self.current_weight < self.base_weight:
            self.current_weight += 1

    def build_url(self):
        """
        Build final RPC URL for THIS request
        """
        if not self.key_env:
            return self.base_url # public RPC without key_env

        api_key = os.getenv(self.key_env)
        if not api_key:
            raise RuntimeError(
                f"Missing env var for RPC provider {self.name}: {self.key_env}"
            )

        return f"{self.base_url}/{api_key}"


class RpcPool:
    def __init__(self, providers):
        self.providers = providers

    def get_available_providers(self):
        candidates = []
        for p in self.providers:
            if p.available():
                candidates.extend([p] * p.current_weight)

        random.shuffle(candidates)
        return candidates

    @classmethod
    def from_config(cls, rpc_configs: dict, chain: str) -> "RpcPool":
        chain_cfg = rpc_configs.get("chains", {}).get(chain)
        if not chain_cfg:
            raise RuntimeError(f"Chain config not found: {chain}")

        providers = []

        for cfg in chain_cfg.get("providers", []):
            if not cfg.get("enabled", True):
                continue

            key_env = cfg.get("api_key_env")
            if isinstance(key_env, list):
                key_env = random.choice(key_env)

            providers.append(
                RpcProvider(
                    name=cfg["name"],
                    base_url=cfg["base_url"],
                    weight=int(cfg.get("weight", 1)),
                    key_env=key_env,
                )
            )

        if not providers:
            raise RuntimeError(f"No RPC providers enabled for chain: {chain}")

        for p in providers:
            log.info(
                "rpc_enabled",
                extra={
                    "chain": chain,
                    "rpc": p.name,
                    "key_env": p.key_env,
                    "weight": p.base_weight,
                },
            )
        return cls(providers)

    @classmethod
    def single(cls, url: str, name: str = "default") -> "RpcPool":
        return cls([RpcProvider(name=name, base_url=url, weight=1)])


def make_web3(url: str, timeout: int = 10) -> Web3:
    w3 = Web3(
        Web3.HTTPProvider(
            url,
            request_kwargs={"timeout": timeout},
        )
    )
    # BSC block headers carry POA extraData
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return w3


class Web3Router:
    """
    Run a web3 call against the provider pool with failover.

    Errors leave the router already tagged: a fatal error (contract revert,
    bad arguments) is raised at once since every provider would answer the
    same; transient errors penalize the provider and move on to the next
    one, and a round where all providers failed raises TransientFetchError.
    Waiting between rounds is left to the caller's retry policy.
    """

    def __init__(
        self,
        rpc_pool,
        chain: str,
        timeout=10,
        penalize_seconds=15,
        web3_factory=make_web3,
    ):
        self.rpc_pool = rpc_pool
        self.chain = chain
        self.timeout = timeout
        self.penalize_seconds = penalize_seconds
        self.web3_factory = web3_factory

        self.consecutive_failures = 0
        self.last_provider: RpcProvider | None = None
        self._clients = {}

    def _web3(self, provider: RpcProvider) -> Web3:
        w3 = self._clients.get(provider.name)
        if w3 is None:
            w3 = self.web3_factory(provider.build_url(), self.timeout)
            self._clients[provider.name] = w3
        return w3

    def call(self, fn):
        last_error = None

        providers = self.rpc_pool.get_available_providers()
        used = set()

        for provider in providers:
            if provider.name in used:
                continue
            used.add(provider.name)

            self.last_provider = provider

            RPC_REQUESTS.labels(chain=self.chain, rpc=provider.name).inc()

            start = time.perf_counter()
            try:
                result = fn(self._web3(provider))
            except Exception as e:
                error = as_fetch_error(e)
                RPC_ERRORS.labels(
                    chain=self.chain, rpc=provider.name, kind=error.kind.value
                ).inc()

                if not error.transient:
                    log.error(
                        "rpc_call_fatal",
                        extra={
                            "chain": self.chain,
                            "rpc": provider.name,
                            "error": str(e)[:200],
                        },
                    )
                    if error is e:
                        raise
                    raise error from e

                log.warning(
                    "rpc_failover",
                    extra={
                        "chain": self.chain,
                        "rpc": provider.name,
                        "error": str(e)[:200],
                    },
                )
                provider.penalize(self.penalize_seconds)
                last_error = e
                continue

            RPC_LATENCY.labels(chain=self.chain, rpc=provider.name).observe(
                time.perf_counter() - start
            )
            provider.reward()
            self.consecutive_failures = 0
            return result

        self.consecutive_failures += 1

        log.error(
            "rpc_round_failed",
            extra={
                "chain": self.chain,
                "attempted": sorted(used),
                "consecutive_failures": self.consecutive_failures,
            },
        )

        if last_error is None:
            raise TransientFetchError(
                f"no RPC provider available for chain={self.chain}"
            )

        raise TransientFetchError(
            f"RPC temporarily unavailable for chain={self.chain}: {str(last_error)[:200]}"
        ) from last_error


def build_router(settings, rpc_url: str | None = None) -> Web3Router:
    """Router from a single explicit URL or the chain's provider config."""
    if rpc_url:
        pool = RpcPool.single(rpc_url)
    else:
        pool = RpcPool.from_config(settings.load_rpc_configs(), settings.chain)

    return Web3Router(
        rpc_pool=pool,
        chain=settings.chain,
        timeout=settings.rpc_timeout,
        penalize_seconds=settings.penalize_seconds,
    )
