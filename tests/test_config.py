"""
Unit tests for bsc_events/config.py.
"""

from __future__ import annotations

import json

import pytest

from bsc_events.config import (
    BLOCK_RANGE_LIMIT,
    DEFAULT_RPC_CONFIG_PATH,
    Settings,
)
from bsc_events.rpc_provider import RpcPool

ENV_VARS = (
    "CHAIN", "JOB_NAME", "RPC_CONFIG_PATH", "CHUNK_SIZE", "MAX_ATTEMPTS",
    "RETRY_BASE_DELAY", "RETRY_MAX_DELAY", "RPC_TIMEOUT", "PENALIZE_SECONDS",
    "METRICS_PORT",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettingsFromEnv:
    def test_defaults(self, clean_env):
        settings = Settings.from_env()

        assert settings.chain == "bsc"
        assert settings.job_name == "bsc_contract_events"
        assert settings.chunk_size == BLOCK_RANGE_LIMIT == 5000
        assert settings.max_attempts == 10
        assert settings.metrics_port is None
        assert settings.rpc_config_path == DEFAULT_RPC_CONFIG_PATH

    def test_overrides(self, clean_env):
        clean_env.setenv("CHAIN", "BSC")
        clean_env.setenv("CHUNK_SIZE", "2000")
        clean_env.setenv("RETRY_BASE_DELAY", "0.25")
        clean_env.setenv("METRICS_PORT", "9108")

        settings = Settings.from_env()

        assert settings.chain == "bsc"
        assert settings.chunk_size == 2000
        assert settings.retry_base_delay == 0.25
        assert settings.metrics_port == 9108

    def test_zero_max_attempts_means_unbounded(self, clean_env):
        clean_env.setenv("MAX_ATTEMPTS", "0")

        policy = Settings.from_env().retry_policy()

        assert policy.max_attempts is None
        assert policy.allows(10**6)

    def test_invalid_integer(self, clean_env):
        clean_env.setenv("CHUNK_SIZE", "lots")

        with pytest.raises(ValueError, match="CHUNK_SIZE"):
            Settings.from_env()


class TestRpcConfig:
    def test_shipped_config_has_bsc_providers(self, clean_env):
        pool = RpcPool.from_config(Settings.from_env().load_rpc_configs(), "bsc")

        assert pool.providers
        assert all(p.key_env is None for p in pool.providers)

    def test_custom_config_path(self, clean_env, tmp_path):
        path = tmp_path / "rpc.json"
        path.write_text(json.dumps({"chains": {"bsc": {"providers": [{"name": "local", "base_url": "http://localhost:8545"}]}}}))
        clean_env.setenv("RPC_CONFIG_PATH", str(path))

        configs = Settings.from_env().load_rpc_configs()

        assert configs["chains"]["bsc"]["providers"][0]["name"] == "local"
