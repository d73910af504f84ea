"""
Shared pytest configuration and fixtures for the BSC contract events tests.

No test touches the network: web3 clients are MagicMocks and retry
sleeps are recorded instead of slept.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest


SAMPLE_PAIR_ADDRESS = "0xAf1DB0c88a2Bd295F8EdCC8C73f9eB8BcEe6fA8a"
SAMPLE_HOLDER_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


# ---------------------------------------------------------------------------
# Fetch function doubles
# ---------------------------------------------------------------------------


class ScriptedFetch:
    """
    Fetch function that records every call and replays scripted failures.

    `failures` maps (start, end) to a list of exceptions raised, in order,
    on the first calls for that sub-range; afterwards the call returns
    `items_for(start, end)`.
    """

    def __init__(self, failures=None, items_for=None):
        self.calls: list[tuple[int, int]] = []
        self._failures = {k: list(v) for k, v in (failures or {}).items()}
        self._items_for = items_for or (lambda start, end: [(start, end)])

    def __call__(self, start: int, end: int):
        self.calls.append((start, end))
        pending = self._failures.get((start, end))
        if pending:
            raise pending.pop(0)
        return self._items_for(start, end)


@pytest.fixture
def scripted_fetch():
    return ScriptedFetch


@pytest.fixture
def sleeps():
    """List collecting every delay passed to the fetcher's sleep."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


# ---------------------------------------------------------------------------
# Router doubles
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_w3():
    return MagicMock(name="w3")


@pytest.fixture
def direct_router(mock_w3):
    """Router stand-in that runs the call against one mock web3 client."""
    router = MagicMock(name="router")
    router.call.side_effect = lambda fn: fn(mock_w3)
    return router
