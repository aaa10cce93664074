import os

import pytest

from ledgerflow import accounts
from ledgerflow.context import NetworkContext
from ledgerflow.network.memory import InMemoryLedger, ManualClock
from ledgerflow.wallet.keys import PrivateKey
from ledgerflow.wallet.registry import AccountRegistry


def make_ctx(ledger: InMemoryLedger, clock=None, **overrides) -> NetworkContext:
    """Context wired to `ledger` with a funded operator and fast polling."""
    operator_id, operator_key = ledger.bootstrap_operator()
    params = dict(
        network=ledger,
        name="memory",
        operator_id=operator_id,
        operator_key=operator_key,
        registry=AccountRegistry(),
        receipt_timeout=2.0,
        poll_interval=0.001,
        max_poll_interval=0.01,
        backoff_base=0.0,
        backoff_max=0.0,
    )
    if clock is not None:
        params["clock"] = clock
    params.update(overrides)
    return NetworkContext(**params)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def ledger(clock):
    return InMemoryLedger(clock=clock)


@pytest.fixture
def ctx(ledger, clock):
    return make_ctx(ledger, clock)


@pytest.fixture
def new_account(ctx):
    """Factory: create a funded account through the pipeline and register it."""

    def _make(balance: int = 1_000):
        return accounts.create_account(ctx, balance)

    return _make


@pytest.fixture
def ctx_factory(ledger, clock):
    """Build extra contexts on the shared ledger, e.g. with other node sets."""

    def _make(**overrides):
        return make_ctx(ledger, clock, **overrides)

    return _make


@pytest.fixture
def seed_key():
    def _key(n: int) -> PrivateKey:
        return PrivateKey.from_seed(bytes([n]) * 32)

    return _key


@pytest.fixture
def clean_env(monkeypatch):
    """Drop LEDGERFLOW_* and MY_* variables so config starts from defaults."""
    for name in list(os.environ):
        if name.startswith("LEDGERFLOW_") or name in ("MY_ACCOUNT_ID", "MY_PRIVATE_KEY"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch
