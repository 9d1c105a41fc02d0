from __future__ import annotations

from collections.abc import Callable

import pytest

from comrade_wallet.orchestrator.session_store import SessionStore
from comrade_wallet.orchestrator.wallet import WalletOrchestrator
from comrade_wallet.persistence.snapshots import MemorySnapshotStorage

from tests.helpers.fakes import FakeIdentityProvider, FakeLedger, RecordingSink

SLOT = "comrade-wallet"
PROVIDER_URL = "https://identity.ic0.app"


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(balances={"alice": 100}, mintable={"alice": True}, supply=1_000)


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider("alice")


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def storage() -> MemorySnapshotStorage:
    return MemorySnapshotStorage()


@pytest.fixture
def store(storage: MemorySnapshotStorage) -> SessionStore:
    return SessionStore(storage=storage, slot=SLOT)


@pytest.fixture
def make_orchestrator(
    store: SessionStore,
    ledger: FakeLedger,
    identity: FakeIdentityProvider,
    sink: RecordingSink,
) -> Callable[..., WalletOrchestrator]:
    def _make(**overrides) -> WalletOrchestrator:
        kwargs = {
            "store": store,
            "ledger": ledger,
            "identity": identity,
            "notifier": sink,
            "provider_url": PROVIDER_URL,
            "refresh_timeout_seconds": 1.0,
        }
        kwargs.update(overrides)
        return WalletOrchestrator(**kwargs)

    return _make


@pytest.fixture
def orchestrator(make_orchestrator: Callable[..., WalletOrchestrator]) -> WalletOrchestrator:
    return make_orchestrator()
