"""
tests.test_orchestrator

Wallet state machine behavior against in-process fakes.

Responsibilities:
- Login/logout/resume transitions and the post-login fetch sequence.
- Mint/transfer consistency rules and the single pending-operation gate.
- Discarding results that resolve after logout.
"""

from __future__ import annotations

import asyncio

import pytest

from comrade_wallet.domain.errors import (
    AuthenticationFailed,
    InvalidIdentity,
    InvalidTransferRequest,
    LedgerError,
    LedgerErrorReason,
    LogoutFailed,
    MintNotAllowed,
    NotAuthenticated,
    OperationInProgress,
    RemoteUnavailable,
)
from comrade_wallet.domain.models import (
    PendingOperation,
    Severity,
    WalletPhase,
    WalletSnapshot,
    WalletView,
)
from comrade_wallet.orchestrator.session_store import SessionStore

from tests.conftest import PROVIDER_URL, SLOT
from tests.helpers.fakes import (
    ExplodingSink,
    FakeIdentityProvider,
    GatedSnapshotStorage,
    settle,
)


async def _logged_in(orchestrator):
    outcome = await orchestrator.login()
    assert outcome.ok
    return orchestrator


# -- login / fetch sequence -------------------------------------------------


@pytest.mark.asyncio
async def test_login_runs_fetch_sequence_and_persists_snapshot(
    orchestrator, ledger, identity, storage
) -> None:
    outcome = await orchestrator.login()

    assert outcome.ok
    assert identity.provider_urls == [PROVIDER_URL]
    assert orchestrator.phase is WalletPhase.logged_in
    assert orchestrator.session.active
    assert orchestrator.session.principal_id == "alice"
    assert orchestrator.view == WalletView(balance=100, can_mint=True, total_supply=1_000)
    assert orchestrator.pending is PendingOperation.none
    assert not orchestrator.degraded
    assert {c[0] for c in ledger.calls} == {"balance_of", "can_mint", "total_supply"}
    assert ledger.identity is not None and ledger.identity.principal == "alice"
    assert await storage.load(SLOT) == WalletSnapshot(principal_id="alice", last_known_balance=100)


@pytest.mark.asyncio
async def test_login_failure_returns_to_logged_out(make_orchestrator, sink, ledger) -> None:
    orchestrator = make_orchestrator(identity=FakeIdentityProvider(fail_login=True))

    outcome = await orchestrator.login()

    assert not outcome.ok
    assert isinstance(outcome.error, AuthenticationFailed)
    assert orchestrator.phase is WalletPhase.logged_out
    assert not orchestrator.session.active
    assert sink.events == [("Error logging in", Severity.error)]
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_login_with_malformed_principal_is_rejected(make_orchestrator, sink) -> None:
    orchestrator = make_orchestrator(identity=FakeIdentityProvider("Not A Principal"))

    outcome = await orchestrator.login()

    assert isinstance(outcome.error, InvalidIdentity)
    assert orchestrator.phase is WalletPhase.logged_out
    assert sink.messages == ["Error logging in"]


@pytest.mark.asyncio
async def test_second_login_while_authenticating_is_rejected(orchestrator, identity) -> None:
    identity.gate = asyncio.Event()
    first = asyncio.create_task(orchestrator.login())
    await settle()
    assert orchestrator.phase is WalletPhase.authenticating

    second = await orchestrator.login()

    assert isinstance(second.error, OperationInProgress)
    identity.gate.set()
    assert (await first).ok
    assert len(identity.provider_urls) == 1


@pytest.mark.asyncio
async def test_login_when_already_logged_in_is_a_noop(orchestrator, identity) -> None:
    await _logged_in(orchestrator)

    outcome = await orchestrator.login()

    assert outcome.ok
    assert len(identity.provider_urls) == 1


@pytest.mark.asyncio
async def test_fetch_failure_keeps_previous_values_and_marks_degraded(
    orchestrator, ledger, sink
) -> None:
    ledger.unavailable.add("total_supply")

    await orchestrator.login()

    assert orchestrator.view == WalletView(balance=100, can_mint=True, total_supply=0)
    assert orchestrator.degraded
    assert sink.events == [("Error getting total supply", Severity.error)]


@pytest.mark.asyncio
async def test_fetch_timeout_shows_partial_data_then_applies_late_result(
    make_orchestrator, ledger, sink
) -> None:
    orchestrator = make_orchestrator(refresh_timeout_seconds=0.01)
    ledger.gates["can_mint"] = asyncio.Event()

    outcome = await orchestrator.login()

    assert outcome.ok
    assert orchestrator.phase is WalletPhase.logged_in
    assert orchestrator.degraded
    assert orchestrator.view.balance == 100
    assert orchestrator.view.can_mint is False
    assert sink.events[-1][1] is Severity.error
    assert "still loading" in sink.events[-1][0]

    ledger.gates["can_mint"].set()
    await settle()

    assert orchestrator.view.can_mint is True


# -- mint -------------------------------------------------------------------


@pytest.mark.asyncio
async def test_mint_applies_returned_amount_and_disables_minting(
    orchestrator, ledger, sink, storage
) -> None:
    await _logged_in(orchestrator)
    balance_queries = ledger.called("balance_of")

    outcome = await orchestrator.mint()

    assert outcome.ok and outcome.value == 10
    assert orchestrator.view.balance == 110
    assert orchestrator.view.can_mint is False
    assert orchestrator.view.total_supply == 1_010
    # Optimistic: no balance re-query after mint.
    assert ledger.called("balance_of") == balance_queries
    assert ("Successfully minted 10 tokens!", Severity.success) in sink.events
    assert (await storage.load(SLOT)).last_known_balance == 110
    assert orchestrator.pending is PendingOperation.none


@pytest.mark.asyncio
async def test_mint_without_eligibility_makes_no_remote_call(orchestrator, ledger, sink) -> None:
    ledger.mintable["alice"] = False
    await _logged_in(orchestrator)
    view_before = orchestrator.view

    outcome = await orchestrator.mint()

    assert isinstance(outcome.error, MintNotAllowed)
    assert ledger.called("mint") == 0
    assert orchestrator.view == view_before
    assert sink.messages[-1] == "Minting cooldown is active"


@pytest.mark.asyncio
async def test_mint_rejected_by_ledger_leaves_view_unchanged(orchestrator, ledger, sink) -> None:
    await _logged_in(orchestrator)
    ledger.mint_error = LedgerError.from_server("Minting cooldown active, try again later")
    view_before = orchestrator.view

    outcome = await orchestrator.mint()

    assert isinstance(outcome.error, LedgerError)
    assert outcome.error.reason is LedgerErrorReason.cooldown_active
    assert orchestrator.view == view_before
    assert sink.events[-1] == (
        "Error minting tokens: Minting cooldown active, try again later",
        Severity.error,
    )
    assert orchestrator.pending is PendingOperation.none


@pytest.mark.asyncio
async def test_mint_transport_failure_is_notified(orchestrator, ledger, sink) -> None:
    await _logged_in(orchestrator)
    ledger.unavailable.add("mint")

    outcome = await orchestrator.mint()

    assert isinstance(outcome.error, RemoteUnavailable)
    assert orchestrator.view.balance == 100
    assert sink.messages[-1] == "Error minting tokens"


@pytest.mark.asyncio
async def test_mint_with_reconcile_requeries_balance(make_orchestrator, ledger) -> None:
    orchestrator = await _logged_in(make_orchestrator(reconcile_after_mint=True))
    # Someone else credited alice since login.
    ledger.balances["alice"] += 5

    await orchestrator.mint()

    assert orchestrator.view.balance == 115


# -- transfer ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_mint_then_transfer_scenario(orchestrator, ledger, sink) -> None:
    await _logged_in(orchestrator)
    await orchestrator.mint()
    assert orchestrator.view.balance == 110

    outcome = await orchestrator.transfer("bob", 50)

    assert outcome.ok
    assert ("transfer", "bob", 50) in ledger.calls
    assert ledger.calls[-1] == ("balance_of", "alice")
    assert orchestrator.view.balance == 60
    assert ("Tokens transferred successfully!", Severity.success) in sink.events


@pytest.mark.asyncio
async def test_transfer_balance_comes_from_ledger_not_local_arithmetic(
    orchestrator, ledger
) -> None:
    await _logged_in(orchestrator)
    ledger.balances["alice"] = 200

    await orchestrator.transfer("bob", "50")

    assert orchestrator.view.balance == 150


@pytest.mark.asyncio
async def test_transfer_with_empty_recipient_is_rejected_locally(orchestrator, ledger, sink) -> None:
    await _logged_in(orchestrator)
    calls_before = list(ledger.calls)

    outcome = await orchestrator.transfer("", 50)

    assert isinstance(outcome.error, InvalidTransferRequest)
    assert ledger.calls == calls_before
    assert sink.messages[-1] == "Invalid transfer: recipient is required"


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5, "", "abc", "1.5", "-3", None, True, "9" * 5000])
async def test_transfer_with_invalid_amount_is_rejected_locally(
    orchestrator, ledger, amount
) -> None:
    await _logged_in(orchestrator)

    outcome = await orchestrator.transfer("bob", amount)

    assert isinstance(outcome.error, InvalidTransferRequest)
    assert ledger.called("transfer") == 0
    assert orchestrator.view.balance == 100


@pytest.mark.asyncio
async def test_transfer_to_malformed_principal_is_rejected_locally(orchestrator, ledger) -> None:
    await _logged_in(orchestrator)

    outcome = await orchestrator.transfer("Bob Smith", 5)

    assert isinstance(outcome.error, InvalidIdentity)
    assert ledger.called("transfer") == 0


@pytest.mark.asyncio
async def test_transfer_rejected_by_ledger_keeps_balance(orchestrator, ledger, sink) -> None:
    await _logged_in(orchestrator)
    ledger.transfer_error = LedgerError.from_server("Insufficient balance")
    balance_queries = ledger.called("balance_of")

    outcome = await orchestrator.transfer("bob", 500)

    assert outcome.error.reason is LedgerErrorReason.insufficient_balance
    assert orchestrator.view.balance == 100
    assert ledger.called("balance_of") == balance_queries
    assert sink.messages[-1] == "Error transferring tokens: Insufficient balance"


# -- single pending-operation gate -----------------------------------------


@pytest.mark.asyncio
async def test_mint_while_transfer_pending_is_rejected(orchestrator, ledger) -> None:
    await _logged_in(orchestrator)
    ledger.gates["transfer"] = asyncio.Event()
    transfer = asyncio.create_task(orchestrator.transfer("bob", 50))
    await settle()
    assert orchestrator.pending is PendingOperation.transferring
    view_before = orchestrator.view

    outcome = await orchestrator.mint()

    assert isinstance(outcome.error, OperationInProgress)
    assert ledger.called("mint") == 0
    assert orchestrator.view == view_before
    assert orchestrator.pending is PendingOperation.transferring

    ledger.gates["transfer"].set()
    assert (await transfer).ok
    assert orchestrator.pending is PendingOperation.none


@pytest.mark.asyncio
async def test_transfer_while_mint_pending_is_rejected(orchestrator, ledger) -> None:
    await _logged_in(orchestrator)
    ledger.gates["mint"] = asyncio.Event()
    mint = asyncio.create_task(orchestrator.mint())
    await settle()

    outcome = await orchestrator.transfer("bob", 1)
    check = await orchestrator.check_balance()

    assert isinstance(outcome.error, OperationInProgress)
    assert isinstance(check.error, OperationInProgress)
    assert ledger.called("transfer") == 0

    ledger.gates["mint"].set()
    assert (await mint).ok


@pytest.mark.asyncio
async def test_operations_require_a_session(orchestrator, ledger) -> None:
    for outcome in (
        await orchestrator.mint(),
        await orchestrator.transfer("bob", 1),
        await orchestrator.check_balance(),
        await orchestrator.refresh(),
    ):
        assert isinstance(outcome.error, NotAuthenticated)
    assert ledger.calls == []


# -- balance checks / refresh ----------------------------------------------


@pytest.mark.asyncio
async def test_failed_balance_check_keeps_last_good_value(orchestrator, ledger, sink) -> None:
    await _logged_in(orchestrator)
    ledger.unavailable.add("balance_of")

    outcome = await orchestrator.check_balance()

    assert isinstance(outcome.error, RemoteUnavailable)
    assert orchestrator.view.balance == 100
    assert sink.messages[-1] == "Error checking balance"
    assert orchestrator.pending is PendingOperation.none


@pytest.mark.asyncio
async def test_refresh_picks_up_expired_cooldown(orchestrator, ledger) -> None:
    await _logged_in(orchestrator)
    await orchestrator.mint()
    assert orchestrator.view.can_mint is False

    ledger.mintable["alice"] = True
    outcome = await orchestrator.refresh()

    assert outcome.ok
    assert orchestrator.view.can_mint is True
    assert not orchestrator.degraded


# -- logout -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_logout_clears_session_view_and_snapshot(orchestrator, identity, storage) -> None:
    await _logged_in(orchestrator)

    outcome = await orchestrator.logout()

    assert outcome.ok
    assert orchestrator.phase is WalletPhase.logged_out
    assert not orchestrator.session.active
    assert orchestrator.view == WalletView(balance=0, can_mint=False, total_supply=0)
    assert identity.end_session_calls == 1
    assert await storage.load(SLOT) is None


@pytest.mark.asyncio
async def test_logout_during_mint_discards_late_result(orchestrator, ledger, sink, storage) -> None:
    await _logged_in(orchestrator)
    ledger.gates["mint"] = asyncio.Event()
    mint = asyncio.create_task(orchestrator.mint())
    await settle()
    assert orchestrator.pending is PendingOperation.minting

    await orchestrator.logout()
    assert orchestrator.pending is PendingOperation.none
    notified = len(sink.events)

    ledger.gates["mint"].set()
    outcome = await mint

    assert outcome.discarded
    assert orchestrator.view == WalletView.empty()
    assert not orchestrator.session.active
    assert await storage.load(SLOT) is None
    assert len(sink.events) == notified


@pytest.mark.asyncio
async def test_logout_during_mint_snapshot_write_suppresses_success(
    make_orchestrator, sink
) -> None:
    storage = GatedSnapshotStorage()
    orchestrator = make_orchestrator(store=SessionStore(storage=storage, slot=SLOT))
    await _logged_in(orchestrator)
    storage.save_gate = asyncio.Event()

    mint = asyncio.create_task(orchestrator.mint())
    await settle()
    logout = asyncio.create_task(orchestrator.logout())
    await settle()

    storage.save_gate.set()
    outcome = await mint
    await logout

    assert outcome.discarded
    assert "Successfully minted 10 tokens!" not in sink.messages
    assert orchestrator.view == WalletView.empty()
    assert await storage.load(SLOT) is None


@pytest.mark.asyncio
async def test_logout_during_login_fetch_discards_results(orchestrator, ledger, storage) -> None:
    ledger.gates["balance_of"] = asyncio.Event()
    login = asyncio.create_task(orchestrator.login())
    await settle()

    await orchestrator.logout()
    ledger.gates["balance_of"].set()
    await login

    assert orchestrator.phase is WalletPhase.logged_out
    assert orchestrator.view == WalletView.empty()
    assert await storage.load(SLOT) is None


@pytest.mark.asyncio
async def test_logout_clears_state_even_if_end_session_fails(make_orchestrator, sink) -> None:
    orchestrator = await _logged_in(
        make_orchestrator(identity=FakeIdentityProvider("alice", fail_logout=True))
    )

    outcome = await orchestrator.logout()

    assert isinstance(outcome.error, LogoutFailed)
    assert not orchestrator.session.active
    assert orchestrator.view == WalletView.empty()
    assert sink.messages[-1] == "Error logging out"


# -- resume -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_resume_restores_session_from_snapshot(make_orchestrator, storage, ledger) -> None:
    await storage.save(SLOT, WalletSnapshot(principal_id="alice", last_known_balance=42))
    ledger.unavailable.add("balance_of")
    orchestrator = make_orchestrator(identity=FakeIdentityProvider(signed_in_as="alice"))

    outcome = await orchestrator.resume()

    assert outcome.ok
    assert orchestrator.phase is WalletPhase.logged_in
    assert orchestrator.session.principal_id == "alice"
    # Balance query failed: the persisted value stays on screen.
    assert orchestrator.view.balance == 42
    assert orchestrator.view.can_mint is True


@pytest.mark.asyncio
async def test_resume_with_different_identity_starts_empty(make_orchestrator, storage, ledger) -> None:
    await storage.save(SLOT, WalletSnapshot(principal_id="alice", last_known_balance=42))
    orchestrator = make_orchestrator(identity=FakeIdentityProvider(signed_in_as="mallory"))

    outcome = await orchestrator.resume()

    assert outcome.ok
    assert orchestrator.phase is WalletPhase.logged_out
    assert orchestrator.view == WalletView.empty()
    assert await storage.load(SLOT) is None
    assert ledger.calls == []


@pytest.mark.asyncio
async def test_resume_without_snapshot_stays_logged_out(orchestrator, ledger) -> None:
    outcome = await orchestrator.resume()

    assert outcome.ok
    assert orchestrator.phase is WalletPhase.logged_out
    assert ledger.calls == []


# -- notification sink ------------------------------------------------------


@pytest.mark.asyncio
async def test_failing_sink_does_not_break_operations(make_orchestrator) -> None:
    orchestrator = await _logged_in(make_orchestrator(notifier=ExplodingSink()))

    outcome = await orchestrator.mint()

    assert outcome.ok
    assert orchestrator.view.balance == 110
