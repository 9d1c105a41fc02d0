"""
comrade_wallet.orchestrator.wallet

Wallet session/operation state machine.

Responsibilities:
- Drive login/logout and session restore against the identity collaborator.
- Run the post-authentication fetch sequence (balance, mint eligibility, supply).
- Gate token operations through a single pending-operation slot.
- Apply optimistic (mint) and confirmed (transfer) balance updates.
- Convert every outcome into a notification; nothing propagates to callers.

States: LOGGED_OUT -> AUTHENTICATING -> LOGGED_IN(view, pending).
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass, replace
from typing import Any

from comrade_wallet.domain.errors import (
    AuthenticationFailed,
    LedgerError,
    LogoutFailed,
    MintNotAllowed,
    NotAuthenticated,
    OperationInProgress,
    WalletError,
)
from comrade_wallet.domain.models import (
    PendingOperation,
    Session,
    Severity,
    TransferRequest,
    WalletPhase,
    WalletView,
)
from comrade_wallet.identity.provider import IdentityProvider
from comrade_wallet.ledger.client import LedgerClient
from comrade_wallet.observability.logging import bind_principal, get_logger
from comrade_wallet.orchestrator.notifications import NotificationSink
from comrade_wallet.orchestrator.session_store import SessionStore
from comrade_wallet.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class OperationOutcome:
    """
    Result of an orchestrator call. `discarded` marks a result that arrived after the
    session it belonged to had ended and was therefore not applied.
    """

    ok: bool
    value: Any = None
    error: WalletError | None = None
    discarded: bool = False

    @classmethod
    def success(cls, value: Any = None) -> OperationOutcome:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: WalletError, *, discarded: bool = False) -> OperationOutcome:
        return cls(ok=False, error=error, discarded=discarded)

    @classmethod
    def stale(cls, value: Any = None) -> OperationOutcome:
        return cls(ok=True, value=value, discarded=True)


class WalletOrchestrator:
    def __init__(
        self,
        *,
        store: SessionStore,
        ledger: LedgerClient,
        identity: IdentityProvider,
        notifier: NotificationSink,
        provider_url: str,
        refresh_timeout_seconds: float = 10.0,
        reconcile_after_mint: bool = False,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._identity = identity
        self._notifier = notifier
        self._provider_url = provider_url
        self._refresh_timeout = refresh_timeout_seconds
        self._reconcile_after_mint = reconcile_after_mint

        self._phase = WalletPhase.logged_out
        self._view = WalletView.empty()
        self._pending = PendingOperation.none
        self._degraded = False
        # Bumped on every login/logout; results from an older epoch are discarded.
        self._epoch = 0
        # Fetches that outlived the refresh timeout keep running until they resolve.
        self._background: set[asyncio.Task[WalletError | None]] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        store: SessionStore,
        ledger: LedgerClient,
        identity: IdentityProvider,
        notifier: NotificationSink,
    ) -> WalletOrchestrator:
        return cls(
            store=store,
            ledger=ledger,
            identity=identity,
            notifier=notifier,
            provider_url=settings.identity_provider_url,
            refresh_timeout_seconds=settings.refresh_timeout_seconds,
            reconcile_after_mint=settings.reconcile_after_mint,
        )

    @property
    def phase(self) -> WalletPhase:
        return self._phase

    @property
    def session(self) -> Session:
        return self._store.session

    @property
    def view(self) -> WalletView:
        return self._view

    @property
    def pending(self) -> PendingOperation:
        return self._pending

    @property
    def degraded(self) -> bool:
        return self._degraded

    # -- authentication -----------------------------------------------------

    async def resume(self) -> OperationOutcome:
        """
        Startup path: reuse a persisted session if the identity collaborator still
        vouches for the same principal, otherwise fall back to an empty logged-out state.
        """

        if self._phase is not WalletPhase.logged_out:
            return OperationOutcome.success(self.session)

        epoch = self._next_epoch()
        self._phase = WalletPhase.authenticating
        try:
            identity = await self._identity.current_identity()
        except Exception as e:
            log.warning("session_restore_failed", error=str(e))
            identity = None

        session = await self._store.restore(identity)
        if epoch != self._epoch:
            # Logged out while the snapshot was loading.
            if self._phase is WalletPhase.logged_out:
                await self._store.clear()
            return OperationOutcome.stale(session)
        if identity is None or not session.active:
            self._phase = WalletPhase.logged_out
            self._view = WalletView.empty()
            return OperationOutcome.success(session)

        self._ledger.use_identity(identity)
        self._view = WalletView(balance=self._store.last_known_balance)
        log.info("session_resumed", principal=session.principal_id)
        await self._enter_logged_in(session.principal_id, epoch)
        return OperationOutcome.success(session)

    async def login(self) -> OperationOutcome:
        if self._phase is WalletPhase.authenticating:
            return self._reject(OperationInProgress(self._phase.value))
        if self._phase is WalletPhase.logged_in:
            return OperationOutcome.success(self.session)

        epoch = self._next_epoch()
        self._phase = WalletPhase.authenticating
        log.info("login_started", provider=self._provider_url)
        try:
            identity = await self._identity.authenticate(self._provider_url)
        except Exception as e:
            # The identity collaborator is opaque; any failure means "not logged in".
            error = e if isinstance(e, AuthenticationFailed) else AuthenticationFailed(str(e))
            if epoch == self._epoch:
                self._phase = WalletPhase.logged_out
            return self._fail(error, "Error logging in", epoch)

        if epoch != self._epoch:
            return OperationOutcome.stale(identity.principal)

        try:
            session = await self._store.activate(identity.principal)
        except WalletError as e:
            self._phase = WalletPhase.logged_out
            return self._fail(e, "Error logging in", epoch)

        if epoch != self._epoch:
            # Logged out while the snapshot was being written.
            if self._phase is WalletPhase.logged_out:
                await self._store.clear()
            return OperationOutcome.stale(session)

        self._ledger.use_identity(identity)
        self._view = WalletView(balance=self._store.last_known_balance)
        log.info("login_succeeded", principal=session.principal_id)
        await self._enter_logged_in(session.principal_id, epoch)
        return OperationOutcome.success(session)

    async def logout(self) -> OperationOutcome:
        """
        Always ends in LOGGED_OUT with an empty view, even with an operation in
        flight; that operation's result is dropped when it resolves.
        """

        principal = self.session.principal_id
        self._next_epoch()
        self._phase = WalletPhase.logged_out
        self._view = WalletView.empty()
        bind_principal(None)
        self._pending = PendingOperation.none
        self._degraded = False
        self._ledger.use_identity(None)
        await self._store.clear()

        try:
            await self._identity.end_session()
        except Exception as e:
            log.warning("logout_end_session_failed", principal=principal, error=str(e))
            self._notify("Error logging out", Severity.error)
            return OperationOutcome.failure(LogoutFailed(str(e)))

        log.info("logout_succeeded", principal=principal)
        return OperationOutcome.success()

    # -- token operations ---------------------------------------------------

    async def check_balance(self) -> OperationOutcome:
        gate = self._gate()
        if gate is not None:
            return self._reject(gate)

        epoch, principal = self._acquire(PendingOperation.checking_balance)
        try:
            error = await self._load_balance(principal, epoch)
            if error is not None:
                return OperationOutcome.failure(error, discarded=not self._is_current(epoch))
            if not self._is_current(epoch):
                return OperationOutcome.stale()
            return OperationOutcome.success(self._view.balance)
        finally:
            self._release(epoch)

    async def refresh(self) -> OperationOutcome:
        """Re-run the full fetch sequence; picks up an expired mint cooldown."""

        gate = self._gate()
        if gate is not None:
            return self._reject(gate)

        epoch, principal = self._acquire(PendingOperation.checking_balance)
        try:
            await self._fetch_all(principal, epoch)
            if not self._is_current(epoch):
                return OperationOutcome.stale()
            return OperationOutcome.success(self._view)
        finally:
            self._release(epoch)

    async def mint(self) -> OperationOutcome:
        gate = self._gate()
        if gate is not None:
            return self._reject(gate)
        if not self._view.can_mint:
            # UI gate only; the ledger stays authoritative whenever a call is made.
            return self._reject(MintNotAllowed())

        epoch, principal = self._acquire(PendingOperation.minting)
        try:
            try:
                minted = await self._ledger.mint()
            except LedgerError as e:
                return self._fail(e, f"Error minting tokens: {e.user_message}", epoch)
            except WalletError as e:
                return self._fail(e, "Error minting tokens", epoch)

            if not self._is_current(epoch):
                log.info("mint_result_discarded", principal=principal, minted=minted)
                return OperationOutcome.stale(minted)

            balance = self._view.balance + minted
            self._view = replace(self._view, balance=balance, can_mint=False)
            await self._store.record_balance(principal, balance)
            if not self._is_current(epoch):
                # Logged out while the snapshot was being written.
                log.info("mint_result_discarded", principal=principal, minted=minted)
                return OperationOutcome.stale(minted)
            log.info("mint_succeeded", principal=principal, minted=minted, balance=balance)
            self._notify(f"Successfully minted {minted} tokens!", Severity.success)

            if self._reconcile_after_mint:
                await self._load_balance(principal, epoch)
            await self._load_total_supply(epoch)
            return OperationOutcome.success(minted)
        finally:
            self._release(epoch)

    async def transfer(self, recipient: str | None, amount: int | str | None) -> OperationOutcome:
        gate = self._gate()
        if gate is not None:
            return self._reject(gate)
        try:
            request = TransferRequest.parse(recipient=recipient, amount=amount)
        except WalletError as e:
            return self._reject(e)

        epoch, principal = self._acquire(PendingOperation.transferring)
        try:
            try:
                await self._ledger.transfer(request.recipient, request.amount)
            except LedgerError as e:
                return self._fail(e, f"Error transferring tokens: {e.user_message}", epoch)
            except WalletError as e:
                return self._fail(e, "Error transferring tokens", epoch)

            if not self._is_current(epoch):
                log.info("transfer_result_discarded", principal=principal)
                return OperationOutcome.stale(request)

            log.info(
                "transfer_succeeded",
                principal=principal,
                recipient=request.recipient,
                amount=request.amount,
            )
            self._notify("Tokens transferred successfully!", Severity.success)
            # The ledger's balance is authoritative after a transfer; no local arithmetic.
            await self._load_balance(principal, epoch)
            return OperationOutcome.success(request)
        finally:
            self._release(epoch)

    # -- fetch sequence -----------------------------------------------------

    async def _enter_logged_in(self, principal: str, epoch: int) -> None:
        self._phase = WalletPhase.logged_in
        bind_principal(principal)
        self._degraded = False
        await self._fetch_all(principal, epoch)

    async def _fetch_all(self, principal: str, epoch: int) -> None:
        tasks = {
            _spawn(self._load_balance(principal, epoch)),
            _spawn(self._load_can_mint(principal, epoch)),
            _spawn(self._load_total_supply(epoch)),
        }
        # asyncio.wait does not cancel on timeout; late results still land via the loaders.
        done, pending = await asyncio.wait(tasks, timeout=self._refresh_timeout)
        for task in pending:
            self._background.add(task)
            task.add_done_callback(self._background.discard)

        if not self._is_current(epoch):
            return
        failed = [t for t in done if t.result() is not None]
        self._degraded = bool(pending or failed)
        if pending:
            log.warning(
                "wallet_refresh_timed_out",
                principal=principal,
                outstanding=len(pending),
                timeout=self._refresh_timeout,
            )
            self._notify(
                "Some wallet data is still loading; showing last known values", Severity.error
            )
        else:
            log.info("wallet_refreshed", principal=principal, failed=len(failed))

    async def _load_balance(self, principal: str, epoch: int) -> WalletError | None:
        try:
            balance = await self._ledger.balance_of(principal)
        except WalletError as e:
            self._fail(e, "Error checking balance", epoch)
            return e
        if self._is_current(epoch):
            self._view = replace(self._view, balance=balance)
            await self._store.record_balance(principal, balance)
        return None

    async def _load_can_mint(self, principal: str, epoch: int) -> WalletError | None:
        try:
            can_mint = await self._ledger.can_mint(principal)
        except WalletError as e:
            self._fail(e, "Error checking mint ability", epoch)
            return e
        if self._is_current(epoch):
            self._view = replace(self._view, can_mint=can_mint)
        return None

    async def _load_total_supply(self, epoch: int) -> WalletError | None:
        try:
            total_supply = await self._ledger.total_supply()
        except WalletError as e:
            self._fail(e, "Error getting total supply", epoch)
            return e
        if self._is_current(epoch):
            self._view = replace(self._view, total_supply=total_supply)
        return None

    # -- gate + helpers -----------------------------------------------------

    def _gate(self) -> WalletError | None:
        if self._phase is not WalletPhase.logged_in or not self.session.active:
            return NotAuthenticated()
        if self._pending is not PendingOperation.none:
            return OperationInProgress(self._pending.value)
        return None

    def _acquire(self, operation: PendingOperation) -> tuple[int, str]:
        # Checked by _gate and set here with no await in between.
        self._pending = operation
        return self._epoch, self.session.principal_id

    def _release(self, epoch: int) -> None:
        if epoch == self._epoch:
            self._pending = PendingOperation.none

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch and self._phase is WalletPhase.logged_in

    def _next_epoch(self) -> int:
        self._epoch += 1
        return self._epoch

    def _reject(self, error: WalletError) -> OperationOutcome:
        log.info("operation_rejected", error=type(error).__name__, pending=self._pending.value)
        self._notify(error.user_message, Severity.error)
        return OperationOutcome.failure(error)

    def _fail(self, error: WalletError, message: str, epoch: int) -> OperationOutcome:
        if epoch != self._epoch:
            log.info("operation_error_discarded", error=type(error).__name__)
            return OperationOutcome.failure(error, discarded=True)
        log.warning("operation_failed", error=type(error).__name__, detail=str(error))
        self._notify(message, Severity.error)
        return OperationOutcome.failure(error)

    def _notify(self, message: str, severity: Severity) -> None:
        try:
            self._notifier.notify(message, severity)
        except Exception as e:
            log.warning("notification_dropped", message=message, error=str(e))


def _spawn(
    coro: Coroutine[Any, Any, WalletError | None],
) -> asyncio.Task[WalletError | None]:
    return asyncio.create_task(coro)


# --- Module Notes -----------------------------------------------------------
# Mint applies the ledger-reported amount locally while transfer re-queries the
# balance. `reconcile_after_mint` adds the extra balanceOf round trip after a mint
# for deployments where other clients credit the same principal concurrently.
