"""
comrade_wallet.orchestrator.session_store

Holds and persists the authentication/session snapshot.

Responsibilities:
- Track the current `Session` (principal + active flag).
- Persist `{principal_id, last_known_balance}` into a fixed storage slot.
- Restore a previous session only when the identity collaborator confirms it.
"""

from __future__ import annotations

import asyncio

from comrade_wallet.domain.models import Session, WalletSnapshot, ensure_principal
from comrade_wallet.identity.provider import Identity
from comrade_wallet.observability.logging import get_logger
from comrade_wallet.persistence.snapshots import SnapshotStorage

log = get_logger(__name__)


class SessionStore:
    def __init__(self, *, storage: SnapshotStorage, slot: str) -> None:
        self._storage = storage
        self._slot = slot
        self._session = Session.inactive()
        self._last_known_balance = 0
        # Serializes storage writes so a clear() can never be overtaken by a late save.
        self._write_lock = asyncio.Lock()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def last_known_balance(self) -> int:
        return self._last_known_balance

    async def restore(self, current: Identity | None) -> Session:
        """
        Load the persisted principal and accept it only if `current` (the identity
        collaborator's live identity) belongs to the same principal. Anything else
        erases the snapshot and yields an inactive session.
        """

        try:
            snapshot = await self._storage.load(self._slot)
        except Exception as e:
            log.warning("snapshot_load_failed", slot=self._slot, error=str(e))
            snapshot = None

        if snapshot is None:
            self._reset()
            return self._session

        if current is None or current.principal != snapshot.principal_id:
            log.info(
                "session_restore_rejected",
                persisted=snapshot.principal_id,
                current=current.principal if current else None,
            )
            await self.clear()
            return self._session

        self._session = Session(principal_id=snapshot.principal_id)
        self._last_known_balance = snapshot.last_known_balance
        log.info("session_restored", principal=snapshot.principal_id)
        return self._session

    async def activate(self, principal_id: str) -> Session:
        ensure_principal(principal_id)
        if principal_id != self._session.principal_id:
            self._last_known_balance = 0
        self._session = Session(principal_id=principal_id)
        async with self._write_lock:
            await self._save(principal_id)
        return self._session

    async def record_balance(self, principal_id: str, balance: int) -> None:
        async with self._write_lock:
            if self._session.principal_id != principal_id:
                return
            self._last_known_balance = balance
            await self._save(principal_id)

    async def clear(self) -> None:
        self._reset()
        async with self._write_lock:
            try:
                await self._storage.erase(self._slot)
            except Exception as e:
                log.warning("snapshot_erase_failed", slot=self._slot, error=str(e))

    def _reset(self) -> None:
        self._session = Session.inactive()
        self._last_known_balance = 0

    async def _save(self, principal_id: str) -> None:
        snapshot = WalletSnapshot(
            principal_id=principal_id, last_known_balance=self._last_known_balance
        )
        try:
            await self._storage.save(self._slot, snapshot)
        except Exception as e:
            # The in-memory session stays authoritative; persistence is best effort.
            log.warning("snapshot_save_failed", slot=self._slot, error=str(e))


# --- Module Notes -----------------------------------------------------------
# Only the orchestrator mutates the store, always in response to authentication
# events or successful balance refreshes.
