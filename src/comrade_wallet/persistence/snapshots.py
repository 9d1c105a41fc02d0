"""
comrade_wallet.persistence.snapshots

Snapshot storage backends.

Responsibilities:
- Load/save/erase the `WalletSnapshot` held in a fixed storage slot.
- Provide an in-memory backend for tests and ephemeral clients.
"""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from comrade_wallet.domain.models import WalletSnapshot
from comrade_wallet.persistence.models import WalletSnapshotRow


class SnapshotStorage(Protocol):
    async def load(self, slot: str) -> WalletSnapshot | None: ...

    async def save(self, slot: str, snapshot: WalletSnapshot) -> None: ...

    async def erase(self, slot: str) -> None: ...


class MemorySnapshotStorage:
    def __init__(self) -> None:
        self._slots: dict[str, WalletSnapshot] = {}

    async def load(self, slot: str) -> WalletSnapshot | None:
        return self._slots.get(slot)

    async def save(self, slot: str, snapshot: WalletSnapshot) -> None:
        self._slots[slot] = snapshot

    async def erase(self, slot: str) -> None:
        self._slots.pop(slot, None)


class SqlSnapshotStorage:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self, slot: str) -> WalletSnapshot | None:
        async with self._session_factory() as session:
            row = await session.get(WalletSnapshotRow, slot)
            if row is None:
                return None
            try:
                balance = int(row.last_known_balance)
            except ValueError:
                balance = 0
            return WalletSnapshot(principal_id=row.principal_id, last_known_balance=max(balance, 0))

    async def save(self, slot: str, snapshot: WalletSnapshot) -> None:
        async with self._session_factory() as session:
            row = await session.get(WalletSnapshotRow, slot)
            if row is None:
                row = WalletSnapshotRow(slot=slot)
                session.add(row)
            row.principal_id = snapshot.principal_id
            row.last_known_balance = str(snapshot.last_known_balance)
            await session.commit()

    async def erase(self, slot: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(WalletSnapshotRow).where(WalletSnapshotRow.slot == slot))
            await session.commit()


# --- Module Notes -----------------------------------------------------------
# Each call opens its own short session; the snapshot is tiny and writes are rare.
