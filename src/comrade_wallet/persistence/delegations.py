"""
comrade_wallet.persistence.delegations

Delegation storage backends for the identity provider.

Responsibilities:
- Load/save/erase the delegation token held in a fixed storage slot.
- Provide an in-memory backend for tests and ephemeral clients.
"""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from comrade_wallet.persistence.models import DelegationRow


class DelegationStorage(Protocol):
    async def load(self, slot: str) -> str | None: ...

    async def save(self, slot: str, token: str) -> None: ...

    async def erase(self, slot: str) -> None: ...


class MemoryDelegationStorage:
    def __init__(self) -> None:
        self._slots: dict[str, str] = {}

    async def load(self, slot: str) -> str | None:
        return self._slots.get(slot)

    async def save(self, slot: str, token: str) -> None:
        self._slots[slot] = token

    async def erase(self, slot: str) -> None:
        self._slots.pop(slot, None)


class SqlDelegationStorage:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def load(self, slot: str) -> str | None:
        async with self._session_factory() as session:
            row = await session.get(DelegationRow, slot)
            return row.token if row is not None else None

    async def save(self, slot: str, token: str) -> None:
        async with self._session_factory() as session:
            row = await session.get(DelegationRow, slot)
            if row is None:
                row = DelegationRow(slot=slot)
                session.add(row)
            row.token = token
            await session.commit()

    async def erase(self, slot: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(DelegationRow).where(DelegationRow.slot == slot))
            await session.commit()
