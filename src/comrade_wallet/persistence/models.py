"""
comrade_wallet.persistence.models

Persistence schema for the wallet snapshot and the identity delegation.

Responsibilities:
- Define the single-row-per-slot table holding the last session snapshot.
- Define the table holding the identity provider's current delegation.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from comrade_wallet.persistence.base import Base


def _utcnow() -> datetime:
    return datetime.now(tz=UTC).replace(tzinfo=None)


class WalletSnapshotRow(Base):
    __tablename__ = "wallet_snapshots"

    slot: Mapped[str] = mapped_column(String(128), primary_key=True)
    principal_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # Stored as decimal text: ledger balances are unbounded naturals.
    last_known_balance: Mapped[str] = mapped_column(String(80), nullable=False, default="0")

    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)


class DelegationRow(Base):
    __tablename__ = "identity_delegations"

    slot: Mapped[str] = mapped_column(String(128), primary_key=True)
    token: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)


# --- Module Notes -----------------------------------------------------------
# The snapshot never holds credentials. The identity provider keeps its delegation in
# its own table so that logging out and expiry can drop it independently.
