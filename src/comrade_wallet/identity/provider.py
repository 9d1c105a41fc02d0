"""
comrade_wallet.identity.provider

Identity collaborator contract.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True, slots=True)
class Identity:
    """
    Authenticated identity. Only `principal` is read by the wallet; `credential` is
    forwarded verbatim to the ledger as the caller's call context.
    """

    principal: str
    credential: str | None = field(default=None, repr=False)


class IdentityProvider(Protocol):
    async def authenticate(self, provider_url: str) -> Identity: ...

    async def current_identity(self) -> Identity | None: ...

    async def end_session(self) -> None: ...

    async def is_session_active(self) -> bool: ...
