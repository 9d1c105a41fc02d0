"""
comrade_wallet.domain.models

Wallet domain value types.

Responsibilities:
- Session / WalletView snapshots owned by the orchestrator.
- Transient TransferRequest with client-side validation.
- Principal syntax checks used before any remote call.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

from comrade_wallet.domain.errors import InvalidIdentity, InvalidTransferRequest

# Lowercase alphanumeric groups joined by single dashes (textual ICP principals
# like "aaaaa-aa" as well as plain ids like "alice").
_PRINCIPAL_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_PRINCIPAL_MAX_LEN = 63
_AMOUNT_RE = re.compile(r"^[0-9]+$")


def is_valid_principal(value: str) -> bool:
    return (
        isinstance(value, str)
        and 0 < len(value) <= _PRINCIPAL_MAX_LEN
        and _PRINCIPAL_RE.match(value) is not None
    )


def ensure_principal(value: str) -> str:
    if not is_valid_principal(value):
        raise InvalidIdentity(principal=str(value))
    return value


class PendingOperation(enum.StrEnum):
    none = "NONE"
    checking_balance = "CHECKING_BALANCE"
    minting = "MINTING"
    transferring = "TRANSFERRING"


class WalletPhase(enum.StrEnum):
    logged_out = "LOGGED_OUT"
    authenticating = "AUTHENTICATING"
    logged_in = "LOGGED_IN"


class Severity(enum.StrEnum):
    info = "info"
    success = "success"
    error = "error"


@dataclass(frozen=True, slots=True)
class Session:
    """
    Authenticated session snapshot. `active` is derived from the principal so the
    two can never disagree.
    """

    principal_id: str = ""

    @property
    def active(self) -> bool:
        return bool(self.principal_id)

    @classmethod
    def inactive(cls) -> Session:
        return cls()


@dataclass(frozen=True, slots=True)
class WalletView:
    balance: int = 0
    can_mint: bool = False
    total_supply: int = 0

    @classmethod
    def empty(cls) -> WalletView:
        return cls()


@dataclass(frozen=True, slots=True)
class WalletSnapshot:
    # Persisted across restarts; keyed by a fixed storage slot.
    principal_id: str
    last_known_balance: int = 0


@dataclass(frozen=True, slots=True)
class TransferRequest:
    recipient: str
    amount: int

    @classmethod
    def parse(cls, *, recipient: str | None, amount: int | str | None) -> TransferRequest:
        """
        Build a request from raw user input.

        `amount` is expressed in the token's smallest unit; string input must be plain
        decimal digits (no sign, no fraction).
        """

        recipient = (recipient or "").strip()
        if not recipient:
            raise InvalidTransferRequest("recipient is required")
        ensure_principal(recipient)
        return cls(recipient=recipient, amount=_parse_amount(amount))


def _parse_amount(raw: int | str | None) -> int:
    if isinstance(raw, bool):
        raise InvalidTransferRequest("amount must be a whole number of tokens")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and _AMOUNT_RE.match(raw.strip()):
        try:
            value = int(raw.strip())
        except ValueError as e:
            # Digit strings past the interpreter's int conversion limit.
            raise InvalidTransferRequest("amount is too large") from e
    else:
        raise InvalidTransferRequest("amount must be a whole number of tokens")
    if value <= 0:
        raise InvalidTransferRequest("amount must be greater than zero")
    return value


# --- Module Notes -----------------------------------------------------------
# Amounts are Python ints end-to-end so large ledger values never lose precision.
