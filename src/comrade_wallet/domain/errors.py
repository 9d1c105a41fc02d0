"""
comrade_wallet.domain.errors

Wallet error taxonomy.

Responsibilities:
- Local precondition failures (identity syntax, transfer input, operation gate).
- Remote failures (transport vs. ledger-rejected operations).

Every error is caught at the orchestrator boundary and turned into a notification;
`user_message` is the text shown to the user.
"""

from __future__ import annotations

import enum
import re


class WalletError(Exception):
    user_message: str = "Unexpected wallet error"

    def __str__(self) -> str:
        return self.user_message


class InvalidIdentity(WalletError):
    def __init__(self, principal: str) -> None:
        super().__init__(principal)
        self.principal = principal
        self.user_message = f"Invalid principal: {principal!r}"


class InvalidTransferRequest(WalletError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail
        self.user_message = f"Invalid transfer: {detail}"


class RemoteUnavailable(WalletError):
    def __init__(self, operation: str, cause: str = "") -> None:
        super().__init__(operation, cause)
        self.operation = operation
        self.cause = cause
        self.user_message = f"Ledger unavailable during {operation}"


class LedgerErrorReason(enum.StrEnum):
    cooldown_active = "COOLDOWN_ACTIVE"
    supply_cap_reached = "SUPPLY_CAP_REACHED"
    insufficient_balance = "INSUFFICIENT_BALANCE"
    invalid_recipient = "INVALID_RECIPIENT"
    unknown = "UNKNOWN"


_REASON_PATTERNS: tuple[tuple[re.Pattern[str], LedgerErrorReason], ...] = (
    (re.compile(r"\bcool-?down\b"), LedgerErrorReason.cooldown_active),
    (re.compile(r"\b(?:wait|try again later)\b"), LedgerErrorReason.cooldown_active),
    (re.compile(r"\bcap\b"), LedgerErrorReason.supply_cap_reached),
    (re.compile(r"\bmax(?:imum)? supply\b"), LedgerErrorReason.supply_cap_reached),
    (re.compile(r"\binsufficient\b"), LedgerErrorReason.insufficient_balance),
    (re.compile(r"\brecipient\b"), LedgerErrorReason.invalid_recipient),
)


class LedgerError(WalletError):
    """
    Server-rejected operation. `message` is the ledger's own wording; `reason` is
    its best-effort classification.
    """

    def __init__(self, reason: LedgerErrorReason, message: str) -> None:
        super().__init__(reason, message)
        self.reason = reason
        self.message = message
        self.user_message = message or reason.value

    @classmethod
    def from_server(cls, raw: object) -> LedgerError:
        message = str(raw) if raw is not None else ""
        lowered = message.lower()
        try:
            return cls(LedgerErrorReason(message.upper()), message)
        except ValueError:
            pass
        for pattern, reason in _REASON_PATTERNS:
            if pattern.search(lowered):
                return cls(reason, message)
        return cls(LedgerErrorReason.unknown, message)


class OperationInProgress(WalletError):
    def __init__(self, pending: str) -> None:
        super().__init__(pending)
        self.pending = pending
        self.user_message = "Another wallet operation is still in progress"


class MintNotAllowed(WalletError):
    user_message = "Minting cooldown is active"


class NotAuthenticated(WalletError):
    user_message = "Please log in first"


class AuthenticationFailed(WalletError):
    def __init__(self, cause: str = "") -> None:
        super().__init__(cause)
        self.cause = cause
        self.user_message = "Error logging in"


class LogoutFailed(WalletError):
    def __init__(self, cause: str = "") -> None:
        super().__init__(cause)
        self.cause = cause
        self.user_message = "Error logging out"


# --- Module Notes -----------------------------------------------------------
# Errors carry structured fields for logging; only `user_message` reaches the sink.
