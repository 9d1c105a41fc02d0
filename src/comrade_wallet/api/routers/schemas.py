"""
comrade_wallet.api.routers.schemas

Response/request models shared by the session and wallet routers.

Responsibilities:
- Render orchestrator state and operation outcomes as JSON.
- Map wallet errors onto HTTP status codes.
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.status import (
    HTTP_200_OK,
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_409_CONFLICT,
    HTTP_502_BAD_GATEWAY,
)

from comrade_wallet.domain.errors import (
    AuthenticationFailed,
    InvalidIdentity,
    InvalidTransferRequest,
    LedgerError,
    MintNotAllowed,
    NotAuthenticated,
    OperationInProgress,
    WalletError,
)
from comrade_wallet.orchestrator.wallet import OperationOutcome, WalletOrchestrator


class WalletStateResponse(BaseModel):
    phase: str
    principal_id: str
    active: bool
    balance: int
    can_mint: bool
    total_supply: int
    pending: str
    degraded: bool

    @classmethod
    def from_orchestrator(cls, orchestrator: WalletOrchestrator) -> WalletStateResponse:
        view = orchestrator.view
        session = orchestrator.session
        return cls(
            phase=orchestrator.phase.value,
            principal_id=session.principal_id,
            active=session.active,
            balance=view.balance,
            can_mint=view.can_mint,
            total_supply=view.total_supply,
            pending=orchestrator.pending.value,
            degraded=orchestrator.degraded,
        )


class OutcomeResponse(BaseModel):
    ok: bool
    discarded: bool = False
    value: int | None = None
    error: str | None = None
    message: str | None = None
    reason: str | None = None
    state: WalletStateResponse


_STATUS_BY_ERROR: tuple[tuple[type[WalletError], int], ...] = (
    (NotAuthenticated, HTTP_401_UNAUTHORIZED),
    (AuthenticationFailed, HTTP_401_UNAUTHORIZED),
    (OperationInProgress, HTTP_409_CONFLICT),
    (MintNotAllowed, HTTP_409_CONFLICT),
    (LedgerError, HTTP_409_CONFLICT),
    (InvalidIdentity, HTTP_400_BAD_REQUEST),
    (InvalidTransferRequest, HTTP_400_BAD_REQUEST),
)


def outcome_response(outcome: OperationOutcome, orchestrator: WalletOrchestrator) -> JSONResponse:
    error = outcome.error
    value: Any = outcome.value if isinstance(outcome.value, int) else None
    body = OutcomeResponse(
        ok=outcome.ok,
        discarded=outcome.discarded,
        value=value,
        error=type(error).__name__ if error else None,
        message=error.user_message if error else None,
        reason=error.reason.value if isinstance(error, LedgerError) else None,
        state=WalletStateResponse.from_orchestrator(orchestrator),
    )
    return JSONResponse(status_code=_status_for(error), content=body.model_dump())


def _status_for(error: WalletError | None) -> int:
    if error is None:
        return HTTP_200_OK
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    # RemoteUnavailable and anything unclassified.
    return HTTP_502_BAD_GATEWAY
