"""
comrade_wallet.api.routers.wallet

Wallet view, token operations and notification feed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from comrade_wallet.api.deps import notifications_dep, orchestrator_dep
from comrade_wallet.api.routers.schemas import WalletStateResponse, outcome_response
from comrade_wallet.orchestrator.notifications import BufferedNotificationSink
from comrade_wallet.orchestrator.wallet import WalletOrchestrator

router = APIRouter(prefix="/v1", tags=["wallet"])


class TransferBody(BaseModel):
    # Raw form input; validation happens in the orchestrator so it is notified too.
    recipient: str = ""
    amount: int | str = ""


class NotificationItem(BaseModel):
    message: str
    severity: str


@router.get("/wallet", response_model=WalletStateResponse)
async def get_wallet(
    orchestrator: WalletOrchestrator = Depends(orchestrator_dep),
) -> WalletStateResponse:
    return WalletStateResponse.from_orchestrator(orchestrator)


@router.post("/wallet/refresh")
async def refresh(orchestrator: WalletOrchestrator = Depends(orchestrator_dep)) -> JSONResponse:
    return outcome_response(await orchestrator.refresh(), orchestrator)


@router.post("/wallet/balance/check")
async def check_balance(
    orchestrator: WalletOrchestrator = Depends(orchestrator_dep),
) -> JSONResponse:
    return outcome_response(await orchestrator.check_balance(), orchestrator)


@router.post("/wallet/mint")
async def mint(orchestrator: WalletOrchestrator = Depends(orchestrator_dep)) -> JSONResponse:
    return outcome_response(await orchestrator.mint(), orchestrator)


@router.post("/wallet/transfer")
async def transfer(
    body: TransferBody,
    orchestrator: WalletOrchestrator = Depends(orchestrator_dep),
) -> JSONResponse:
    outcome = await orchestrator.transfer(body.recipient, body.amount)
    return outcome_response(outcome, orchestrator)


@router.get("/notifications", response_model=list[NotificationItem])
async def drain_notifications(
    notifications: BufferedNotificationSink = Depends(notifications_dep),
) -> list[NotificationItem]:
    return [
        NotificationItem(message=n.message, severity=n.severity.value)
        for n in notifications.drain()
    ]
