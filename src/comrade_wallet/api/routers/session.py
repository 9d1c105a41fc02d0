from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from comrade_wallet.api.deps import orchestrator_dep
from comrade_wallet.api.routers.schemas import WalletStateResponse, outcome_response
from comrade_wallet.orchestrator.wallet import WalletOrchestrator

router = APIRouter(prefix="/v1/session", tags=["session"])


@router.get("", response_model=WalletStateResponse)
async def get_session(
    orchestrator: WalletOrchestrator = Depends(orchestrator_dep),
) -> WalletStateResponse:
    return WalletStateResponse.from_orchestrator(orchestrator)


@router.post("/login")
async def login(orchestrator: WalletOrchestrator = Depends(orchestrator_dep)) -> JSONResponse:
    return outcome_response(await orchestrator.login(), orchestrator)


@router.post("/logout")
async def logout(orchestrator: WalletOrchestrator = Depends(orchestrator_dep)) -> JSONResponse:
    return outcome_response(await orchestrator.logout(), orchestrator)
