"""
comrade_wallet.api.deps

FastAPI dependency wiring for the API layer.
"""

from __future__ import annotations

from fastapi import Request

from comrade_wallet.orchestrator.notifications import BufferedNotificationSink
from comrade_wallet.orchestrator.wallet import WalletOrchestrator
from comrade_wallet.settings import Settings


def settings_dep(request: Request) -> Settings:
    return request.app.state.settings  # type: ignore[attr-defined]


def orchestrator_dep(request: Request) -> WalletOrchestrator:
    # Created once in the app lifespan (see `comrade_wallet.api.app.create_app`).
    return request.app.state.orchestrator  # type: ignore[attr-defined]


def notifications_dep(request: Request) -> BufferedNotificationSink:
    return request.app.state.notifications  # type: ignore[attr-defined]
