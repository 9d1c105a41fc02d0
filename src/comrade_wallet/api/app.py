"""
comrade_wallet.api.app

FastAPI app factory for the wallet controller.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Compose the process-wide orchestrator from settings (store, ledger, identity, sinks).
- Restore a persisted session (snapshot + stored delegation) at startup.
- Close clients and the engine at shutdown.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from comrade_wallet.api.routers.dev_identity import router as dev_identity_router
from comrade_wallet.api.routers.health import router as health_router
from comrade_wallet.api.routers.session import router as session_router
from comrade_wallet.api.routers.wallet import router as wallet_router
from comrade_wallet.identity.delegation import DelegationConfig, DelegationIdentityProvider
from comrade_wallet.identity.provider import IdentityProvider
from comrade_wallet.ledger.client import LedgerClient
from comrade_wallet.observability.logging import configure_logging, get_logger
from comrade_wallet.observability.middleware import RequestContextMiddleware
from comrade_wallet.orchestrator.notifications import (
    BufferedNotificationSink,
    FanoutNotificationSink,
    LogNotificationSink,
)
from comrade_wallet.orchestrator.session_store import SessionStore
from comrade_wallet.orchestrator.wallet import WalletOrchestrator
from comrade_wallet.persistence.delegations import SqlDelegationStorage
from comrade_wallet.persistence.session import create_engine, create_sessionmaker, init_db
from comrade_wallet.persistence.snapshots import SqlSnapshotStorage
from comrade_wallet.settings import Settings

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    ledger_transport: httpx.AsyncBaseTransport | None = None,
    identity_transport: httpx.AsyncBaseTransport | None = None,
    identity: IdentityProvider | None = None,
) -> FastAPI:
    """
    `ledger_transport`, `identity_transport` and `identity` replace the network-facing
    collaborators (tests pass mock transports or a fake identity provider).
    """

    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings.database_url)
        await init_db(engine)
        session_factory = create_sessionmaker(engine)
        storage = SqlSnapshotStorage(session_factory)

        ledger_http = httpx.AsyncClient(
            base_url=settings.ledger_base_url, transport=ledger_transport
        )
        identity_http = httpx.AsyncClient(transport=identity_transport)
        provider = identity or DelegationIdentityProvider(
            cfg=DelegationConfig.from_settings(settings),
            http=identity_http,
            storage=SqlDelegationStorage(session_factory),
            slot=settings.snapshot_slot,
        )

        buffer = BufferedNotificationSink(
            max_size=settings.notification_buffer_size,
            ttl_seconds=settings.notification_ttl_seconds,
            dedupe_seconds=settings.notification_dedupe_seconds,
        )
        orchestrator = WalletOrchestrator.from_settings(
            settings,
            store=SessionStore(storage=storage, slot=settings.snapshot_slot),
            ledger=LedgerClient(http=ledger_http),
            identity=provider,
            notifier=FanoutNotificationSink(LogNotificationSink(), buffer),
        )

        app.state.settings = settings
        app.state.engine = engine
        app.state.notifications = buffer
        app.state.orchestrator = orchestrator

        await orchestrator.resume()
        try:
            yield
        finally:
            await ledger_http.aclose()
            await identity_http.aclose()
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="Comrade Token Wallet",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(dev_identity_router)
    app.include_router(session_router)
    app.include_router(wallet_router)

    return app


# --- Module Notes -----------------------------------------------------------
# One orchestrator per process: the wallet is a single-user client controller, and
# its session state is process-wide by design of the identity collaborator.
