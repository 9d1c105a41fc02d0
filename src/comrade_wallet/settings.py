"""
comrade_wallet.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (e.g., delegation secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="COMRADE_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "comrade-wallet"
    log_level: str = "INFO"

    api_host: str = "127.0.0.1"
    api_port: int = 8090

    # Local snapshot persistence (survives restarts)
    database_url: str = "sqlite+aiosqlite:///./comrade_wallet.db"
    snapshot_slot: str = "comrade-wallet"

    # Remote collaborators
    ledger_base_url: str = "http://localhost:4943"
    identity_provider_url: str = "https://identity.ic0.app"

    # Delegation tokens issued by the identity provider
    delegation_alg: str = "HS256"
    delegation_issuer: str = "comrade-identity"
    delegation_audience: str = "comrade-wallet"
    delegation_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Orchestrator
    refresh_timeout_seconds: float = Field(default=10.0, gt=0)
    reconcile_after_mint: bool = False

    # Notifications
    notification_buffer_size: int = Field(default=50, ge=1)
    notification_ttl_seconds: float = 6.0
    notification_dedupe_seconds: float = 1.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Every layer receives a Settings instance explicitly; only the API entrypoint
# reaches for the cached one.
