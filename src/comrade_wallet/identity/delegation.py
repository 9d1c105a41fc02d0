"""
comrade_wallet.identity.delegation

Delegation-token identity provider.

Responsibilities:
- Request a signed delegation (JWT) from the identity service.
- Validate delegations with strict claim requirements (iss/aud/exp/iat/sub).
- Expose the delegation subject as the wallet principal.
- Keep the delegation in durable storage so a session survives restarts.

Note:
- The identity service signs with HS256 in dev; the algorithm is configurable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import jwt
from jwt import InvalidTokenError

from comrade_wallet.domain.errors import AuthenticationFailed
from comrade_wallet.domain.models import is_valid_principal
from comrade_wallet.identity.provider import Identity
from comrade_wallet.observability.logging import get_logger
from comrade_wallet.persistence.delegations import DelegationStorage
from comrade_wallet.settings import Settings

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class DelegationConfig:
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> DelegationConfig:
        return cls(
            alg=settings.delegation_alg,
            issuer=settings.delegation_issuer,
            audience=settings.delegation_audience,
            secret=settings.delegation_secret,
        )


class DelegationValidationError(Exception):
    pass


def issue_delegation(
    *,
    cfg: DelegationConfig,
    principal: str,
    ttl: timedelta = timedelta(hours=8),
) -> str:
    # Used by the dev identity service and tests; real deployments receive delegations.
    now = datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": principal,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def decode_delegation(*, cfg: DelegationConfig, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={"require": ["exp", "iat", "iss", "aud", "sub"]},
        )
    except InvalidTokenError as e:
        raise DelegationValidationError(str(e)) from e


class DelegationIdentityProvider:
    """
    Holds at most one delegation. With a `storage` backend the delegation outlives the
    process: it is loaded lazily on first use, written on login and erased on logout.
    Every `current_identity` call re-validates it, so an expired one simply reads as
    "no session" and is dropped from storage.
    """

    def __init__(
        self,
        *,
        cfg: DelegationConfig,
        http: httpx.AsyncClient,
        delegation: str | None = None,
        storage: DelegationStorage | None = None,
        slot: str = "default",
    ) -> None:
        self._cfg = cfg
        self._http = http
        self._delegation = delegation
        self._storage = storage
        self._slot = slot
        self._loaded = delegation is not None or storage is None

    async def authenticate(self, provider_url: str) -> Identity:
        url = f"{provider_url.rstrip('/')}/v1/delegation"
        try:
            r = await self._http.post(url, json={"audience": self._cfg.audience})
            r.raise_for_status()
            token = str(r.json()["delegation"])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            raise AuthenticationFailed(f"delegation request failed: {e}") from e

        identity = self._identity_from(token)
        if identity is None:
            raise AuthenticationFailed("identity service returned an invalid delegation")
        self._delegation = token
        self._loaded = True
        await self._persist(token)
        log.info("delegation_accepted", principal=identity.principal)
        return identity

    async def current_identity(self) -> Identity | None:
        await self._load()
        if self._delegation is None:
            return None
        identity = self._identity_from(self._delegation)
        if identity is None:
            # Expired or tampered delegations end the session.
            await self._drop()
        return identity

    async def end_session(self) -> None:
        self._loaded = True
        await self._drop()

    async def is_session_active(self) -> bool:
        return await self.current_identity() is not None

    async def _load(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            self._delegation = await self._storage.load(self._slot)
        except Exception as e:
            log.warning("delegation_load_failed", slot=self._slot, error=str(e))

    async def _persist(self, token: str) -> None:
        if self._storage is None:
            return
        try:
            await self._storage.save(self._slot, token)
        except Exception as e:
            # The session still works for this process; it just won't survive a restart.
            log.warning("delegation_save_failed", slot=self._slot, error=str(e))

    async def _drop(self) -> None:
        self._delegation = None
        if self._storage is None:
            return
        await self._storage.erase(self._slot)

    def _identity_from(self, token: str) -> Identity | None:
        try:
            claims = decode_delegation(cfg=self._cfg, token=token)
        except DelegationValidationError as e:
            log.warning("delegation_rejected", error=str(e))
            return None
        subject = str(claims.get("sub", ""))
        if not is_valid_principal(subject):
            log.warning("delegation_rejected", error="invalid subject")
            return None
        return Identity(principal=subject, credential=token)


# --- Module Notes -----------------------------------------------------------
# The same claim set is required when the dev identity service issues tokens and when
# the wallet validates them; keep `issue_delegation` and `decode_delegation` in sync.
