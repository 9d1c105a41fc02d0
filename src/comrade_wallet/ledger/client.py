"""
comrade_wallet.ledger.client

HTTP client boundary used by the orchestrator to call the token ledger.

Responsibilities:
- One remote call per ledger capability; no retries, no caching.
- Attach the caller's delegation as the authenticated call context.
- Normalize every transport/protocol failure into `RemoteUnavailable` and every
  server-side rejection into `LedgerError`.
"""

from __future__ import annotations

from typing import Any

import httpx

from comrade_wallet.domain.errors import InvalidIdentity, LedgerError, RemoteUnavailable
from comrade_wallet.domain.models import ensure_principal
from comrade_wallet.identity.provider import Identity


class LedgerClient:
    def __init__(self, *, http: httpx.AsyncClient, identity: Identity | None = None) -> None:
        self._http = http
        self._identity = identity

    def use_identity(self, identity: Identity | None) -> None:
        # Calls already in flight keep the headers they were dispatched with.
        self._identity = identity

    def _authz(self) -> dict[str, str]:
        if self._identity is None or not self._identity.credential:
            return {}
        return {"Authorization": f"Bearer {self._identity.credential}"}

    async def balance_of(self, principal: str) -> int:
        ensure_principal(principal)
        body = await self._call(
            "balanceOf", "GET", f"/v1/ledger/accounts/{principal}/balance", principal=principal
        )
        return _nat(body.get("balance"), operation="balanceOf")

    async def can_mint(self, principal: str) -> bool:
        ensure_principal(principal)
        body = await self._call(
            "canMint", "GET", f"/v1/ledger/accounts/{principal}/can-mint", principal=principal
        )
        value = body.get("can_mint")
        if not isinstance(value, bool):
            raise RemoteUnavailable("canMint", "malformed response")
        return value

    async def mint(self) -> int:
        # Caller identity is implicit (carried by the delegation header).
        body = await self._call("mint", "POST", "/v1/ledger/mint")
        return _nat(_unwrap_result(body, operation="mint"), operation="mint")

    async def transfer(self, recipient: str, amount: int) -> None:
        ensure_principal(recipient)
        body = await self._call(
            "transfer",
            "POST",
            "/v1/ledger/transfer",
            json={"to": recipient, "amount": amount},
        )
        _unwrap_result(body, operation="transfer")

    async def total_supply(self) -> int:
        body = await self._call("getTotalSupply", "GET", "/v1/ledger/total-supply")
        return _nat(body.get("total_supply"), operation="getTotalSupply")

    async def _call(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        principal: str | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            r = await self._http.request(method, path, headers=self._authz(), json=json)
        except httpx.HTTPError as e:
            raise RemoteUnavailable(operation, type(e).__name__) from e

        if principal is not None and r.status_code in (400, 422):
            raise InvalidIdentity(principal=principal)
        if r.is_error:
            raise RemoteUnavailable(operation, f"HTTP {r.status_code}")

        try:
            body = r.json()
        except ValueError as e:
            raise RemoteUnavailable(operation, "response is not JSON") from e
        if not isinstance(body, dict):
            raise RemoteUnavailable(operation, "malformed response")
        return body


def _unwrap_result(body: dict[str, Any], *, operation: str) -> Any:
    # Ledger results are tagged variants: {"ok": value} | {"err": reason}.
    if "ok" in body:
        return body["ok"]
    if "err" in body:
        raise LedgerError.from_server(body["err"])
    raise RemoteUnavailable(operation, "malformed result variant")


def _nat(value: Any, *, operation: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise RemoteUnavailable(operation, "malformed response")
    return value


# --- Module Notes -----------------------------------------------------------
# Timeouts are governed by the injected httpx.AsyncClient; this layer adds none.
