from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_404_NOT_FOUND

from comrade_wallet.api.deps import settings_dep
from comrade_wallet.domain.models import is_valid_principal
from comrade_wallet.identity.delegation import DelegationConfig, issue_delegation
from comrade_wallet.settings import Settings

router = APIRouter(prefix="/v1/dev", tags=["dev"])

# The anonymous principal; dev logins use it unless the caller asks for another one.
DEFAULT_DEV_PRINCIPAL = "2vxsx-fae"


class DelegationRequest(BaseModel):
    audience: str | None = None
    principal: str = Field(default=DEFAULT_DEV_PRINCIPAL, min_length=1, max_length=63)
    ttl_minutes: int = Field(default=8 * 60, ge=1, le=24 * 60)


class DelegationResponse(BaseModel):
    delegation: str


@router.post("/v1/delegation", response_model=DelegationResponse)
async def issue_dev_delegation(
    body: DelegationRequest,
    settings: Settings = Depends(settings_dep),
) -> DelegationResponse:
    # Stand-in identity service: point COMRADE_IDENTITY_PROVIDER_URL at `<api>/v1/dev`.
    if settings.env == "prod":
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")
    if not is_valid_principal(body.principal):
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Invalid principal")

    token = issue_delegation(
        cfg=DelegationConfig.from_settings(settings),
        principal=body.principal,
        ttl=timedelta(minutes=body.ttl_minutes),
    )
    return DelegationResponse(delegation=token)
