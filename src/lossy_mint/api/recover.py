"""Operator recovery endpoints guarded by a shared secret."""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, Query, Request

from lossy_mint.api.models import SweepRequest  # noqa: TC001
from lossy_mint.errors import ConfigurationError, Unauthorized

if TYPE_CHECKING:
    from lossy_mint.containers import AppContainer

router = APIRouter(prefix="/recover", tags=["recover"])


def _get_recover_secret(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.recover_secret


def secrets_match(provided: str | None, expected: str | None) -> bool:
    """Constant-time comparison that never accepts an empty secret."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


async def require_recover_secret(
    secret: str | None = None,
    x_recover_secret: str | None = Header(default=None),
    recover_secret: str = Depends(_get_recover_secret),
) -> None:
    """Ensure requests carry the recovery secret."""
    if not recover_secret:
        raise ConfigurationError("RECOVER_SECRET not configured")
    if not secrets_match(secret or x_recover_secret, recover_secret):
        raise Unauthorized()


@router.get("", dependencies=[Depends(require_recover_secret)])
async def recover(
    request: Request,
    session_id: str | None = Query(default=None, alias="sessionId"),
) -> dict[str, object]:
    """Scan recent wallets, or re-trigger minting for one session."""
    container: AppContainer = request.app.state.container
    if not session_id:
        return await container.recovery_service.scan()
    return await container.recovery_service.recover(session_id)


@router.post("/sweep", dependencies=[Depends(require_recover_secret)])
async def retry_sweep(payload: SweepRequest, request: Request) -> dict[str, object]:
    """Sweep a minted session whose post-mint sweep failed."""
    container: AppContainer = request.app.state.container
    return await container.recovery_service.retry_sweep(payload.session_id)
