"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from coaching_ledger.api.models import GrantCreditsRequest

if TYPE_CHECKING:
    from coaching_ledger.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.post(
    "/users/{user_id}/credits",
    dependencies=[Depends(require_admin)],
    status_code=status.HTTP_201_CREATED,
)
async def grant_credits(
    user_id: str, body: GrantCreditsRequest, request: Request
) -> dict[str, object]:
    """Credit a user's balance outside of any session."""
    container: AppContainer = request.app.state.container
    transaction = container.ledger_service.grant_credits(user_id, body.amount)
    return {
        "transaction": asdict(transaction),
        "balance": container.ledger_service.get_balance(user_id),
    }
