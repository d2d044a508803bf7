"""Admin API — account activation.

Learn: Both routes sit behind guard(*ADMIN), which authenticates the
bearer token and then checks the role. A deactivated account is locked
out on its very next request, because every token validation re-reads
the account.
"""

from fastapi import APIRouter, Depends

from walletgate.api.auth import UserRead
from walletgate.auth.dependencies import get_auth_service, guard
from walletgate.auth.gates import ADMIN
from walletgate.auth.tokens import AuthenticatedIdentity
from walletgate.services.auth_service import AuthService

router = APIRouter(prefix="/admin")


@router.post("/accounts/{account_id}/deactivate", response_model=UserRead)
async def deactivate_account(
    account_id: str,
    identity: AuthenticatedIdentity = Depends(guard(*ADMIN)),
    service: AuthService = Depends(get_auth_service),
):
    return UserRead.from_account(await service.set_active(account_id, False))


@router.post("/accounts/{account_id}/activate", response_model=UserRead)
async def activate_account(
    account_id: str,
    identity: AuthenticatedIdentity = Depends(guard(*ADMIN)),
    service: AuthService = Depends(get_auth_service),
):
    return UserRead.from_account(await service.set_active(account_id, True))
