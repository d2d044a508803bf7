"""Auth API — sign-in, token refresh/logout, account self-service.

Learn: Routes for the token lifecycle:
- POST /auth/register      → create a password account
- POST /auth/login         → email/password → token pair
- POST /auth/wallet        → address/message/signature → token pair
- POST /auth/refresh       → refresh token → new pair (old one is spent)
- POST /auth/logout        → revoke access (+ refresh) token
- GET  /auth/me            → current account
- POST /auth/password      → change password
- POST /auth/wallet/link   → prove control of a wallet, mark it verified
- GET  /auth/wallet/me     → verified-wallet-only example

Bodies and responses use camelCase on the wire (accessToken,
walletVerified, ...).
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from walletgate.accounts.models import Account
from walletgate.auth.dependencies import get_auth_service, get_current_identity, guard
from walletgate.auth.gates import VERIFIED_WALLET
from walletgate.auth.tokens import AuthenticatedIdentity, TokenPair
from walletgate.services.auth_service import AuthService

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(CamelModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1)


class LoginRequest(CamelModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class WalletLoginRequest(CamelModel):
    address: str = Field(min_length=1)
    message: str = Field(min_length=1)
    signature: str = Field(min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class UserRead(CamelModel):
    id: str
    email: str
    role: str
    wallet_address: Optional[str] = None
    wallet_verified: bool
    active: bool

    @classmethod
    def from_account(cls, account: Account) -> "UserRead":
        return cls(
            id=account.id,
            email=account.email,
            role=account.role.value,
            wallet_address=account.wallet_address,
            wallet_verified=account.wallet_verified,
            active=account.active,
        )


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
        )


class LoginResponse(TokenResponse):
    user: UserRead


class LogoutResponse(CamelModel):
    revoked: int


def _login_response(result) -> LoginResponse:
    return LoginResponse(
        access_token=result.tokens.access_token,
        refresh_token=result.tokens.refresh_token,
        expires_in=result.tokens.expires_in,
        user=UserRead.from_account(result.account),
    )


# ─── Sign-in ─────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(body: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """Create a password account."""
    account = await service.register(body.email, body.password)
    return UserRead.from_account(account)


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)):
    """Login with email and password → token pair."""
    return _login_response(await service.login(body.email, body.password))


@router.post("/wallet", response_model=LoginResponse)
async def wallet_login(
    body: WalletLoginRequest, service: AuthService = Depends(get_auth_service)
):
    """Login with a personal-sign signature; first sign-in creates the account."""
    result = await service.wallet_login(body.address, body.message, body.signature)
    return _login_response(result)


# ─── Token lifecycle ─────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, service: AuthService = Depends(get_auth_service)):
    """Exchange a refresh token for a new pair. Each refresh token works once."""
    return TokenResponse.from_pair(await service.refresh(body.refresh_token))


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    body: Optional[LogoutRequest] = None,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
):
    refresh_token = body.refresh_token if body else None
    return LogoutResponse(revoked=await service.logout(identity, refresh_token))


# ─── Current account ─────────────────────────────────────


@router.get("/me", response_model=UserRead)
async def get_me(
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
):
    return UserRead.from_account(await service.current_account(identity))


@router.post("/password", response_model=UserRead)
async def change_password(
    body: ChangePasswordRequest,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
):
    account = await service.change_password(identity, body.current_password, body.new_password)
    return UserRead.from_account(account)


@router.post("/wallet/link", response_model=UserRead)
async def link_wallet(
    body: WalletLoginRequest,
    identity: AuthenticatedIdentity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service),
):
    """Attach a wallet to the current account after a signature challenge."""
    account = await service.link_wallet(identity, body.address, body.message, body.signature)
    return UserRead.from_account(account)


@router.get("/wallet/me", response_model=UserRead)
async def wallet_me(
    identity: AuthenticatedIdentity = Depends(guard(*VERIFIED_WALLET)),
    service: AuthService = Depends(get_auth_service),
):
    """Only reachable with a token whose wallet is verified right now."""
    return UserRead.from_account(await service.current_account(identity))
