"""Auth service — the flows the HTTP layer and CLI call.

Learn: Service layer separates business logic from HTTP routing.
Routes parse bodies and pick a gate chain; everything else happens here:

    credentials -> CredentialVerifier -> TokenIssuer -> TokenPair
    bearer      -> TokenValidator     -> gates       -> handler

The service holds no per-request state. All state lives in the two
stores it was built with (AccountDirectory, RevocationStore).
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from walletgate.accounts.directory import AccountDirectory
from walletgate.accounts.models import Account, Role
from walletgate.auth.credentials import CredentialVerifier
from walletgate.auth.tokens import (
    REFRESH,
    AuthenticatedIdentity,
    TokenIssuer,
    TokenPair,
    TokenValidator,
)
from walletgate.config import Settings
from walletgate.errors import (
    AccountNotFoundError,
    AuthenticationError,
    InvalidCredentialsError,
    NotFoundError,
)
from walletgate.revocation.store import RevocationStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class LoginResult:
    account: Account
    tokens: TokenPair


class AuthService:
    """Business logic for authentication and account state."""

    def __init__(
        self,
        directory: AccountDirectory,
        credentials: CredentialVerifier,
        issuer: TokenIssuer,
        validator: TokenValidator,
    ):
        self.directory = directory
        self.credentials = credentials
        self.issuer = issuer
        self.validator = validator

    # ─── Sign-in ────────────────────────────────────────

    async def register(self, email: str, password: str) -> Account:
        return await self.credentials.register(email, password, Role.USER)

    async def login(self, email: str, password: str) -> LoginResult:
        account = await self.credentials.authenticate_password(email, password)
        logger.info("auth.login", user_id=account.id)
        return LoginResult(account=account, tokens=self.issuer.issue(account))

    async def wallet_login(self, address: str, message: str, signature: str) -> LoginResult:
        account = await self.credentials.authenticate_wallet(address, message, signature)
        logger.info("auth.wallet_login", user_id=account.id, address=account.wallet_address)
        return LoginResult(account=account, tokens=self.issuer.issue(account))

    async def refresh(self, refresh_token: str) -> TokenPair:
        return await self.issuer.rotate(refresh_token)

    async def logout(
        self, identity: AuthenticatedIdentity, refresh_token: Optional[str] = None
    ) -> int:
        """Revoke the caller's access token and, if given, their refresh token.

        Returns how many tokens were newly revoked.
        """
        revoked = int(await self.issuer.revoke(identity.token_id, identity.expires_at))
        if refresh_token:
            try:
                payload = await self.validator.validate(refresh_token, REFRESH)
            except AuthenticationError as e:
                # Already expired or revoked: nothing left to revoke
                logger.info("auth.logout_refresh_skipped", reason=type(e).__name__)
            else:
                if payload.user_id == identity.user_id:
                    revoked += int(
                        await self.issuer.revoke(payload.token_id, payload.expires_at)
                    )
        logger.info("auth.logout", user_id=identity.user_id, revoked=revoked)
        return revoked

    # ─── Account ────────────────────────────────────────

    async def current_account(self, identity: AuthenticatedIdentity) -> Account:
        account = await self.directory.get(identity.user_id)
        if account is None:
            raise AccountNotFoundError(f"No account {identity.user_id}")
        return account

    async def change_password(
        self, identity: AuthenticatedIdentity, current: str, new: str
    ) -> Account:
        account = await self.current_account(identity)
        if not await self.credentials.verify_password(current, account.password_hash):
            raise InvalidCredentialsError(f"Wrong current password for {account.id}")
        updated = await self.credentials.set_password(account, new)
        if updated.password_hash != account.password_hash:
            logger.info("account.password_changed", user_id=account.id)
        return updated

    async def link_wallet(
        self,
        identity: AuthenticatedIdentity,
        address: str,
        message: str,
        signature: str,
    ) -> Account:
        account = await self.current_account(identity)
        return await self.credentials.link_wallet(account, address, message, signature)

    async def set_active(self, account_id: str, active: bool) -> Account:
        """Administrative activation / deactivation.

        Deactivation needs no token revocation: TokenValidator re-reads
        the account on every request.
        """
        updated = await self.directory.update(account_id, active=active)
        if updated is None:
            raise NotFoundError(f"No account {account_id}", public_message="Account not found")
        logger.info("account.set_active", user_id=account_id, active=active)
        return updated


def build_auth_service(
    directory: AccountDirectory,
    revocations: RevocationStore,
    config: Settings,
) -> AuthService:
    """Wire the auth core from configuration values."""
    validator = TokenValidator(
        secret=config.jwt_secret,
        revocations=revocations,
        directory=directory,
        algorithm=config.jwt_algorithm,
    )
    issuer = TokenIssuer(
        secret=config.jwt_secret,
        validator=validator,
        revocations=revocations,
        algorithm=config.jwt_algorithm,
        access_ttl_seconds=config.access_token_expire_minutes * 60,
        refresh_ttl_seconds=config.refresh_token_expire_days * 24 * 3600,
    )
    credentials = CredentialVerifier(
        directory,
        bcrypt_rounds=config.bcrypt_rounds,
        min_password_length=config.min_password_length,
        wallet_email_domain=config.wallet_email_domain,
    )
    return AuthService(directory, credentials, issuer, validator)
