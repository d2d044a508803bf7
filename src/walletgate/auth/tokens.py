"""JWT token issuing, validation and rotation.

Learn: JWT (JSON Web Token) gives stateless bearer tokens.
- Access token: short-lived (minutes), sent on every API call
- Refresh token: long-lived (days), exchanged ONCE for a new pair

Claims carried in every token:
    sub             account id
    role            account role at issuance
    wallet_address  linked wallet at issuance (if any)
    iat / exp       issued-at / expires-at (epoch seconds)
    jti             random token id, used for revocation
    type            "access" or "refresh"

Validation order is cheapest-first: signature and structure (pure CPU,
blocks tampering), then expiry, then the RevocationStore lookup (network
I/O). A forged or expired token never costs a Redis round trip.

Nothing here reads global settings. The secret, algorithm and TTLs are
passed in, so tests can run issuers with distinct keys side by side.
"""

import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

import jwt
import structlog

from walletgate.accounts.directory import AccountDirectory
from walletgate.accounts.models import Account, Role
from walletgate.config import MIN_SECRET_LENGTH
from walletgate.errors import (
    AccountInactiveError,
    AccountNotFoundError,
    ConfigurationError,
    MalformedTokenError,
    SignatureInvalidError,
    TokenExpiredError,
    TokenRevokedError,
)
from walletgate.revocation.store import RevocationStore

logger = structlog.get_logger()

ACCESS = "access"
REFRESH = "refresh"

SUPPORTED_ALGORITHMS = ("HS256", "HS384", "HS512")
_REQUIRED_CLAIMS = ["sub", "role", "iat", "exp", "jti", "type"]


def check_signing_config(secret: str, algorithm: str) -> None:
    """Fail loudly on a signing setup that would be unsafe to use."""
    if not secret:
        raise ConfigurationError("JWT signing secret is not configured")
    if len(secret) < MIN_SECRET_LENGTH:
        raise ConfigurationError(
            f"JWT signing secret must be at least {MIN_SECRET_LENGTH} characters"
        )
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ConfigurationError(f"Unsupported JWT algorithm: {algorithm}")


def new_token_id() -> str:
    """128-bit random token id."""
    return secrets.token_hex(16)


@dataclass(frozen=True)
class TokenPayload:
    """The signed claims of one token."""

    user_id: str
    role: Role
    issued_at: int
    expires_at: int
    token_id: str
    token_type: str = ACCESS
    wallet_address: Optional[str] = None

    def to_claims(self) -> dict:
        claims = {
            "sub": self.user_id,
            "role": self.role.value,
            "iat": self.issued_at,
            "exp": self.expires_at,
            "jti": self.token_id,
            "type": self.token_type,
        }
        if self.wallet_address:
            claims["wallet_address"] = self.wallet_address
        return claims

    @classmethod
    def from_claims(cls, claims: dict) -> "TokenPayload":
        try:
            return cls(
                user_id=str(claims["sub"]),
                role=Role(claims["role"]),
                issued_at=int(claims["iat"]),
                expires_at=int(claims["exp"]),
                token_id=str(claims["jti"]),
                token_type=str(claims["type"]),
                wallet_address=claims.get("wallet_address"),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise MalformedTokenError(f"Bad token claims: {e}") from e


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # access token lifetime, seconds


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Who is making this request.

    Derived from a validated access token, created per request and
    passed explicitly to gates and handlers. Never stored.
    """

    user_id: str
    role: Role
    token_id: str
    expires_at: int
    wallet_address: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: TokenPayload) -> "AuthenticatedIdentity":
        return cls(
            user_id=payload.user_id,
            role=payload.role,
            token_id=payload.token_id,
            expires_at=payload.expires_at,
            wallet_address=payload.wallet_address,
        )


class TokenValidator:
    """Verifies presented tokens and resolves them to identities."""

    def __init__(
        self,
        secret: str,
        revocations: RevocationStore,
        directory: AccountDirectory,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ):
        check_signing_config(secret, algorithm)
        self._secret = secret
        self._algorithm = algorithm
        self._revocations = revocations
        self._directory = directory
        self._clock = clock

    async def validate(self, token: str, token_type: str = ACCESS) -> TokenPayload:
        """Verify signature, expiry, then revocation. Returns the payload."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # expiry is checked below against our own clock
                options={
                    "require": _REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError as e:
            raise SignatureInvalidError("Token signature mismatch") from e
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError(f"Invalid token: {e}") from e

        payload = TokenPayload.from_claims(claims)
        if payload.expires_at <= payload.issued_at:
            raise MalformedTokenError("Token expires before it was issued")
        if payload.token_type != token_type:
            raise MalformedTokenError(
                f"Expected {token_type} token, got {payload.token_type}"
            )

        if self._clock() > payload.expires_at:
            raise TokenExpiredError(f"Token {payload.token_id} expired")

        if await self._revocations.is_marked(payload.token_id):
            raise TokenRevokedError(f"Token {payload.token_id} is revoked")

        return payload

    async def resolve_account(self, payload: TokenPayload) -> Account:
        """Fresh directory read of the token subject.

        Not cached: a deactivation must take effect on the next request.
        """
        account = await self._directory.get(payload.user_id)
        if account is None:
            raise AccountNotFoundError(f"No account {payload.user_id}")
        if not account.active:
            raise AccountInactiveError(f"Account {account.id} is inactive")
        return account

    async def authenticate(self, token: str) -> AuthenticatedIdentity:
        """Validate an access token and confirm its account is still active."""
        payload = await self.validate(token, ACCESS)
        await self.resolve_account(payload)
        return AuthenticatedIdentity.from_payload(payload)


class TokenIssuer:
    """Mints token pairs and rotates refresh tokens."""

    def __init__(
        self,
        secret: str,
        validator: TokenValidator,
        revocations: RevocationStore,
        algorithm: str = "HS256",
        access_ttl_seconds: int = 15 * 60,
        refresh_ttl_seconds: int = 7 * 24 * 3600,
        clock: Callable[[], float] = time.time,
    ):
        check_signing_config(secret, algorithm)
        if access_ttl_seconds <= 0 or refresh_ttl_seconds <= 0:
            raise ConfigurationError("Token lifetimes must be positive")
        self._secret = secret
        self._algorithm = algorithm
        self._validator = validator
        self._revocations = revocations
        self.access_ttl_seconds = access_ttl_seconds
        self.refresh_ttl_seconds = refresh_ttl_seconds
        self._clock = clock

    def issue(self, account: Account) -> TokenPair:
        """Create an access/refresh pair for a verified account."""
        now = int(self._clock())
        access = self._payload(account, ACCESS, now, self.access_ttl_seconds)
        refresh = self._payload(account, REFRESH, now, self.refresh_ttl_seconds)
        logger.info(
            "tokens.issued",
            user_id=account.id,
            access_jti=access.token_id,
            refresh_jti=refresh.token_id,
        )
        return TokenPair(
            access_token=self.encode(access),
            refresh_token=self.encode(refresh),
            expires_in=self.access_ttl_seconds,
        )

    def encode(self, payload: TokenPayload) -> str:
        return jwt.encode(payload.to_claims(), self._secret, algorithm=self._algorithm)

    async def rotate(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair; the old one is spent.

        The old token is marked revoked before the new pair is returned.
        If that mark fails the whole rotation fails, so a client never
        holds a new pair while the old refresh token still works.
        """
        payload = await self._validator.validate(refresh_token, REFRESH)
        # Re-read the account: claims come from its current role and wallet
        account = await self._validator.resolve_account(payload)
        pair = self.issue(account)
        if not await self.revoke(payload.token_id, payload.expires_at):
            # Lost a race with a concurrent rotation of the same token
            raise TokenRevokedError(f"Refresh token {payload.token_id} already used")
        logger.info("tokens.rotated", user_id=account.id, old_jti=payload.token_id)
        return pair

    async def revoke(self, token_id: str, expires_at: int) -> bool:
        """Revoke a token for the rest of its lifetime."""
        ttl = max(1, int(expires_at - self._clock()))
        return await self._revocations.mark(token_id, ttl)

    def _payload(
        self, account: Account, token_type: str, now: int, ttl: int
    ) -> TokenPayload:
        return TokenPayload(
            user_id=account.id,
            role=account.role,
            wallet_address=account.wallet_address,
            issued_at=now,
            expires_at=now + ttl,
            token_id=new_token_id(),
            token_type=token_type,
        )
