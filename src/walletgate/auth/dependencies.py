"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers. The stores and the
settings are themselves dependencies, so tests swap in in-memory stores
and a test signing key through app.dependency_overrides.

Protecting a route:

    @router.get("/wallet/me")
    async def wallet_me(identity = Depends(guard(*VERIFIED_WALLET))): ...

guard() runs the gate chain against the identity resolved from the
Authorization header and hands the AuthenticatedIdentity to the handler
as a plain parameter. Nothing is attached to the request object.
"""

from typing import Optional

import structlog
from fastapi import Depends, Header

from walletgate.accounts.directory import AccountDirectory
from walletgate.auth.gates import AUTHENTICATED, Gate, check
from walletgate.auth.tokens import AuthenticatedIdentity
from walletgate.config import Settings, settings
from walletgate.db.directory import SqlAccountDirectory
from walletgate.db.engine import get_session_factory
from walletgate.errors import MalformedTokenError, ServiceUnavailableError
from walletgate.revocation.redis_store import RedisRevocationStore, get_redis
from walletgate.revocation.store import RevocationStore
from walletgate.services.auth_service import AuthService, build_auth_service


def get_settings() -> Settings:
    return settings


def get_directory(config: Settings = Depends(get_settings)) -> AccountDirectory:
    return SqlAccountDirectory(
        get_session_factory(),
        timeout=config.store_timeout_seconds,
        backoff=config.store_retry_backoff_seconds,
    )


def get_revocation_store(config: Settings = Depends(get_settings)) -> RevocationStore:
    try:
        client = get_redis()
    except RuntimeError as e:
        raise ServiceUnavailableError(str(e)) from e
    return RedisRevocationStore(
        client,
        timeout=config.store_timeout_seconds,
        backoff=config.store_retry_backoff_seconds,
    )


def get_auth_service(
    directory: AccountDirectory = Depends(get_directory),
    revocations: RevocationStore = Depends(get_revocation_store),
    config: Settings = Depends(get_settings),
) -> AuthService:
    return build_auth_service(directory, revocations, config)


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Token from "Authorization: Bearer <token>", None if the header is absent."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise MalformedTokenError("Unparseable Authorization header")
    return token.strip()


async def get_current_identity_optional(
    token: Optional[str] = Depends(bearer_token),
    service: AuthService = Depends(get_auth_service),
) -> Optional[AuthenticatedIdentity]:
    """Extract current identity (optional — returns None if no auth).

    A token that IS present but invalid still fails with 401.
    """
    if token is None:
        return None
    identity = await service.validator.authenticate(token)
    structlog.contextvars.bind_contextvars(user_id=identity.user_id)
    return identity


def guard(*gates: Gate):
    """Build a dependency that runs ``gates`` and returns the identity."""

    async def dependency(
        identity: Optional[AuthenticatedIdentity] = Depends(get_current_identity_optional),
        directory: AccountDirectory = Depends(get_directory),
    ) -> AuthenticatedIdentity:
        return await check(identity, directory, *gates)

    return dependency


# Extract current identity (required: 401 if no auth)
get_current_identity = guard(*AUTHENTICATED)
