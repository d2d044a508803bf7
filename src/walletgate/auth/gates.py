"""RoleGate — composable authorization predicates.

Learn: a gate is an async callable ``gate(identity, directory)`` that
returns None when the request may proceed and raises otherwise:

    require_auth            no identity            -> 401 AuthenticationError
    require_role(*roles)    role not allowed       -> 403 AuthorizationError
    require_wallet          no wallet on token     -> 403 WalletRequiredError
    require_verified_wallet wallet not verified    -> 403 WalletNotVerifiedError

Chains are plain tuples evaluated left to right; the first failure
stops evaluation. Each predicate can be tested on its own, and
``check(identity, directory, *gates)`` runs a chain.

require_verified_wallet reads the directory on every call. Verification
state can change after the token was issued, so the token's copy is not
trusted for it.
"""

from typing import Awaitable, Callable, Optional

from walletgate.accounts.directory import AccountDirectory
from walletgate.accounts.models import Role
from walletgate.auth.tokens import AuthenticatedIdentity
from walletgate.errors import (
    AuthenticationError,
    AuthorizationError,
    WalletNotVerifiedError,
    WalletRequiredError,
)

Gate = Callable[[Optional[AuthenticatedIdentity], AccountDirectory], Awaitable[None]]


def _identity(identity: Optional[AuthenticatedIdentity]) -> AuthenticatedIdentity:
    if identity is None:
        raise AuthenticationError("No authenticated identity")
    return identity


async def require_auth(
    identity: Optional[AuthenticatedIdentity], directory: AccountDirectory
) -> None:
    _identity(identity)


def require_role(*allowed: Role) -> Gate:
    """Gate allowing only the given roles."""
    allowed_roles = frozenset(allowed)

    async def gate(
        identity: Optional[AuthenticatedIdentity], directory: AccountDirectory
    ) -> None:
        who = _identity(identity)
        if who.role not in allowed_roles:
            raise AuthorizationError(
                f"Role {who.role.value} not in {sorted(r.value for r in allowed_roles)}"
            )

    gate.__name__ = f"require_role({','.join(r.value for r in allowed)})"
    return gate


async def require_wallet(
    identity: Optional[AuthenticatedIdentity], directory: AccountDirectory
) -> None:
    if not _identity(identity).wallet_address:
        raise WalletRequiredError("Token carries no wallet address")


async def require_verified_wallet(
    identity: Optional[AuthenticatedIdentity], directory: AccountDirectory
) -> None:
    await require_wallet(identity, directory)
    account = await directory.get(identity.user_id)
    if (
        account is None
        or not account.wallet_verified
        or (account.wallet_address or "").lower() != identity.wallet_address.lower()
    ):
        raise WalletNotVerifiedError(f"Wallet of {identity.user_id} is not verified")


async def check(
    identity: Optional[AuthenticatedIdentity],
    directory: AccountDirectory,
    *gates: Gate,
) -> AuthenticatedIdentity:
    """Run gates in order; returns the identity once all of them pass."""
    for gate in gates:
        await gate(identity, directory)
    return _identity(identity)


# Common chains
AUTHENTICATED = (require_auth,)
WALLET = (require_auth, require_wallet)
VERIFIED_WALLET = (require_auth, require_verified_wallet)
ADMIN = (require_auth, require_role(Role.ADMIN))
