"""CredentialVerifier — turns a password or a wallet signature into an Account.

Learn: bcrypt is deliberately slow (~100ms+), so hashing and checking run
in a worker thread via asyncio.to_thread and never stall the event loop
for other requests.

When is a password hashed? Only on an explicit password-set call
(set_password / register). Nothing inspects a stored value to guess
whether it is "already hashed". Setting the same password again is a
no-op: the new plaintext is checked against the stored hash first and,
if it matches, the stored hash is kept untouched.
"""

import asyncio
import secrets
from typing import Optional

import structlog

from walletgate.accounts.directory import AccountDirectory, DuplicateAccountError
from walletgate.accounts.models import (
    Account,
    NewAccount,
    Role,
    normalize_email,
    normalize_wallet_address,
    synthesize_wallet_email,
)
from walletgate.auth import password as passwords
from walletgate.auth.wallet import verify_wallet_signature
from walletgate.errors import (
    AccountInactiveError,
    ConflictError,
    InvalidCredentialsError,
    ValidationError,
)

logger = structlog.get_logger()


class CredentialVerifier:
    """Password and wallet-signature verification backed by an AccountDirectory."""

    def __init__(
        self,
        directory: AccountDirectory,
        bcrypt_rounds: int = passwords.DEFAULT_ROUNDS,
        min_password_length: int = 8,
        wallet_email_domain: str = "web3.user",
    ):
        self.directory = directory
        self.bcrypt_rounds = bcrypt_rounds
        self.min_password_length = min_password_length
        self.wallet_email_domain = wallet_email_domain
        # Checked against when the email is unknown, so a miss costs the same as a hit
        self._dummy_hash: Optional[str] = None

    # ─── Primitives ─────────────────────────────────────

    async def verify_password(self, plain: str, stored_hash: str) -> bool:
        return await asyncio.to_thread(passwords.verify_password, plain, stored_hash)

    async def hash_password(self, plain: str) -> str:
        return await asyncio.to_thread(
            passwords.hash_password, plain, self.bcrypt_rounds
        )

    def verify_wallet_signature(
        self, message: str, signature: str, claimed_address: str
    ) -> str:
        return verify_wallet_signature(message, signature, claimed_address)

    def check_password_policy(self, plain: str) -> None:
        if len(plain or "") < self.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.min_password_length} characters",
                field="password",
            )

    # ─── Password accounts ──────────────────────────────

    async def register(self, email: str, plain: str, role: Role = Role.USER) -> Account:
        """Create a password account.

        Emails under the wallet email domain are reserved for accounts
        created by wallet sign-in.
        """
        email = normalize_email(email)
        if email.rsplit("@", 1)[1] == self.wallet_email_domain.lower():
            raise ValidationError(
                f"Email domain {self.wallet_email_domain} is reserved", field="email"
            )
        self.check_password_policy(plain)
        try:
            account = await self.directory.create(
                NewAccount(
                    email=email,
                    password_hash=await self.hash_password(plain),
                    role=role,
                )
            )
        except DuplicateAccountError as e:
            raise ConflictError(
                f"Account {e.field} already registered",
                public_message="Email already registered",
            ) from e
        logger.info("account.registered", user_id=account.id, role=account.role.value)
        return account

    async def authenticate_password(self, email: str, plain: str) -> Account:
        """Look up by email and check the password.

        Unknown email and wrong password raise the same
        InvalidCredentialsError, and a miss pays for a bcrypt check just
        like a hit, so callers cannot probe which emails exist.
        """
        try:
            email = normalize_email(email)
        except ValidationError as e:
            raise InvalidCredentialsError("Login with malformed email") from e
        account = await self.directory.get_by_email(email)
        if account is None:
            if self._dummy_hash is None:
                self._dummy_hash = await self.hash_password(passwords.random_password())
            await self.verify_password(plain, self._dummy_hash)
            raise InvalidCredentialsError("Unknown email")
        if not await self.verify_password(plain, account.password_hash):
            raise InvalidCredentialsError(f"Wrong password for {account.id}")
        if not account.active:
            raise AccountInactiveError(f"Account {account.id} is inactive")

        # Upgrade hashes made with an older work factor
        if passwords.needs_rehash(account.password_hash, self.bcrypt_rounds):
            account = await self._store_hash(account, await self.hash_password(plain))
            logger.info("account.password_rehashed", user_id=account.id)
        return account

    async def set_password(self, account: Account, plain: str) -> Account:
        """Explicit password-set call — the only place a new hash is computed.

        Re-setting the current password leaves the stored hash unchanged.
        """
        self.check_password_policy(plain)
        if await self.verify_password(plain, account.password_hash):
            return account
        return await self._store_hash(account, await self.hash_password(plain))

    async def _store_hash(self, account: Account, password_hash: str) -> Account:
        updated = await self.directory.update(account.id, password_hash=password_hash)
        if updated is None:
            raise InvalidCredentialsError(f"Account {account.id} vanished")
        return updated

    # ─── Wallet accounts ────────────────────────────────

    async def find_or_create_account_for_wallet(self, address: str) -> Account:
        """Return the account owning ``address``, creating it on first sign-in.

        Learn: no lock. Concurrent first sign-ins all try to create; the
        directory's unique constraint on wallet_address lets exactly one
        win, and the losers re-fetch the winner's row.

        The synthesized email can already be taken by an account that no
        longer owns this wallet (it linked a different one). In that case
        the create is retried once with a suffixed email.
        """
        address = normalize_wallet_address(address)
        existing = await self.directory.get_by_wallet(address)
        if existing is not None:
            return existing

        # Random secret nobody knows: password login can never succeed
        password_hash = await self.hash_password(passwords.random_password())
        email = synthesize_wallet_email(address, self.wallet_email_domain)
        for attempt in range(2):
            new = NewAccount(
                email=email,
                password_hash=password_hash,
                role=Role.WALLET_USER,
                wallet_address=address,
                wallet_verified=True,
                active=True,
            )
            try:
                account = await self.directory.create(new)
            except DuplicateAccountError as e:
                existing = await self.directory.get_by_wallet(address)
                if existing is not None:
                    logger.info("account.wallet_create_race", address=address)
                    return existing
                if e.field != "email" or attempt:
                    raise ConflictError(
                        f"Wallet account create conflicted on {e.field}",
                        public_message="Account already exists",
                    ) from e
                logger.warning("account.wallet_email_taken", address=address)
                email = synthesize_wallet_email(
                    address, self.wallet_email_domain, suffix=secrets.token_hex(4)
                )
                continue
            logger.info("account.wallet_created", user_id=account.id, address=address)
            return account

    async def authenticate_wallet(
        self, address: str, message: str, signature: str
    ) -> Account:
        """Verify a personal-sign signature and resolve the wallet's account."""
        recovered = self.verify_wallet_signature(message, signature, address)
        account = await self.find_or_create_account_for_wallet(recovered)
        if not account.active:
            raise AccountInactiveError(f"Account {account.id} is inactive")
        return account

    async def link_wallet(
        self, account: Account, address: str, message: str, signature: str
    ) -> Account:
        """Attach a wallet to an existing account after a signature challenge.

        Success is the only transition that sets wallet_verified=True.
        """
        recovered = self.verify_wallet_signature(message, signature, address)
        owner = await self.directory.get_by_wallet(recovered)
        if owner is not None and owner.id != account.id:
            raise ConflictError(
                f"Wallet {recovered} belongs to {owner.id}",
                public_message="Wallet already linked to another account",
            )
        try:
            updated = await self.directory.update(
                account.id, wallet_address=recovered, wallet_verified=True
            )
        except DuplicateAccountError as e:
            raise ConflictError(
                f"Wallet link conflicted on {e.field}",
                public_message="Wallet already linked to another account",
            ) from e
        if updated is None:
            raise InvalidCredentialsError(f"Account {account.id} vanished")
        logger.info("account.wallet_linked", user_id=account.id, address=recovered)
        return updated
