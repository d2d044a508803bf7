"""AccountDirectory — the port the auth core uses to read and write accounts.

Learn: the directory owns uniqueness. Email and wallet address are unique
across all accounts, and a create/update that would break that raises
DuplicateAccountError naming the field. Callers that race on purpose
(first wallet sign-in) catch it and re-fetch instead of locking.

Two implementations:
- InMemoryAccountDirectory (here) — tests and local runs
- SqlAccountDirectory (db/directory.py) — PostgreSQL via SQLAlchemy
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from walletgate.accounts.models import UPDATABLE_FIELDS, Account, NewAccount


class DuplicateAccountError(Exception):
    """A unique key (email or wallet_address) is already taken."""

    def __init__(self, field: str):
        super().__init__(f"Duplicate account {field}")
        self.field = field


class AccountDirectory(ABC):
    """Port for account persistence."""

    @abstractmethod
    async def get(self, account_id: str) -> Optional[Account]:
        """Get an account by id."""

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Account]:
        """Get an account by normalized email."""

    @abstractmethod
    async def get_by_wallet(self, address: str) -> Optional[Account]:
        """Get an account by normalized (lowercase) wallet address."""

    @abstractmethod
    async def create(self, new: NewAccount) -> Account:
        """Persist a new account. Raises DuplicateAccountError."""

    @abstractmethod
    async def update(self, account_id: str, **changes) -> Optional[Account]:
        """Apply field changes. Returns None if the account does not exist.

        Raises DuplicateAccountError if a unique key would collide.
        """


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryAccountDirectory(AccountDirectory):
    """Dict-backed directory.

    Uniqueness checks and inserts happen with no await in between, so a
    check-then-insert is atomic with respect to other coroutines. Lookups
    yield to the event loop once, which lets concurrent callers interleave
    the way they would against a real database.
    """

    def __init__(self):
        self._accounts: dict[str, Account] = {}

    async def get(self, account_id: str) -> Optional[Account]:
        await asyncio.sleep(0)
        return self._accounts.get(account_id)

    async def get_by_email(self, email: str) -> Optional[Account]:
        await asyncio.sleep(0)
        return next((a for a in self._accounts.values() if a.email == email), None)

    async def get_by_wallet(self, address: str) -> Optional[Account]:
        await asyncio.sleep(0)
        return next(
            (a for a in self._accounts.values() if a.wallet_address == address),
            None,
        )

    async def create(self, new: NewAccount) -> Account:
        self._check_unique(None, new.email, new.wallet_address)
        now = _utcnow()
        account = Account(
            id=str(uuid.uuid4()),
            email=new.email,
            password_hash=new.password_hash,
            role=new.role,
            wallet_address=new.wallet_address,
            wallet_verified=new.wallet_verified,
            active=new.active,
            created_at=now,
            updated_at=now,
        )
        self._accounts[account.id] = account
        return account

    async def update(self, account_id: str, **changes) -> Optional[Account]:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        current = self._accounts.get(account_id)
        if current is None:
            return None
        self._check_unique(
            account_id,
            changes.get("email", current.email),
            changes.get("wallet_address", current.wallet_address),
        )
        updated = current.with_changes(**changes, updated_at=_utcnow())
        self._accounts[account_id] = updated
        return updated

    def _check_unique(
        self, account_id: Optional[str], email: str, wallet_address: Optional[str]
    ) -> None:
        for other in self._accounts.values():
            if other.id == account_id:
                continue
            if other.email == email:
                raise DuplicateAccountError("email")
            if wallet_address and other.wallet_address == wallet_address:
                raise DuplicateAccountError("wallet_address")

    def __len__(self) -> int:
        return len(self._accounts)
