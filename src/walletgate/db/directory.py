"""SqlAccountDirectory — AccountDirectory on PostgreSQL.

Learn: each operation opens its own short session, so concurrent requests
never share a transaction. Unique violations come back from the database
as IntegrityError and are translated to DuplicateAccountError naming the
field, which is what lets concurrent first wallet sign-ins resolve to one
row: the loser's INSERT fails, it re-reads, it gets the winner.

All calls go through call_with_timeout (timeout, one retry on transient
connection errors, then ServiceUnavailableError).
"""

from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from walletgate.accounts.directory import AccountDirectory, DuplicateAccountError
from walletgate.accounts.models import UPDATABLE_FIELDS, Account, NewAccount, Role
from walletgate.db.models import AccountRecord, utcnow
from walletgate.resilience import call_with_timeout

T = TypeVar("T")


def _to_account(record: AccountRecord) -> Account:
    return Account(
        id=record.id,
        email=record.email,
        password_hash=record.password_hash,
        role=Role(record.role),
        wallet_address=record.wallet_address,
        wallet_verified=record.wallet_verified,
        active=record.active,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _conflicting_field(error: IntegrityError) -> str:
    text = str(error.orig).lower()
    return "wallet_address" if "wallet_address" in text else "email"


class SqlAccountDirectory(AccountDirectory):
    """Accounts table access through an async session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        timeout: float = 2.0,
        backoff: float = 0.05,
    ):
        self._session_factory = session_factory
        self._timeout = timeout
        self._backoff = backoff

    async def get(self, account_id: str) -> Optional[Account]:
        return await self._call(lambda: self._fetch_one(AccountRecord.id == account_id))

    async def get_by_email(self, email: str) -> Optional[Account]:
        return await self._call(lambda: self._fetch_one(AccountRecord.email == email))

    async def get_by_wallet(self, address: str) -> Optional[Account]:
        return await self._call(
            lambda: self._fetch_one(AccountRecord.wallet_address == address)
        )

    async def create(self, new: NewAccount) -> Account:
        """Insert a row.

        A retried insert can collide with its own first attempt, when that
        attempt committed but timed out on the way back. A duplicate after
        a retry is therefore checked against the stored row: the same email,
        wallet and password hash (salted, so never shared) means it is ours.
        """
        attempts = 0

        async def insert() -> Account:
            nonlocal attempts
            attempts += 1
            async with self._session_factory() as session:
                record = AccountRecord(
                    email=new.email,
                    password_hash=new.password_hash,
                    role=new.role.value,
                    wallet_address=new.wallet_address,
                    wallet_verified=new.wallet_verified,
                    active=new.active,
                )
                session.add(record)
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    raise DuplicateAccountError(_conflicting_field(e)) from e
                return _to_account(record)

        try:
            return await self._call(insert)
        except DuplicateAccountError:
            if attempts < 2:
                raise
            stored = await self.get_by_email(new.email)
            if (
                stored is None
                or stored.wallet_address != new.wallet_address
                or stored.password_hash != new.password_hash
            ):
                raise
            return stored

    async def update(self, account_id: str, **changes: Any) -> Optional[Account]:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        async def apply() -> Optional[Account]:
            async with self._session_factory() as session:
                record = await session.get(AccountRecord, account_id)
                if record is None:
                    return None
                for name, value in changes.items():
                    setattr(record, name, value.value if isinstance(value, Role) else value)
                record.updated_at = utcnow()
                try:
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    raise DuplicateAccountError(_conflicting_field(e)) from e
                return _to_account(record)

        return await self._call(apply)

    async def _fetch_one(self, clause) -> Optional[Account]:
        async with self._session_factory() as session:
            result = await session.execute(select(AccountRecord).where(clause))
            record = result.scalars().first()
            return _to_account(record) if record else None

    async def _call(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await call_with_timeout(
            operation,
            store="postgres",
            timeout=self._timeout,
            backoff=self._backoff,
            transient=(OperationalError, InterfaceError),
        )
