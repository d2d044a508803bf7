"""Test fixtures — in-memory stores wired into the real app.

Learn: Testing pattern for the auth core:

1. Each test gets a fresh InMemoryAccountDirectory and
   InMemoryRevocationStore (function-scoped), so nothing leaks between tests.
2. The HTTP client overrides get_settings / get_directory /
   get_revocation_store through app.dependency_overrides. Everything
   above those three (token validation, gates, handlers, error
   translation) is the production code path.
3. bcrypt runs at 4 rounds so the suite stays fast.

No Postgres or Redis needed; the SQL directory has its own aiosqlite
tests and the Redis store is tested against a small fake client.
"""

import pytest
import pytest_asyncio
from eth_account import Account as EthAccount
from eth_account.messages import encode_defunct
from httpx import ASGITransport, AsyncClient

from walletgate.accounts.directory import InMemoryAccountDirectory
from walletgate.accounts.models import Role
from walletgate.auth.dependencies import get_directory, get_revocation_store, get_settings
from walletgate.config import Settings
from walletgate.main import app
from walletgate.revocation.store import InMemoryRevocationStore
from walletgate.services.auth_service import build_auth_service

TEST_SECRET = "test-secret-0123456789-abcdefghijklmnop"
TEST_PASSWORD = "correct horse battery"


class FakeClock:
    """Settable epoch clock for expiry tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _sign(wallet, message: str) -> str:
    signed = wallet.sign_message(encode_defunct(text=message))
    return "0x" + bytes(signed.signature).hex()


@pytest.fixture()
def sign():
    """personal_sign a message with an eth_account LocalAccount, hex-encoded."""
    return _sign


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def test_settings():
    return Settings(
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        environment="test",
    )


@pytest.fixture()
def directory():
    return InMemoryAccountDirectory()


@pytest.fixture()
def revocations():
    return InMemoryRevocationStore()


@pytest.fixture()
def service(directory, revocations, test_settings):
    return build_auth_service(directory, revocations, test_settings)


@pytest.fixture()
def wallet():
    """A fresh Ethereum key pair."""
    return EthAccount.create()


@pytest.fixture()
def other_wallet():
    return EthAccount.create()


@pytest_asyncio.fixture()
async def client(directory, revocations, test_settings):
    """HTTP client with the stores and settings overridden for testing."""
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_directory] = lambda: directory
    app.dependency_overrides[get_revocation_store] = lambda: revocations

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def admin_headers(service):
    """Authorization header for a freshly created admin account."""
    await service.credentials.register("admin@example.com", TEST_PASSWORD, Role.ADMIN)
    result = await service.login("admin@example.com", TEST_PASSWORD)
    return {"Authorization": f"Bearer {result.tokens.access_token}"}
