"""WalletGate CLI — operator tasks and a quick login check.

Usage:
    walletgate gen-secret                          # Print a fresh signing secret
    walletgate init-db                             # Create tables (dev; use alembic in prod)
    walletgate create-admin ops@example.com        # Bootstrap an admin account
    walletgate set-active <account-id> --inactive  # Lock an account out
    walletgate login alice@example.com             # Log in against a running server
    walletgate whoami <access-token>               # Show the account behind a token
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import secrets
import sys

import click
import httpx

from walletgate.accounts.directory import AccountDirectory
from walletgate.accounts.models import Role
from walletgate.auth.credentials import CredentialVerifier
from walletgate.config import settings
from walletgate.errors import WalletGateError

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("WALLETGATE_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at a running WalletGate server."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


def _directory() -> AccountDirectory:
    """Account directory backed by the configured database."""
    from walletgate.db.directory import SqlAccountDirectory
    from walletgate.db.engine import get_session_factory

    return SqlAccountDirectory(
        get_session_factory(),
        timeout=settings.store_timeout_seconds,
        backoff=settings.store_retry_backoff_seconds,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


async def _with_engine(coro):
    """Await ``coro``, then close pooled connections before the loop ends."""
    from walletgate.db.engine import dispose_engine

    try:
        return await coro
    finally:
        await dispose_engine()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _api_error(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP {response.status_code}"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="walletgate")
def main():
    """WalletGate — password and wallet authentication service."""


# ---------------------------------------------------------------------------
# Operator commands
# ---------------------------------------------------------------------------


@main.command("gen-secret")
@click.option("--bytes", "nbytes", default=48, show_default=True, help="Random bytes")
def gen_secret(nbytes: int):
    """Print a random value for WALLETGATE_JWT_SECRET."""
    if nbytes < 32:
        _fail("use at least 32 bytes")
    click.echo(secrets.token_urlsafe(nbytes))


@main.command("init-db")
def init_db():
    """Create the accounts table directly from the models."""
    _run(_init_db_impl())
    click.secho("Database initialized", fg="green")


async def _init_db_impl():
    from walletgate.db.engine import dispose_engine, get_engine
    from walletgate.db.models import Base

    try:
        async with get_engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await dispose_engine()


@main.command("create-admin")
@click.argument("email")
@click.password_option("--password", "-p", help="Admin password (prompted if omitted)")
def create_admin(email: str, password: str):
    """Create an admin account with EMAIL."""
    try:
        account = _run(_with_engine(_create_admin_impl(email, password)))
    except WalletGateError as e:
        _fail(e.public_message)
    click.secho(f"Admin created: {account.email} ({account.id})", fg="green")


async def _create_admin_impl(email: str, password: str):
    verifier = CredentialVerifier(
        _directory(),
        bcrypt_rounds=settings.bcrypt_rounds,
        min_password_length=settings.min_password_length,
        wallet_email_domain=settings.wallet_email_domain,
    )
    return await verifier.register(email, password, Role.ADMIN)


@main.command("set-active")
@click.argument("account_id")
@click.option("--active/--inactive", default=True, help="Activate or deactivate")
def set_active(account_id: str, active: bool):
    """Activate or deactivate ACCOUNT_ID."""
    try:
        account = _run(_with_engine(_directory().update(account_id, active=active)))
    except WalletGateError as e:
        _fail(e.public_message)
    if account is None:
        _fail(f"no account {account_id}")
    state = click.style("active" if account.active else "inactive",
                        fg="green" if account.active else "red")
    click.echo(f"{account.email} is now {state}")


# ---------------------------------------------------------------------------
# Client commands (talk to a running server)
# ---------------------------------------------------------------------------


@main.command()
@click.argument("email")
@click.option("--password", "-p", prompt=True, hide_input=True)
def login(email: str, password: str):
    """Log in as EMAIL and print the token pair."""
    _run(_login_impl(email, password))


async def _login_impl(email: str, password: str):
    async with _client() as c:
        r = await c.post("/api/v1/auth/login", json={"email": email, "password": password})
        if r.status_code != 200:
            _fail(_api_error(r))
        click.echo(_pretty_json(r.json()))


@main.command()
@click.argument("access_token")
def whoami(access_token: str):
    """Show the account behind ACCESS_TOKEN."""
    _run(_whoami_impl(access_token))


async def _whoami_impl(access_token: str):
    async with _client() as c:
        r = await c.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {access_token}"}
        )
        if r.status_code != 200:
            _fail(_api_error(r))
        me = r.json()
        wallet = me.get("walletAddress") or "—"
        verified = " (verified)" if me.get("walletVerified") else ""
        click.echo(f"{me['email']}  role={me['role']}  wallet={wallet}{verified}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
