"""CLI commands, run through click's CliRunner.

Learn: operator commands take their directory from cli.main._directory(),
which is patched here to an InMemoryAccountDirectory. Client commands
(login, whoami) go through httpx; they are patched to talk to the app
in-process over ASGITransport.
"""

import asyncio

import httpx
import pytest
from click.testing import CliRunner

from walletgate.accounts.models import Role
from walletgate.cli import main as cli_main
from walletgate.errors import ServiceUnavailableError

PASSWORD = "correct horse battery"


@pytest.fixture()
def runner():
    return CliRunner()


@pytest.fixture()
def patched_directory(directory, monkeypatch):
    monkeypatch.setattr(cli_main, "_directory", lambda: directory)
    monkeypatch.setattr(cli_main.settings, "bcrypt_rounds", 4)
    return directory


def test_gen_secret(runner):
    result = runner.invoke(cli_main.main, ["gen-secret"])
    assert result.exit_code == 0
    assert len(result.output.strip()) >= 43  # 32+ bytes, urlsafe base64


def test_gen_secret_refuses_short(runner):
    result = runner.invoke(cli_main.main, ["gen-secret", "--bytes", "16"])
    assert result.exit_code == 1


def test_create_admin(runner, patched_directory):
    result = runner.invoke(
        cli_main.main, ["create-admin", "Ops@Example.com", "--password", PASSWORD]
    )
    assert result.exit_code == 0, result.output
    assert "Admin created: ops@example.com" in result.output
    account = asyncio.run(patched_directory.get_by_email("ops@example.com"))
    assert account.role == Role.ADMIN


def test_create_admin_duplicate(runner, patched_directory):
    args = ["create-admin", "ops@example.com", "--password", PASSWORD]
    assert runner.invoke(cli_main.main, args).exit_code == 0
    result = runner.invoke(cli_main.main, args)
    assert result.exit_code == 1
    assert "already registered" in result.output


def test_set_active(runner, patched_directory):
    runner.invoke(cli_main.main, ["create-admin", "ops@example.com", "--password", PASSWORD])
    account = asyncio.run(patched_directory.get_by_email("ops@example.com"))

    result = runner.invoke(cli_main.main, ["set-active", account.id, "--inactive"])
    assert result.exit_code == 0
    assert "inactive" in result.output
    assert not asyncio.run(patched_directory.get(account.id)).active


def test_set_active_unknown(runner, patched_directory):
    result = runner.invoke(cli_main.main, ["set-active", "missing"])
    assert result.exit_code == 1


@pytest.fixture()
def disposals(monkeypatch):
    """Record engine disposals instead of touching a real database."""
    from walletgate.db import engine

    calls = []

    async def dispose_engine():
        calls.append(True)

    monkeypatch.setattr(engine, "dispose_engine", dispose_engine)
    return calls


def test_operator_commands_dispose_engine(runner, patched_directory, disposals):
    runner.invoke(cli_main.main, ["create-admin", "ops@example.com", "--password", PASSWORD])
    runner.invoke(cli_main.main, ["set-active", "missing"])
    assert len(disposals) == 2


def test_set_active_store_outage(runner, directory, monkeypatch, disposals):
    async def update(account_id, **changes):
        raise ServiceUnavailableError("postgres unavailable: TimeoutError()")

    monkeypatch.setattr(directory, "update", update)
    monkeypatch.setattr(cli_main, "_directory", lambda: directory)

    result = runner.invoke(cli_main.main, ["set-active", "some-id", "--inactive"])
    assert result.exit_code == 1
    assert "Service temporarily unavailable" in result.output
    assert "TimeoutError" not in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)
    assert disposals == [True]


@pytest.fixture()
def in_process_api(client, monkeypatch):
    """Point the CLI's httpx client at the app under test."""
    from walletgate.main import app

    def _client():
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    monkeypatch.setattr(cli_main, "_client", _client)


@pytest.mark.asyncio
async def test_login_and_whoami(runner, service, in_process_api):
    await service.register("cli@example.com", PASSWORD)

    result = runner.invoke(cli_main.main, ["login", "cli@example.com", "--password", PASSWORD])
    assert result.exit_code == 0, result.output
    assert '"accessToken"' in result.output

    tokens = (await service.login("cli@example.com", PASSWORD)).tokens
    result = runner.invoke(cli_main.main, ["whoami", tokens.access_token])
    assert result.exit_code == 0, result.output
    assert "cli@example.com" in result.output
    assert "role=user" in result.output


@pytest.mark.asyncio
async def test_login_failure(runner, in_process_api):
    result = runner.invoke(
        cli_main.main, ["login", "nobody@example.com", "--password", "whatever-else"]
    )
    assert result.exit_code == 1
    assert "Invalid credentials" in result.output
