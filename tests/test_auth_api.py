"""Auth API end to end, through the real dependency and gate wiring.

Learn: Tests cover:
1. Registration + duplicate prevention + policy errors
2. Password login → token pair; /me with the access token
3. Wallet login → account created on first sign-in, verified-wallet route
4. Refresh rotation: a spent refresh token is a 401
5. Logout revokes the access and refresh tokens
6. Admin deactivation locks the account out on its next request
7. Error shape: {"error": {...}}, WWW-Authenticate on 401
"""

import uuid

import pytest

from walletgate.accounts.models import Role

PASSWORD = "correct horse battery"
MESSAGE = "Sign in to WalletGate\nnonce: 7d3a"


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def _register_and_login(client, email=None):
    email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
    r = await client.post("/api/v1/auth/register", json={"email": email, "password": PASSWORD})
    assert r.status_code == 201
    r = await client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200
    return r.json()


async def _wallet_login(client, wallet, sign, message=MESSAGE):
    return await client.post(
        "/api/v1/auth/wallet",
        json={
            "address": wallet.address,
            "message": message,
            "signature": sign(wallet, message),
        },
    )


# ═══════════════════════════════════════════════════════════
# Registration + login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client):
    r = await client.post(
        "/api/v1/auth/register",
        json={"email": "New.User@Example.com", "password": PASSWORD},
    )
    assert r.status_code == 201
    user = r.json()
    assert user["email"] == "new.user@example.com"
    assert user["role"] == "user"
    assert user["walletAddress"] is None
    assert user["walletVerified"] is False
    assert "passwordHash" not in user


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    body = {"email": "dup@example.com", "password": PASSWORD}
    assert (await client.post("/api/v1/auth/register", json=body)).status_code == 201
    r = await client.post("/api/v1/auth/register", json=body)
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "conflict"


@pytest.mark.asyncio
async def test_register_short_password(client):
    r = await client.post(
        "/api/v1/auth/register", json={"email": "short@example.com", "password": "abc"}
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_missing_fields_are_400(client):
    r = await client.post("/api/v1/auth/login", json={"email": "x@example.com"})
    assert r.status_code == 400
    error = r.json()["error"]
    assert error["code"] == "validation_error"
    assert "password" in error["message"]


@pytest.mark.asyncio
async def test_login_returns_token_pair(client):
    body = await _register_and_login(client)
    assert body["tokenType"] == "bearer"
    assert body["expiresIn"] == 15 * 60
    assert body["accessToken"] and body["refreshToken"]
    assert body["user"]["role"] == "user"


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    await _register_and_login(client, "wrong@example.com")
    r = await client.post(
        "/api/v1/auth/login", json={"email": "wrong@example.com", "password": "nope-nope"}
    )
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"
    assert r.json()["error"]["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_me(client):
    tokens = await _register_and_login(client, "me@example.com")
    r = await client.get("/api/v1/auth/me", headers=_bearer(tokens["accessToken"]))
    assert r.status_code == 200
    assert r.json()["email"] == "me@example.com"


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/v1/auth/me")
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"
    assert r.json()["error"]["code"] == "unauthorized"


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer not-a-jwt", "garbage"])
async def test_me_with_bad_header(client, header):
    r = await client.get("/api/v1/auth/me", headers={"Authorization": header})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token_is_not_an_access_token(client):
    tokens = await _register_and_login(client)
    r = await client.get("/api/v1/auth/me", headers=_bearer(tokens["refreshToken"]))
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Wallet login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_wallet_login_creates_account(client, directory, wallet, sign):
    r = await _wallet_login(client, wallet, sign)
    assert r.status_code == 200
    body = r.json()
    address = wallet.address.lower()
    assert body["user"]["walletAddress"] == address
    assert body["user"]["walletVerified"] is True
    assert body["user"]["role"] == "web3_user"
    assert body["user"]["email"] == f"{address}@web3.user"

    r = await client.get("/api/v1/auth/wallet/me", headers=_bearer(body["accessToken"]))
    assert r.status_code == 200
    assert r.json()["id"] == body["user"]["id"]
    assert len(directory) == 1


@pytest.mark.asyncio
async def test_wallet_login_twice_same_account(client, directory, wallet, sign):
    first = (await _wallet_login(client, wallet, sign)).json()
    second = (await _wallet_login(client, wallet, sign, "a second challenge")).json()
    assert first["user"]["id"] == second["user"]["id"]
    assert len(directory) == 1


@pytest.mark.asyncio
async def test_wallet_login_bad_signature(client, directory, wallet, other_wallet, sign):
    r = await client.post(
        "/api/v1/auth/wallet",
        json={
            "address": wallet.address,
            "message": MESSAGE,
            "signature": sign(other_wallet, MESSAGE),
        },
    )
    assert r.status_code == 401
    assert len(directory) == 0


@pytest.mark.asyncio
async def test_wallet_email_cannot_be_registered_first(client, directory, wallet, sign):
    r = await client.post(
        "/api/v1/auth/register",
        json={"email": f"{wallet.address.lower()}@web3.user", "password": PASSWORD},
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "validation_error"

    r = await _wallet_login(client, wallet, sign)
    assert r.status_code == 200
    assert r.json()["user"]["walletAddress"] == wallet.address.lower()
    assert len(directory) == 1


@pytest.mark.asyncio
async def test_wallet_login_bad_address(client, wallet, sign):
    r = await client.post(
        "/api/v1/auth/wallet",
        json={"address": "0x123", "message": MESSAGE, "signature": sign(wallet, MESSAGE)},
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_wallet_route_needs_a_wallet(client):
    tokens = await _register_and_login(client)
    r = await client.get("/api/v1/auth/wallet/me", headers=_bearer(tokens["accessToken"]))
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "forbidden"


@pytest.mark.asyncio
async def test_wallet_route_checks_current_verification(client, directory, wallet, sign):
    body = (await _wallet_login(client, wallet, sign)).json()
    await directory.update(body["user"]["id"], wallet_verified=False)
    r = await client.get("/api/v1/auth/wallet/me", headers=_bearer(body["accessToken"]))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_link_wallet(client, wallet, sign):
    tokens = await _register_and_login(client, "linker@example.com")
    r = await client.post(
        "/api/v1/auth/wallet/link",
        headers=_bearer(tokens["accessToken"]),
        json={"address": wallet.address, "message": MESSAGE, "signature": sign(wallet, MESSAGE)},
    )
    assert r.status_code == 200
    assert r.json()["walletVerified"] is True
    assert r.json()["walletAddress"] == wallet.address.lower()

    # The old access token carries no wallet; a refreshed one does
    r = await client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert r.status_code == 200
    r = await client.get("/api/v1/auth/wallet/me", headers=_bearer(r.json()["accessToken"]))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_link_wallet_taken(client, wallet, sign):
    await _wallet_login(client, wallet, sign)
    tokens = await _register_and_login(client)
    r = await client.post(
        "/api/v1/auth/wallet/link",
        headers=_bearer(tokens["accessToken"]),
        json={"address": wallet.address, "message": MESSAGE, "signature": sign(wallet, MESSAGE)},
    )
    assert r.status_code == 409


# ═══════════════════════════════════════════════════════════
# Refresh + logout
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_refresh_rotates(client):
    tokens = await _register_and_login(client)
    r = await client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert r.status_code == 200
    new = r.json()
    assert new["refreshToken"] != tokens["refreshToken"]
    r = await client.get("/api/v1/auth/me", headers=_bearer(new["accessToken"]))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_refresh_token_reuse_is_rejected(client):
    tokens = await _register_and_login(client)
    body = {"refreshToken": tokens["refreshToken"]}
    assert (await client.post("/api/v1/auth/refresh", json=body)).status_code == 200
    r = await client.post("/api/v1/auth/refresh", json=body)
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Token has been revoked"


@pytest.mark.asyncio
async def test_refresh_with_garbage(client):
    r = await client.post("/api/v1/auth/refresh", json={"refreshToken": "garbage"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_both_tokens(client):
    tokens = await _register_and_login(client)
    r = await client.post(
        "/api/v1/auth/logout",
        headers=_bearer(tokens["accessToken"]),
        json={"refreshToken": tokens["refreshToken"]},
    )
    assert r.status_code == 200
    assert r.json()["revoked"] == 2

    r = await client.get("/api/v1/auth/me", headers=_bearer(tokens["accessToken"]))
    assert r.status_code == 401
    r = await client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_logout_access_only(client):
    tokens = await _register_and_login(client)
    r = await client.post("/api/v1/auth/logout", headers=_bearer(tokens["accessToken"]))
    assert r.status_code == 200
    assert r.json()["revoked"] == 1


# ═══════════════════════════════════════════════════════════
# Password change
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_change_password(client):
    tokens = await _register_and_login(client, "change@example.com")
    r = await client.post(
        "/api/v1/auth/password",
        headers=_bearer(tokens["accessToken"]),
        json={"currentPassword": PASSWORD, "newPassword": "an entirely new one"},
    )
    assert r.status_code == 200

    r = await client.post(
        "/api/v1/auth/login", json={"email": "change@example.com", "password": PASSWORD}
    )
    assert r.status_code == 401
    r = await client.post(
        "/api/v1/auth/login",
        json={"email": "change@example.com", "password": "an entirely new one"},
    )
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_change_password_wrong_current(client):
    tokens = await _register_and_login(client)
    r = await client.post(
        "/api/v1/auth/password",
        headers=_bearer(tokens["accessToken"]),
        json={"currentPassword": "not-my-password", "newPassword": "an entirely new one"},
    )
    assert r.status_code == 401


# ═══════════════════════════════════════════════════════════
# Admin
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_deactivation_locks_out_next_request(client, admin_headers):
    tokens = await _register_and_login(client)
    user_id = tokens["user"]["id"]
    headers = _bearer(tokens["accessToken"])
    assert (await client.get("/api/v1/auth/me", headers=headers)).status_code == 200

    r = await client.post(f"/api/v1/admin/accounts/{user_id}/deactivate", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["active"] is False

    r = await client.get("/api/v1/auth/me", headers=headers)
    assert r.status_code == 401
    r = await client.post("/api/v1/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert r.status_code == 401

    r = await client.post(f"/api/v1/admin/accounts/{user_id}/activate", headers=admin_headers)
    assert r.status_code == 200
    assert (await client.get("/api/v1/auth/me", headers=headers)).status_code == 200


@pytest.mark.asyncio
async def test_admin_routes_reject_non_admins(client, wallet, sign):
    body = (await _wallet_login(client, wallet, sign)).json()
    r = await client.post(
        f"/api/v1/admin/accounts/{body['user']['id']}/deactivate",
        headers=_bearer(body["accessToken"]),
    )
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_admin_unknown_account(client, admin_headers):
    r = await client.post("/api/v1/admin/accounts/missing/deactivate", headers=admin_headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_admin_role_in_token(service, admin_headers):
    token = admin_headers["Authorization"].split()[1]
    identity = await service.validator.authenticate(token)
    assert identity.role == Role.ADMIN


# ═══════════════════════════════════════════════════════════
# Store outage
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_revocation_store_outage_is_503(client, revocations, monkeypatch):
    tokens = await _register_and_login(client)

    from walletgate.errors import ServiceUnavailableError

    async def down(token_id):
        raise ServiceUnavailableError("redis unavailable: TimeoutError()")

    monkeypatch.setattr(revocations, "is_marked", down)
    r = await client.get("/api/v1/auth/me", headers=_bearer(tokens["accessToken"]))
    assert r.status_code == 503
    assert r.json()["error"] == {
        "code": "service_unavailable",
        "message": "Service temporarily unavailable",
    }
