"""
Auth endpoint tests — registration, login, tokens, password reset and the
profile changes that live under /api/auth.
"""
from datetime import timedelta

import jwt
import pytest
from httpx import AsyncClient

from conftest import TEST_SETTINGS, app, auth_headers
from rebbit.services import user_service


def _reset_token_from(mail: dict) -> str:
    return mail["body"].rsplit("token=", 1)[1].strip()


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_returns_token_and_pseudo(async_client: AsyncClient, mailer):
    resp = await async_client.post("/api/auth/register", json={
        "pseudo": "alice",
        "name": "Alice",
        "surname": "Liddell",
        "email": "alice@example.com",
        "password": "wonderland",
        "birthdate": "1995-03-02",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["pseudo"] == "alice"

    claims = jwt.decode(body["token"], TEST_SETTINGS.JWT_SECRET, algorithms=["HS256"])
    assert claims["user"]["role"] == "user"
    assert isinstance(claims["user"]["id"], int)
    assert "exp" in claims

    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "alice@example.com"
    assert mailer.sent[0]["subject"] == "Registration confirmation"
    assert "alice" in mailer.sent[0]["body"]


@pytest.mark.asyncio
async def test_register_duplicate_email_rejected(async_client: AsyncClient, register, promote):
    await register(pseudo="first", email="dup@example.com")

    resp = await async_client.post("/api/auth/register", json={
        "pseudo": "second",
        "email": "dup@example.com",
        "password": "secret123",
        "birthdate": "1990-01-01",
    })
    assert resp.status_code == 400
    assert resp.json() == {"errors": [{"msg": "User already exists"}]}

    # Still exactly one account.
    admin = await promote(await register(pseudo="boss"))
    users = (await async_client.get("/api/admin/users", headers=admin["headers"])).json()
    assert [u["email"] for u in users].count("dup@example.com") == 1


@pytest.mark.asyncio
async def test_register_validation_errors(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/register", json={
        "pseudo": "",
        "email": "not-an-email",
        "password": "123",
    })
    assert resp.status_code == 400
    errors = resp.json()["errors"]
    params = {e["param"] for e in errors}
    assert {"pseudo", "email", "password", "birthdate"} <= params
    messages = {e["param"]: e["msg"] for e in errors}
    assert messages["email"] == "Please enter a valid email"
    assert messages["password"] == "Please enter a password with 6 or more characters"


@pytest.mark.asyncio
async def test_register_ignores_role_from_client(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/register", json={
        "pseudo": "sneaky",
        "email": "sneaky@example.com",
        "password": "secret123",
        "birthdate": "1990-01-01",
        "role": "admin",
    })
    assert resp.status_code == 200
    claims = jwt.decode(resp.json()["token"], options={"verify_signature": False})
    assert claims["user"]["role"] == "user"


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_success(async_client: AsyncClient, register):
    user = await register(pseudo="bob", password="hunter22")

    resp = await async_client.post("/api/auth/login", json={
        "email": user["email"],
        "password": "hunter22",
    })
    assert resp.status_code == 200
    claims = jwt.decode(resp.json()["token"], TEST_SETTINGS.JWT_SECRET, algorithms=["HS256"])
    assert claims["user"] == {"id": user["id"], "role": "user"}
    assert resp.json()["pseudo"] == "bob"


@pytest.mark.asyncio
async def test_login_wrong_password_and_unknown_email_look_the_same(async_client: AsyncClient, register):
    user = await register(pseudo="carol", password="rightpass")

    wrong_password = await async_client.post("/api/auth/login", json={
        "email": user["email"],
        "password": "wrongpass",
    })
    unknown_email = await async_client.post("/api/auth/login", json={
        "email": "nobody@example.com",
        "password": "rightpass",
    })
    assert wrong_password.status_code == 400
    assert unknown_email.status_code == 400
    assert wrong_password.json() == unknown_email.json() == {"errors": [{"msg": "Invalid credentials"}]}


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_protected_route_without_token(async_client: AsyncClient):
    resp = await async_client.get("/api/auth/user")
    assert resp.status_code == 401
    assert resp.json() == {"msg": "No token, authorization denied"}


@pytest.mark.asyncio
async def test_protected_route_with_bad_token(async_client: AsyncClient):
    resp = await async_client.get("/api/auth/user", headers=auth_headers("garbage"))
    assert resp.status_code == 401
    assert resp.json() == {"msg": "Token is not valid"}


@pytest.mark.asyncio
async def test_expired_token_rejected(async_client: AsyncClient, register):
    user = await register()
    expired = app.state.credentials.issue_token(
        {"user": {"id": user["id"], "role": "user"}}, ttl=timedelta(seconds=-5)
    )
    resp = await async_client.get("/api/auth/user", headers=auth_headers(expired))
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_get_current_user_hides_password(async_client: AsyncClient, register):
    user = await register(pseudo="dave")
    resp = await async_client.get("/api/auth/user", headers=user["headers"])
    assert resp.status_code == 200
    body = resp.json()
    assert body["pseudo"] == "dave"
    assert body["birthdate"] == "1990-05-17"
    assert "password" not in body


@pytest.mark.asyncio
async def test_generate_token(async_client: AsyncClient, register):
    user = await register()
    resp = await async_client.get("/api/auth/generate-token", headers=user["headers"])
    assert resp.status_code == 200
    claims = jwt.decode(resp.json()["token"], TEST_SETTINGS.JWT_SECRET, algorithms=["HS256"])
    assert claims["user"]["id"] == user["id"]


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_forgot_and_reset_password(async_client: AsyncClient, register, mailer):
    user = await register(pseudo="erin", password="oldpassword")
    mailer.sent.clear()

    resp = await async_client.post("/api/auth/forgot-password", json={"email": user["email"]})
    assert resp.status_code == 200
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["body"].count("/reset-password?token=") == 1
    token = _reset_token_from(mailer.sent[0])

    resp = await async_client.post("/api/auth/reset-password", json={
        "token": token,
        "newPassword": "newpassword",
    })
    assert resp.status_code == 200

    old = await async_client.post("/api/auth/login", json={"email": user["email"], "password": "oldpassword"})
    new = await async_client.post("/api/auth/login", json={"email": user["email"], "password": "newpassword"})
    assert old.status_code == 400
    assert new.status_code == 200

    # Not single use: the same token still works within its lifetime.
    again = await async_client.post("/api/auth/reset-password", json={
        "token": token,
        "newPassword": "thirdpassword",
    })
    assert again.status_code == 200


@pytest.mark.asyncio
async def test_forgot_password_unknown_email(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["msg"] == "User not found"


@pytest.mark.asyncio
async def test_reset_with_invalid_token(async_client: AsyncClient):
    resp = await async_client.post("/api/auth/reset-password", json={
        "token": "not-a-token",
        "newPassword": "whatever1",
    })
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_reset_token_is_not_an_access_token(async_client: AsyncClient, register, mailer):
    user = await register()
    await async_client.post("/api/auth/forgot-password", json={"email": user["email"]})
    token = _reset_token_from(mailer.sent[-1])

    resp = await async_client.get("/api/auth/user", headers=auth_headers(token))
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_access_token_cannot_reset_password(async_client: AsyncClient, register):
    user = await register()
    resp = await async_client.post("/api/auth/reset-password", json={
        "token": user["token"],
        "newPassword": "whatever1",
    })
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Profile changes
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_change_email(async_client: AsyncClient, register):
    user = await register()
    resp = await async_client.put(
        "/api/auth/change-email", json={"newEmail": "fresh@example.com"}, headers=user["headers"]
    )
    assert resp.status_code == 200
    me = (await async_client.get("/api/auth/user", headers=user["headers"])).json()
    assert me["email"] == "fresh@example.com"


@pytest.mark.asyncio
async def test_change_email_to_taken_address(async_client: AsyncClient, register):
    first = await register()
    second = await register()
    resp = await async_client.put(
        "/api/auth/change-email", json={"newEmail": first["email"]}, headers=second["headers"]
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_change_password_requires_current_password(async_client: AsyncClient, register):
    user = await register(password="original1")

    wrong = await async_client.put("/api/auth/change-password", json={
        "currentPassword": "nope",
        "newPassword": "changed1",
    }, headers=user["headers"])
    assert wrong.status_code == 400
    assert wrong.json() == {"msg": "Current password is incorrect"}

    right = await async_client.put("/api/auth/change-password", json={
        "currentPassword": "original1",
        "newPassword": "changed1",
    }, headers=user["headers"])
    assert right.status_code == 200

    login = await async_client.post("/api/auth/login", json={"email": user["email"], "password": "changed1"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_change_pseudo(async_client: AsyncClient, register):
    user = await register(pseudo="before")
    resp = await async_client.put("/api/auth/change-pseudo", json={"newPseudo": "after"}, headers=user["headers"])
    assert resp.status_code == 200
    me = (await async_client.get("/api/auth/user", headers=user["headers"])).json()
    assert me["pseudo"] == "after"

    empty = await async_client.put("/api/auth/change-pseudo", json={"newPseudo": "  "}, headers=user["headers"])
    assert empty.status_code == 400


@pytest.mark.asyncio
async def test_delete_account_via_auth(async_client: AsyncClient, register):
    user = await register()
    resp = await async_client.delete("/api/auth/delete-account", headers=user["headers"])
    assert resp.status_code == 200
    me = await async_client.get("/api/auth/user", headers=user["headers"])
    assert me.status_code == 404


@pytest.mark.asyncio
async def test_change_email_race_on_unique_email(async_client: AsyncClient, register, monkeypatch):
    first = await register()
    second = await register()

    # Both requests pass the availability check before either writes.
    async def nobody_has_it(db, email):
        return None

    monkeypatch.setattr(user_service, "get_user_by_email", nobody_has_it)
    resp = await async_client.put(
        "/api/auth/change-email", json={"newEmail": first["email"]}, headers=second["headers"]
    )
    assert resp.status_code == 400
    assert resp.json() == {"errors": [{"msg": "Email already in use"}]}

    monkeypatch.undo()
    me = (await async_client.get("/api/auth/user", headers=second["headers"])).json()
    assert me["email"] == second["email"]


@pytest.mark.asyncio
async def test_change_password_keeps_surrounding_spaces(async_client: AsyncClient, register):
    user = await register(password=" secret123 ")

    resp = await async_client.put("/api/auth/change-password", json={
        "currentPassword": " secret123 ",
        "newPassword": "  spaced out  ",
    }, headers=user["headers"])
    assert resp.status_code == 200

    trimmed = await async_client.post("/api/auth/login", json={"email": user["email"], "password": "spaced out"})
    exact = await async_client.post("/api/auth/login", json={"email": user["email"], "password": "  spaced out  "})
    assert trimmed.status_code == 400
    assert exact.status_code == 200


@pytest.mark.asyncio
async def test_change_password_new_password_too_short(async_client: AsyncClient, register):
    user = await register(password="original1")
    resp = await async_client.put("/api/auth/change-password", json={
        "currentPassword": "original1",
        "newPassword": "abc",
    }, headers=user["headers"])
    assert resp.status_code == 400
    assert resp.json()["errors"][0] == {
        "msg": "Please enter a new password with 6 or more characters",
        "param": "newPassword",
        "location": "body",
    }
