from conference_service import models


def register_user(client, name: str, email: str, password: str = "test1234"):
    """
    Helper: register a user via the public registration endpoint.

    Role is assigned internally:
      - first user => Admin
      - subsequent users => User
    """
    res = client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )
    assert res.status_code == 201
    return res.json()


def bearer(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['accessToken']}"}


# ---------- Registration & login ----------


def test_first_user_is_admin_then_users(client, db):
    admin_tokens = register_user(client, "First", "first@example.com")
    register_user(client, "Second", "second@example.com")

    assert admin_tokens["tokenType"] == "bearer"
    assert admin_tokens["refreshToken"]

    res = client.get("/api/admin/users", headers=bearer(admin_tokens))
    assert res.status_code == 200
    roles = {u["email"]: u["role"] for u in res.json()}
    assert roles == {"first@example.com": "Admin", "second@example.com": "User"}


def test_register_duplicate_email_rejected(client):
    register_user(client, "First", "first@example.com")
    res = client.post(
        "/api/auth/register",
        json={"name": "Again", "email": "first@example.com", "password": "test1234"},
    )
    assert res.status_code == 400
    assert "already exists" in res.json()["detail"]


def test_register_validates_shape(client):
    for payload in (
        {"name": "A", "email": "not-an-email", "password": "test1234"},
        {"name": "A", "email": "a@example.com", "password": "123"},
        {"name": "x" * 51, "email": "a@example.com", "password": "test1234"},
    ):
        res = client.post("/api/auth/register", json=payload)
        assert res.status_code == 400, payload


def test_login_success_and_failure(client):
    register_user(client, "First", "first@example.com", "Secret123")

    res = client.post(
        "/api/auth/login", json={"email": "first@example.com", "password": "Secret123"}
    )
    assert res.status_code == 200
    tokens = res.json()

    # the token works on protected endpoints
    assert client.get("/api/booking/me", headers=bearer(tokens)).status_code == 200

    res = client.post(
        "/api/auth/login", json={"email": "first@example.com", "password": "wrong"}
    )
    assert res.status_code == 401

    res = client.post(
        "/api/auth/login", json={"email": "nobody@example.com", "password": "Secret123"}
    )
    assert res.status_code == 401


def test_access_token_carries_identity_claims(client):
    from conference_service.auth import decode_access_token

    tokens = register_user(client, "First", "first@example.com")
    claims = decode_access_token(tokens["accessToken"])
    assert claims["name"] == "First"
    assert claims["email"] == "first@example.com"
    assert claims["role"] == "Admin"
    assert claims["sub"] == str(claims["user_id"])


def test_refresh_token_rotates(client):
    tokens = register_user(client, "First", "first@example.com")

    res = client.post(
        "/api/auth/refresh-token",
        json={"accessToken": tokens["accessToken"], "refreshToken": tokens["refreshToken"]},
    )
    assert res.status_code == 200
    new_tokens = res.json()
    assert new_tokens["refreshToken"] != tokens["refreshToken"]

    # the old refresh token is no longer valid
    res = client.post(
        "/api/auth/refresh-token",
        json={"accessToken": tokens["accessToken"], "refreshToken": tokens["refreshToken"]},
    )
    assert res.status_code == 401


def test_refresh_accepts_expired_access_token(client, db):
    from datetime import timedelta

    from conference_service.auth import create_access_token

    tokens = register_user(client, "First", "first@example.com")
    user = db.query(models.User).filter(models.User.email == "first@example.com").one()
    expired = create_access_token(user, expires_delta=timedelta(minutes=-5))

    res = client.post(
        "/api/auth/refresh-token",
        json={"accessToken": expired, "refreshToken": tokens["refreshToken"]},
    )
    assert res.status_code == 200


def test_refresh_rejects_forged_access_token(client):
    tokens = register_user(client, "First", "first@example.com")
    res = client.post(
        "/api/auth/refresh-token",
        json={"accessToken": "not.a.jwt", "refreshToken": tokens["refreshToken"]},
    )
    assert res.status_code == 401


def test_refresh_rejects_mismatched_refresh_tokens(client):
    tokens = register_user(client, "First", "first@example.com")
    for refresh_token in ("short", tokens["refreshToken"][:-1] + "\u00e9", ""):
        res = client.post(
            "/api/auth/refresh-token",
            json={"accessToken": tokens["accessToken"], "refreshToken": refresh_token},
        )
        assert res.status_code == 401, refresh_token


def test_register_email_race_is_a_bad_request(client, monkeypatch):
    from conference_service.user_repository import UserRepository

    register_user(client, "First", "first@example.com")
    # the duplicate check passes, so the unique constraint has to catch it
    monkeypatch.setattr(UserRepository, "get_by_email", lambda self, email: None)

    res = client.post(
        "/api/auth/register",
        json={"name": "Again", "email": "first@example.com", "password": "test1234"},
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "Email already exists"


# ---------- Admin user management ----------


def test_admin_user_management(client, make_user, make_room, make_booking, auth_headers, tomorrow_at):
    admin = make_user(models.UserRole.ADMIN)
    user = make_user()
    make_booking(make_room(), user, tomorrow_at(9), tomorrow_at(10))
    headers = auth_headers(admin.id, "Admin")

    res = client.get(f"/api/admin/users/{user.id}", headers=headers)
    assert res.status_code == 200
    assert "passwordHash" not in res.json()

    res = client.put(
        f"/api/admin/users/{user.id}", json={"role": "Admin", "name": "Promoted"}, headers=headers
    )
    assert res.status_code == 200
    assert res.json()["role"] == "Admin"
    assert res.json()["name"] == "Promoted"

    assert client.delete(f"/api/admin/users/{user.id}", headers=headers).status_code == 204
    assert client.get(f"/api/admin/users/{user.id}", headers=headers).status_code == 404
    assert client.get("/api/booking", headers=headers).json() == []


def test_regular_user_cannot_manage_users(client, make_user, auth_headers):
    user = make_user()
    res = client.get("/api/admin/users", headers=auth_headers(user.id))
    assert res.status_code == 403
