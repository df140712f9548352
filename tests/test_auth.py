"""Tests for the auth module: token creation, registration, login and revocation."""

from filerepo.core.token_factory import create_token, decode_token
from tests.conftest import PASSWORD, auth_headers


class TestTokenFactory:

    def test_create_and_decode(self):
        token = create_token("7", "user", "test-secret")
        payload = decode_token(token, "test-secret")
        assert payload is not None
        assert payload.sub == "7"
        assert payload.role == "user"
        assert payload.jti

    def test_each_token_has_its_own_id(self):
        first = decode_token(create_token("7", "user", "s"), "s")
        second = decode_token(create_token("7", "user", "s"), "s")
        assert first.jti != second.jti

    def test_wrong_secret_returns_none(self):
        token = create_token("7", "user", "correct-secret")
        assert decode_token(token, "wrong-secret") is None

    def test_expired_token_returns_none(self):
        token = create_token("7", "user", "secret", expires_hours=-1)
        assert decode_token(token, "secret") is None

    def test_malformed_token_returns_none(self):
        assert decode_token("not.a.token", "secret") is None
        assert decode_token("", "secret") is None


def _register(client, name, email, password=PASSWORD):
    return client.post(
        "/api/auth/register",
        json={"full_name": name, "email": email, "password": password},
    )


def _login(client, email, password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestRegistration:

    def test_first_account_is_approved_principal(self, client):
        resp = _register(client, "First Person", "first@example.com")
        assert resp.status_code == 201
        data = resp.json()
        assert data["role"] == "principal"
        assert data["approval_status"] == "approved"
        assert "password" not in data and "password_hash" not in data

    def test_later_accounts_wait_for_approval(self, client):
        _register(client, "First Person", "first@example.com")
        resp = _register(client, "Second Person", "second@example.com")
        assert resp.status_code == 201
        assert resp.json()["role"] == "user"
        assert resp.json()["approval_status"] == "pending"

        resp = _login(client, "second@example.com")
        assert resp.status_code == 403

    def test_approved_account_can_log_in(self, client, principal):
        user_id = _register(client, "Second Person", "second@example.com").json()["id"]
        resp = client.post(
            f"/api/principal/users/{user_id}/approve", headers=auth_headers(principal)
        )
        assert resp.status_code == 200
        assert _login(client, "second@example.com").status_code == 200

    def test_rejected_account_cannot_log_in(self, client, principal):
        user_id = _register(client, "Second Person", "second@example.com").json()["id"]
        client.post(f"/api/principal/users/{user_id}/reject", headers=auth_headers(principal))
        assert _login(client, "second@example.com").status_code == 403

    def test_duplicate_email_rejected(self, client):
        _register(client, "First Person", "same@example.com")
        resp = _register(client, "Other Person", "SAME@example.com")
        assert resp.status_code == 400

    def test_short_password_rejected(self, client):
        resp = _register(client, "First Person", "first@example.com", password="short")
        assert resp.status_code == 422


class TestLogin:

    def test_login_returns_token_and_user(self, client, alice):
        resp = _login(client, alice.email)
        assert resp.status_code == 200
        data = resp.json()
        assert data["token"]
        assert data["expires_in"] > 0
        assert data["user"]["full_name"] == "Alice Martin"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.status_code == 200
        assert me.json()["email"] == alice.email

    def test_wrong_password_is_401(self, client, alice):
        resp = _login(client, alice.email, password="not-the-password")
        assert resp.status_code == 401
        assert resp.json()["error"] == "UNAUTHORIZED"

    def test_unknown_email_is_401(self, client):
        assert _login(client, "nobody@example.com").status_code == 401

    def test_archived_account_cannot_log_in(self, client, make_user):
        user = make_user("Gone Person", "gone@example.com", is_archived=True)
        assert _login(client, user.email).status_code == 403

    def test_me_requires_token(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_garbage_token_is_401(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401


class TestLogout:

    def test_logout_revokes_token(self, client, alice):
        token = _login(client, alice.email).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}
        assert client.post("/api/auth/logout", headers=headers).status_code == 204
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_other_tokens_survive_logout(self, client, alice):
        first = _login(client, alice.email).json()["token"]
        second = _login(client, alice.email).json()["token"]
        client.post("/api/auth/logout", headers={"Authorization": f"Bearer {first}"})
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {second}"})
        assert resp.status_code == 200

    def test_archived_user_token_stops_working(self, client, alice, db):
        headers = auth_headers(alice)
        alice.is_archived = True
        db.commit()
        assert client.get("/api/auth/me", headers=headers).status_code == 401
