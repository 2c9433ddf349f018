"""
Integration tests for the authentication API.

Covers:
- Health and root endpoints
- Signup, login, refresh and logout
- Protected route access
- Profile updates
- Password reset
- Error envelope shape
"""

import pytest
from httpx import AsyncClient

from clubauth.services.auth_service import LOGOUT_MESSAGE, PASSWORD_RESET_REQUESTED_MESSAGE


async def signup(client: AsyncClient, email="a@x.com", name="Ann", password="password1") -> dict:
    response = await client.post(
        "/auth/signup", json={"email": email, "name": name, "password": password}
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]


def bearer(tokens: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.mark.integration
class TestHealthCheck:
    async def test_health_check_returns_200(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": "1.0.0"}

    async def test_root_returns_api_info(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["name"] == "Coding Club Auth API"


@pytest.mark.integration
class TestErrorEnvelope:
    async def test_unknown_route(self, client: AsyncClient):
        response = await client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Not Found"}

    async def test_request_validation_is_422(self, client: AsyncClient):
        response = await client.post(
            "/auth/signup", json={"email": "not-an-email", "name": "Ann", "password": "password1"}
        )

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert "email" in body["error"]

    async def test_short_password_rejected(self, client: AsyncClient):
        response = await client.post(
            "/auth/signup", json={"email": "a@x.com", "name": "Ann", "password": "12345"}
        )

        assert response.status_code == 422


@pytest.mark.integration
class TestAuthenticationFlow:
    """Signup -> me -> refresh -> logout."""

    async def test_signup_returns_tokens_and_user(self, client: AsyncClient):
        response = await client.post(
            "/auth/signup",
            json={"email": "a@x.com", "name": "  Ann  ", "password": "password1", "phone": "555"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == 900
        assert data["access_token"].count(".") == 2
        assert data["refresh_token"]
        assert data["user"]["email"] == "a@x.com"
        assert data["user"]["name"] == "Ann"
        assert data["user"]["phone"] == "555"
        assert data["user"]["is_verified"] is False
        assert "password_hash" not in data["user"]

    async def test_duplicate_signup(self, client: AsyncClient, store):
        await signup(client)

        response = await client.post(
            "/auth/signup", json={"email": "a@x.com", "name": "Other", "password": "password2"}
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Email already registered"}
        assert len(store.users) == 1

    async def test_login(self, client: AsyncClient):
        await signup(client)

        response = await client.post(
            "/auth/login", json={"email": "a@x.com", "password": "password1"}
        )

        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == "a@x.com"

    async def test_login_failures_look_the_same(self, client: AsyncClient):
        await signup(client)

        wrong_password = await client.post(
            "/auth/login", json={"email": "a@x.com", "password": "wrong-password"}
        )
        unknown_email = await client.post(
            "/auth/login", json={"email": "b@x.com", "password": "password1"}
        )

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()

    async def test_me(self, client: AsyncClient):
        tokens = await signup(client)

        response = await client.get("/auth/me", headers=bearer(tokens))

        assert response.status_code == 200
        profile = response.json()["data"]
        assert profile["id"] == tokens["user"]["id"]
        assert profile["google_id"] is None
        assert profile["etlab_username"] is None
        assert isinstance(profile["created_at"], int)

    async def test_me_without_token(self, client: AsyncClient):
        response = await client.get("/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "Missing or invalid authorization header"

    async def test_me_with_invalid_token(self, client: AsyncClient):
        response = await client.get("/auth/me", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid or expired token"

    async def test_refresh_token_is_not_an_access_token(self, client: AsyncClient):
        tokens = await signup(client)

        response = await client.get(
            "/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"}
        )

        assert response.status_code == 401

    async def test_access_token_expires(self, client: AsyncClient, clock):
        tokens = await signup(client)
        clock.advance(900)

        response = await client.get("/auth/me", headers=bearer(tokens))

        assert response.status_code == 401

    async def test_me_for_deleted_user(self, client: AsyncClient, store):
        tokens = await signup(client)
        store.users.clear()

        response = await client.get("/auth/me", headers=bearer(tokens))

        assert response.status_code == 404
        assert response.json()["error"] == "User not found"

    async def test_refresh(self, client: AsyncClient, clock):
        tokens = await signup(client)
        clock.advance(1000)

        response = await client.post(
            "/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["token_type"] == "bearer"
        me = await client.get("/auth/me", headers=bearer(data))
        assert me.status_code == 200

    async def test_refresh_with_unknown_token(self, client: AsyncClient, codec):
        tokens = await signup(client)
        forged = codec.issue_refresh_token(tokens["user"]["id"], 3600)

        response = await client.post("/auth/refresh", json={"refresh_token": forged})

        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Refresh token not found"}

    async def test_logout(self, client: AsyncClient):
        tokens = await signup(client)

        response = await client.post("/auth/logout", headers=bearer(tokens))

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": LOGOUT_MESSAGE}

    async def test_logout_requires_auth(self, client: AsyncClient):
        response = await client.post("/auth/logout")

        assert response.status_code == 401


@pytest.mark.integration
class TestProfile:
    async def test_partial_update(self, client: AsyncClient):
        tokens = await signup(client)

        response = await client.put(
            "/auth/profile", json={"phone": "555-0100"}, headers=bearer(tokens)
        )

        assert response.status_code == 200
        profile = response.json()["data"]
        assert profile["phone"] == "555-0100"
        assert profile["name"] == "Ann"

    async def test_email_taken(self, client: AsyncClient):
        tokens = await signup(client)
        await signup(client, email="b@x.com", name="Bob")

        response = await client.put(
            "/auth/profile", json={"email": "b@x.com"}, headers=bearer(tokens)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Email already in use"

    async def test_nothing_to_update(self, client: AsyncClient):
        tokens = await signup(client)

        response = await client.put("/auth/profile", json={"name": ""}, headers=bearer(tokens))

        assert response.status_code == 400
        assert response.json()["error"] == "No valid fields to update"

    async def test_remove_photo(self, client: AsyncClient, store):
        tokens = await signup(client)
        store.users[tokens["user"]["id"]].profile_photo_url = "https://example.com/p.png"

        response = await client.put(
            "/auth/profile", json={"profile_photo": None}, headers=bearer(tokens)
        )

        assert response.status_code == 200
        assert response.json()["data"]["profile_photo_url"] is None


@pytest.mark.integration
class TestPasswordReset:
    async def test_unknown_email_same_response(self, client: AsyncClient):
        await signup(client)

        known = await client.post("/auth/password/reset", json={"email": "a@x.com"})
        unknown = await client.post("/auth/password/reset", json={"email": "z@x.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json() == {
            "success": True,
            "message": PASSWORD_RESET_REQUESTED_MESSAGE,
        }

    async def test_reset_flow_revokes_sessions(self, client: AsyncClient, store):
        tokens = await signup(client)
        await client.post("/auth/password/reset", json={"email": "a@x.com"})
        reset_token = next(iter(store.reset_tokens))

        response = await client.post(
            "/auth/password/reset/verify",
            json={"token": reset_token, "new_password": "newpassword"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Password has been reset successfully"
        refresh = await client.post(
            "/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )
        assert refresh.status_code == 401
        login = await client.post(
            "/auth/login", json={"email": "a@x.com", "password": "newpassword"}
        )
        assert login.status_code == 200

    async def test_invalid_reset_token(self, client: AsyncClient):
        response = await client.post(
            "/auth/password/reset/verify", json={"token": "nope", "new_password": "newpassword"}
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Invalid reset token"}
