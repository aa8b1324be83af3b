"""Tests for API authentication."""
from datetime import timedelta

from app.core.security import create_access_token, create_refresh_token

AUTH = "/api/v1/auth"


class TestLogin:
    """Tests for email/password login."""

    async def test_valid_credentials_accepted(self, client, staff_user):
        """Test that valid credentials return both tokens and the user."""
        response = await client.post(
            f"{AUTH}/login", json={"email": "staff@example.com", "password": "password123"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["refresh_token"]
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "staff"

    async def test_invalid_password_rejected(self, client, staff_user):
        """Test that a wrong password is rejected."""
        response = await client.post(
            f"{AUTH}/login", json={"email": "staff@example.com", "password": "wrongpassword"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Incorrect email or password"

    async def test_unknown_email_rejected(self, client):
        """Test that an unknown email is rejected."""
        response = await client.post(
            f"{AUTH}/login", json={"email": "nobody@example.com", "password": "password123"}
        )
        assert response.status_code == 401

    async def test_inactive_user_rejected(self, client, db, staff_user):
        """Test that a deactivated account cannot log in."""
        staff_user.is_active = False
        await db.commit()

        response = await client.post(
            f"{AUTH}/login", json={"email": "staff@example.com", "password": "password123"}
        )
        assert response.status_code == 403


class TestTokens:
    """Tests for bearer tokens."""

    async def test_me_returns_current_user(self, client, admin_user, admin_headers):
        """Test the profile endpoint."""
        response = await client.get(f"{AUTH}/me", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["email"] == "admin@example.com"

    async def test_malformed_token_rejected(self, client):
        """Test that a garbage bearer token is rejected."""
        response = await client.get(f"{AUTH}/me", headers={"Authorization": "Bearer invalid-token"})
        assert response.status_code == 401

    async def test_expired_token_rejected(self, client, staff_user):
        """Test that an expired access token is rejected."""
        token = create_access_token(subject=staff_user.id, expires_delta=timedelta(minutes=-1))
        response = await client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_refresh_token_not_accepted_as_access(self, client, staff_user):
        """Test that a refresh token cannot be used as an access token."""
        token = create_refresh_token(subject=staff_user.id)
        response = await client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    async def test_refresh_issues_new_tokens(self, client, staff_user):
        """Test rotating tokens with a refresh token."""
        token = create_refresh_token(subject=staff_user.id)
        response = await client.post(f"{AUTH}/refresh", json={"refresh_token": token})

        assert response.status_code == 200
        assert response.json()["access_token"]

    async def test_refresh_rejects_access_token(self, client, staff_user):
        """Test that an access token cannot be used to refresh."""
        token = create_access_token(subject=staff_user.id)
        response = await client.post(f"{AUTH}/refresh", json={"refresh_token": token})
        assert response.status_code == 401


class TestRegistration:
    """Tests for account registration."""

    async def test_register_creates_customer(self, client):
        """Test that self-registration always yields a customer account."""
        response = await client.post(
            f"{AUTH}/register",
            json={"email": "new@example.com", "password": "longenough", "full_name": "New User"},
        )

        assert response.status_code == 201
        assert response.json()["role"] == "customer"

    async def test_register_duplicate_email(self, client, staff_user):
        """Test that an email can only register once."""
        response = await client.post(
            f"{AUTH}/register", json={"email": "staff@example.com", "password": "longenough"}
        )
        assert response.status_code == 400

    async def test_register_short_password(self, client):
        """Test that short passwords fail request validation."""
        response = await client.post(
            f"{AUTH}/register", json={"email": "short@example.com", "password": "short"}
        )
        assert response.status_code == 422


class TestPublicEndpoints:
    """Tests for endpoints that need no token."""

    async def test_root(self, client):
        """Test the API info endpoint."""
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json()["api_v1"] == "/api/v1"

    async def test_health(self, client):
        """Test that /health answers without authentication."""
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] in ("healthy", "degraded")
