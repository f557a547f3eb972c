"""
Tests for bearer-token and internal-key authentication.

Tests cover:
- Token issue/decode round trip
- Expired, tampered and wrong-audience tokens
- Role resolution from profiles
- Internal API key dependency
"""
import time
import pytest
import jwt
from fastapi import HTTPException
from httpx import AsyncClient

from rebooked.app.core.auth import (
    AuthUser,
    create_access_token,
    decode_access_token,
    require_internal_api_key,
)
from rebooked.app.core.settings import get_settings
from rebooked.app.models.user import Profile
from rebooked.tests.conftest import TEST_JWT_SECRET, TEST_INTERNAL_KEY, auth_header


class TestAccessTokens:
    """Test create_access_token / decode_access_token."""

    def test_round_trip(self):
        token = create_access_token("user-1", email="u@example.com")
        claims = decode_access_token(token)

        assert claims["sub"] == "user-1"
        assert claims["email"] == "u@example.com"
        assert claims["aud"] == "authenticated"

    def test_expired_token(self):
        token = create_access_token("user-1", expires_in=-10)

        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_wrong_secret(self):
        token = jwt.encode(
            {"sub": "user-1", "aud": "authenticated", "exp": int(time.time()) + 60},
            "another-secret-that-is-long-enough-for-hs256",
            algorithm="HS256",
        )

        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)
        assert exc_info.value.status_code == 401

    def test_wrong_audience(self):
        token = jwt.encode(
            {"sub": "user-1", "aud": "anon", "exp": int(time.time()) + 60},
            TEST_JWT_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(HTTPException) as exc_info:
            decode_access_token(token)
        assert exc_info.value.status_code == 401

    def test_missing_subject(self):
        token = jwt.encode(
            {"aud": "authenticated", "exp": int(time.time()) + 60},
            TEST_JWT_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(HTTPException):
            decode_access_token(token)


class TestAuthUser:
    def test_admin_roles(self):
        assert AuthUser(id="a", role="admin").is_admin
        assert AuthUser(id="a", role="super_admin").is_admin
        assert not AuthUser(id="a").is_admin


class TestInternalKey:
    @pytest.mark.asyncio
    async def test_valid_key(self):
        assert await require_internal_api_key(TEST_INTERNAL_KEY) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [None, "", "wrong"])
    async def test_invalid_key(self, key):
        with pytest.raises(HTTPException) as exc_info:
            await require_internal_api_key(key)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unset_key_allowed_in_development(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "INTERNAL_API_KEY", None)
        assert await require_internal_api_key(None) is None

    @pytest.mark.asyncio
    async def test_unset_key_rejected_in_production(self, monkeypatch):
        settings = get_settings()
        monkeypatch.setattr(settings, "INTERNAL_API_KEY", None)
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")

        with pytest.raises(HTTPException) as exc_info:
            await require_internal_api_key(None)
        assert exc_info.value.status_code == 500


class TestAuthEndpoints:
    @pytest.mark.asyncio
    async def test_missing_header(self, client: AsyncClient):
        response = await client.get("/wallet/balance")

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing authorization header"

    @pytest.mark.asyncio
    async def test_malformed_header(self, client: AsyncClient):
        response = await client.get("/wallet/balance", headers={"Authorization": "Token abc"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_without_profile_is_accepted(self, client: AsyncClient):
        response = await client.get("/wallet/balance", headers=auth_header("not-yet-a-profile"))
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_admin_role_from_profile(self, client: AsyncClient, admin: Profile, order):
        response = await client.get(f"/orders/{order.id}", headers=auth_header(admin.id))
        assert response.status_code == 200
