"""Unit tests for login tokens and credential checks."""

import time
from unittest.mock import MagicMock, patch

import jwt
import pytest

from src.api.middleware.auth import AuthError, AuthErrorCode, create_access_token, decode_jwt
from src.schemas.auth import UserRole
from src.services.auth_service import AuthService, InvalidCredentialsError

TEST_JWT_SECRET = "test-jwt-secret-for-unit-tests-0123456789"


def mock_auth_settings() -> MagicMock:
    settings = MagicMock()
    settings.auth_jwt_secret = TEST_JWT_SECRET
    settings.auth_token_ttl_minutes = 60
    settings.guest_username = "guest"
    settings.guest_password = "guest"
    settings.admin_username = "admin"
    settings.admin_password = "admin"
    return settings


def create_test_token(
    sub: str = "admin",
    role: str = "admin",
    exp_offset: int = 3600,
    secret: str = TEST_JWT_SECRET,
) -> str:
    """Create a test JWT token.

    Args:
        sub: Subject (username).
        role: Granted role.
        exp_offset: Seconds from now for expiration (negative for expired).
        secret: JWT secret for signing.
    """
    now = int(time.time())
    payload = {"sub": sub, "role": role, "exp": now + exp_offset, "iat": now}
    return jwt.encode(payload, secret, algorithm="HS256")


@patch("src.api.middleware.auth.get_settings", mock_auth_settings)
class TestDecodeJWT:
    """Tests for decode_jwt function."""

    def test_decode_jwt_with_valid_token(self) -> None:
        """Test decode_jwt successfully decodes a valid token."""
        payload = decode_jwt(create_test_token())

        assert payload.sub == "admin"
        assert payload.role == UserRole.ADMIN

    def test_round_trip_with_create_access_token(self) -> None:
        """Test tokens issued at login are accepted."""
        payload = decode_jwt(create_access_token("guest", "guest"))

        assert payload.sub == "guest"
        assert payload.to_user_context().is_admin is False

    def test_decode_jwt_with_expired_token(self) -> None:
        """Test decode_jwt raises TOKEN_EXPIRED for expired tokens."""
        with pytest.raises(AuthError) as exc_info:
            decode_jwt(create_test_token(exp_offset=-60))

        assert exc_info.value.code == AuthErrorCode.TOKEN_EXPIRED

    def test_decode_jwt_with_wrong_secret(self) -> None:
        """Test decode_jwt raises INVALID_SIGNATURE for a foreign token."""
        token = create_test_token(secret="another-secret-another-secret-0123")

        with pytest.raises(AuthError) as exc_info:
            decode_jwt(token)

        assert exc_info.value.code == AuthErrorCode.INVALID_SIGNATURE

    def test_decode_jwt_with_garbage(self) -> None:
        """Test decode_jwt raises INVALID_TOKEN for malformed tokens."""
        with pytest.raises(AuthError) as exc_info:
            decode_jwt("not-a-jwt")

        assert exc_info.value.code == AuthErrorCode.INVALID_TOKEN


@patch("src.api.middleware.auth.get_settings", mock_auth_settings)
@patch("src.services.auth_service.get_settings", mock_auth_settings)
class TestAuthService:
    """Tests for AuthService.login."""

    def test_admin_login(self) -> None:
        response = AuthService().login("admin", "admin")

        assert response.role == UserRole.ADMIN
        assert decode_jwt(response.token).role == UserRole.ADMIN

    def test_guest_login(self) -> None:
        response = AuthService().login("guest", "guest")

        assert response.role == UserRole.GUEST

    def test_wrong_password_rejected(self) -> None:
        with pytest.raises(InvalidCredentialsError):
            AuthService().login("admin", "guest")
