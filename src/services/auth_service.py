"""Login credential checks."""

import hmac
import logging

from src.api.middleware.auth import create_access_token
from src.core.config import get_settings
from src.schemas.auth import LoginResponse, UserRole

logger = logging.getLogger(__name__)


class InvalidCredentialsError(Exception):
    """Username and password do not match a configured login."""


class AuthService:
    """Issues tokens for the configured guest and admin logins."""

    def __init__(self) -> None:
        self.settings = get_settings()

    def login(self, username: str, password: str) -> LoginResponse:
        """Check credentials and issue a token.

        Raises:
            InvalidCredentialsError: If no configured login matches.
        """
        settings = self.settings
        logins = (
            (settings.admin_username, settings.admin_password, UserRole.ADMIN),
            (settings.guest_username, settings.guest_password, UserRole.GUEST),
        )
        for expected_user, expected_password, role in logins:
            if _matches(username, expected_user) and _matches(password, expected_password):
                logger.info("Login succeeded for %s (%s)", username, role.value)
                return LoginResponse(token=create_access_token(username, role.value), role=role)

        logger.warning("Login failed for %s", username)
        raise InvalidCredentialsError("Invalid credentials")


def _matches(given: str, expected: str) -> bool:
    return hmac.compare_digest(given.encode(), expected.encode())
