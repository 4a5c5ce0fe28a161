"""Authentication Pydantic schemas."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    GUEST = "guest"
    ADMIN = "admin"


class LoginRequest(BaseModel):
    """Schema for POST /auth/login."""

    username: str = Field(min_length=1, description="Login username")
    password: str = Field(min_length=1, description="Login password")


class LoginResponse(BaseModel):
    """Schema for a successful login."""

    token: str = Field(description="Bearer token for subsequent requests")
    role: UserRole = Field(description="Role granted by the login")


class TokenPayload(BaseModel):
    """Decoded login token claims."""

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject (username)")
    role: UserRole = Field(default=UserRole.GUEST, description="Granted role")
    exp: int = Field(description="Expiration timestamp")
    iat: int = Field(description="Issued at timestamp")

    def to_user_context(self) -> "UserContext":
        """Convert token payload to user context."""
        return UserContext(username=self.sub, role=self.role)


class UserContext(BaseModel):
    """Authenticated caller extracted from a token."""

    username: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
