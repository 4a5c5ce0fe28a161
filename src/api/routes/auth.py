"""Authentication API routes."""

from fastapi import APIRouter

from src.api.deps import CurrentUser
from src.api.middleware.error_handler import AuthenticationError
from src.schemas.auth import LoginRequest, LoginResponse, UserContext
from src.services.auth_service import AuthService, InvalidCredentialsError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log in",
    description="Exchange the guest or admin credentials for a bearer token.",
    responses={401: {"description": "Invalid credentials"}},
)
async def login(data: LoginRequest) -> LoginResponse:
    """Issue a bearer token for valid credentials."""
    try:
        return AuthService().login(data.username, data.password)
    except InvalidCredentialsError as e:
        raise AuthenticationError(str(e)) from e


@router.get("/me", response_model=UserContext, summary="Current user")
async def get_me(user: CurrentUser) -> UserContext:
    """Return the caller decoded from the bearer token."""
    return user
