"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.core.runtime import PaymentRuntime, get_payment_runtime
from src.schemas.auth import UserContext
from src.services.order_store import OrderStore, get_order_store
from src.services.payment_lifecycle_service import PaymentLifecycleService
from src.services.webhook_service import WebhookService


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Extract the token from "Bearer <token>" format
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_jwt(parts[1])
        return payload.to_user_context()

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def require_admin(user: Annotated[UserContext, Depends(get_current_user)]) -> UserContext:
    """Require an authenticated admin.

    Raises:
        HTTPException: 403 if the caller is not an admin.
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return user


def get_runtime() -> PaymentRuntime:
    """Get the payment runtime built at startup."""
    return get_payment_runtime()


def get_lifecycle_service(
    runtime: Annotated[PaymentRuntime, Depends(get_runtime)],
    store: Annotated[OrderStore, Depends(get_order_store)],
) -> PaymentLifecycleService:
    """Build a lifecycle service for request-scoped reconciliation reads."""
    return PaymentLifecycleService(runtime.config, runtime.mural, store)


def get_webhook_service(
    runtime: Annotated[PaymentRuntime, Depends(get_runtime)],
    store: Annotated[OrderStore, Depends(get_order_store)],
) -> WebhookService:
    """Build a webhook service bound to the startup configuration."""
    return WebhookService(runtime.config, store)


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
AdminUser = Annotated[UserContext, Depends(require_admin)]
Runtime = Annotated[PaymentRuntime, Depends(get_runtime)]
Store = Annotated[OrderStore, Depends(get_order_store)]
LifecycleService = Annotated[PaymentLifecycleService, Depends(get_lifecycle_service)]
Webhooks = Annotated[WebhookService, Depends(get_webhook_service)]
