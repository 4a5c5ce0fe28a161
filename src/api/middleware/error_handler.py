"""Error types raised by routes and the middleware that renders them."""

import logging
from typing import Any, Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse

from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

ErrorDetails = list[dict[str, Any]] | None


class APIError(Exception):
    """Error returned to the client as an ErrorResponse body.

    Subclasses fix the status code and error type. Raise APIError directly
    only for one-off server-side failures.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "api_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
        details: ErrorDetails = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message.
            status_code: Overrides the class status code.
            error_type: Overrides the class error type.
            details: Optional additional error details.
        """
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_type is not None:
            self.error_type = error_type
        self.details = details


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"

    def __init__(self, message: str = "Resource not found", details: ErrorDetails = None) -> None:
        super().__init__(message, details=details)


class AuthenticationError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "authentication_error"

    def __init__(self, message: str = "Authentication required", details: ErrorDetails = None) -> None:
        super().__init__(message, details=details)


class StorageError(APIError):
    """The order store could not be read or written."""

    error_type = "storage_error"


class ServiceUnavailableError(APIError):
    """Mural is not configured, so the request cannot be served."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_type = "service_unavailable"

    def __init__(self, message: str = "Service unavailable", details: ErrorDetails = None) -> None:
        super().__init__(message, details=details)


class UpstreamError(APIError):
    """Mural answered a proxied request with an error."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_type = "upstream_error"

    def __init__(
        self,
        message: str = "Upstream provider error",
        upstream_status: int | None = None,
        details: ErrorDetails = None,
    ) -> None:
        if details is None and upstream_status is not None:
            details = [{"msg": f"Mural responded with status {upstream_status}", "type": "upstream_status"}]
        super().__init__(message, details=details)
        self.upstream_status = upstream_status


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: ErrorDetails = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Render an ErrorResponse body with the given status code.

    Args:
        error_type: Error category for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        details: Optional error details.
        request_id: Optional request ID for tracing.

    Returns:
        JSONResponse: Formatted error response.
    """
    body = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
    )


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Turn APIError and unexpected exceptions into ErrorResponse bodies.

    HTTPException and request validation errors are rendered by FastAPI
    before they reach this middleware.
    """
    request_id = request.headers.get("X-Request-ID")

    try:
        return await call_next(request)

    except APIError as e:
        level = logging.ERROR if e.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            "%s %s failed: %s - %s",
            request.method,
            request.url.path,
            e.error_type,
            e.message,
            extra={"request_id": request_id, "status_code": e.status_code},
        )
        return create_error_response(
            error_type=e.error_type,
            message=e.message,
            status_code=e.status_code,
            details=e.details,
            request_id=request_id,
        )

    except Exception:
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="internal_error",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
