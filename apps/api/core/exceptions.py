"""
Custom exception classes and error handling.

Provides consistent error responses across the API. Every error body has the
shape ``{"error": ..., "requestId": ..., **extra}``.
"""
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.extra = extra or {}


class ValidationError(APIException):
    """Malformed or schema-invalid request input."""

    def __init__(self, detail: str, details: Optional[Any] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code="VALIDATION_ERROR",
            extra={"details": details} if details is not None else None,
        )


class PayloadTooLargeError(APIException):
    """Declared request body exceeds the size cap."""

    def __init__(self, detail: str = "Request body too large"):
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=detail,
            error_code="PAYLOAD_TOO_LARGE",
        )


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(APIException):
    """Access denied."""

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN"
        )


class NotFoundError(APIException):
    """A precondition record is missing."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code="NOT_FOUND"
        )


class RateLimitedError(APIException):
    """Caller or upstream rate limit hit. Always carries a retry hint in seconds."""

    def __init__(
        self,
        retry_after: int,
        message: str = "Too many requests. Please try again later.",
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            error_code="RATE_LIMITED",
            headers=headers,
            extra={"message": message, "retryAfter": retry_after},
        )
        self.retry_after = retry_after


def request_id_for(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def error_response(
    request: Request,
    status_code: int,
    error: str,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any,
) -> JSONResponse:
    """Render an error body stamped with the request's correlation id."""
    request_id = request_id_for(request)
    content = {"error": error, **extra, "requestId": request_id}
    response_headers = dict(headers or {})
    if request_id:
        response_headers["X-Request-ID"] = request_id
    return JSONResponse(status_code=status_code, content=content, headers=response_headers)


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    return error_response(
        request,
        exc.status_code,
        exc.detail,
        headers=exc.headers,
        **exc.extra,
    )
