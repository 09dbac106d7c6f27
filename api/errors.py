"""
Error handling for the gateway.

Client actions always answer HTTP 200 with either a result body or
{"error": "<message>"}; the extension treats anything else as a transport
failure and retries. Messages below are the only strings clients see.
Stack traces are NEVER returned to clients.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

MISSING_TOKEN_MESSAGE = "Missing authentication token"
INVALID_TOKEN_MESSAGE = "Invalid or expired token"
INVALID_ACTION_MESSAGE = "Invalid action specified"
CHECKOUT_FAILED_MESSAGE = "Could not create payment session."
UNEXPECTED_ERROR_MESSAGE = "An unexpected server error occurred."


class AppError(Exception):
    """
    Base gateway error. `message` is shown to the client verbatim; `code`
    and `details` are for logs only.
    """

    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to the client error shape."""
        return {"error": self.message}


class AuthenticationError(AppError):
    """No token, or the identity provider rejected it."""

    def __init__(self, message: str = INVALID_TOKEN_MESSAGE):
        super().__init__(code="AUTHENTICATION_ERROR", message=message)


class InvalidActionError(AppError):
    def __init__(self, action: Optional[str] = None):
        super().__init__(
            code="INVALID_ACTION",
            message=INVALID_ACTION_MESSAGE,
            details={"action": action},
        )


class CheckoutUnavailableError(AppError):
    def __init__(self):
        super().__init__(code="CHECKOUT_FAILED", message=CHECKOUT_FAILED_MESSAGE)


class UnexpectedServerError(AppError):
    def __init__(self):
        super().__init__(code="INTERNAL_ERROR", message=UNEXPECTED_ERROR_MESSAGE)


CORRELATION_HEADER = "X-Correlation-ID"


def request_correlation_id(request: Request) -> str:
    """Caller-supplied X-Correlation-ID, else a fresh uuid4."""
    return request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Tags every response with a correlation id. An exception that escapes a
    route becomes a 500 with the generic message; the trace goes to the log.
    """

    async def dispatch(self, request: Request, call_next):
        correlation_id = request_correlation_id(request)
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.exception("Unhandled gateway exception", extra={
                "correlation_id": correlation_id,
                "error_type": type(exc).__name__,
                "path": request.url.path,
            })
            response = JSONResponse(
                {"error": UNEXPECTED_ERROR_MESSAGE, "correlation_id": correlation_id},
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
